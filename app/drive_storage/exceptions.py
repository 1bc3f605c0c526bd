from __future__ import annotations


class StorageError(Exception):
    code = "storage_unknown_failure"
    message = "Unable to upload the photo to Google Drive."

    def __init__(self, message: str | None = None, details: str = ""):
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)


class StorageCredentialRejected(StorageError):
    code = "storage_credential_rejected"
    message = "Google Drive access token is invalid. OAuth setup must be redone."


class StorageQuotaExceeded(StorageError):
    code = "storage_quota_exceeded"
    message = "Google Drive quota exceeded."


class StorageUnknownFailure(StorageError):
    pass


STORAGE_ERRORS_BY_CODE = {
    error.code: error for error in (StorageCredentialRejected, StorageQuotaExceeded, StorageUnknownFailure)
}


def storage_error_for_code(code: str, message: str | None = None) -> StorageError:
    return STORAGE_ERRORS_BY_CODE.get(code, StorageUnknownFailure)(message)
