from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Any
from urllib.parse import urlencode

import requests
from django.conf import settings
from django.utils import timezone

from drive_storage.exceptions import StorageCredentialRejected, StorageQuotaExceeded, StorageUnknownFailure

logger = logging.getLogger(__name__)

CREDENTIAL_ERRORS = {"invalid_grant", "invalid_client", "unauthorized_client"}
QUOTA_REASONS = {
    "storageQuotaExceeded",
    "quotaExceeded",
    "userRateLimitExceeded",
    "rateLimitExceeded",
    "dailyLimitExceeded",
}


@dataclass(frozen=True)
class UploadedFile:
    file_id: str
    web_view_link: str
    web_content_link: str


def _json_or_empty(response: requests.Response) -> dict[str, Any]:
    if not response.content:
        return {}
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def _multipart_related(metadata: dict[str, Any], payload: bytes, mime_type: str) -> tuple[bytes, str]:
    boundary = f"attendance-{uuid.uuid4().hex}"
    head = (
        f"--{boundary}\r\n"
        "Content-Type: application/json; charset=UTF-8\r\n\r\n"
        f"{json.dumps(metadata)}\r\n"
        f"--{boundary}\r\n"
        f"Content-Type: {mime_type}\r\n\r\n"
    ).encode("utf-8")
    tail = f"\r\n--{boundary}--\r\n".encode("utf-8")
    return head + payload + tail, f"multipart/related; boundary={boundary}"


class DriveStorageClient:
    """Google Drive uploader authenticated with a long-lived refresh token.

    Access tokens are short-lived, so a fresh one is requested before every
    call; nothing is cached between uploads.
    """

    AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    FILES_URL = "https://www.googleapis.com/drive/v3/files"
    UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/files"
    VIEW_URL = "https://drive.google.com/file/d/{file_id}/view"
    SCOPES = ["https://www.googleapis.com/auth/drive.file"]
    UPLOAD_FIELDS = "id,webViewLink,webContentLink"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str = "",
        redirect_uri: str = "",
        folder_id: str = "",
        timeout: int = 20,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.redirect_uri = redirect_uri
        self.folder_id = folder_id
        self.timeout = timeout

    @classmethod
    def from_settings(cls) -> DriveStorageClient:
        config = getattr(settings, "GOOGLE_DRIVE", {})
        return cls(
            client_id=config.get("CLIENT_ID", ""),
            client_secret=config.get("CLIENT_SECRET", ""),
            refresh_token=config.get("REFRESH_TOKEN", ""),
            redirect_uri=config.get("REDIRECT_URI", ""),
            folder_id=config.get("FOLDER_ID", ""),
            timeout=config.get("TIMEOUT", 20),
        )

    def _token_request(self, data: dict[str, str]) -> dict[str, Any]:
        payload = {"client_id": self.client_id, "client_secret": self.client_secret, **data}
        try:
            response = requests.post(self.TOKEN_URL, data=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            raise StorageUnknownFailure(details=str(exc)) from exc

        body = _json_or_empty(response)
        if response.ok:
            return body

        error = str(body.get("error") or "")
        logger.warning(
            "Google token endpoint rejected request",
            extra={"status_code": response.status_code, "error": error, "grant_type": data.get("grant_type")},
        )
        if error in CREDENTIAL_ERRORS or response.status_code == 401:
            raise StorageCredentialRejected(details=error)
        raise StorageUnknownFailure(details=error or response.text[:200])

    def _raise_for_drive_error(self, response: requests.Response) -> None:
        if response.ok:
            return

        body = _json_or_empty(response)
        error = body.get("error") if isinstance(body.get("error"), dict) else {}
        reasons = {item.get("reason") for item in error.get("errors", []) if isinstance(item, dict)}
        message = str(error.get("message") or response.text[:200])
        logger.warning(
            "Google Drive request failed",
            extra={"status_code": response.status_code, "reasons": sorted(r for r in reasons if r)},
        )

        if response.status_code == 401:
            raise StorageCredentialRejected(details=message)
        if reasons & QUOTA_REASONS or "quota" in message.lower():
            raise StorageQuotaExceeded(details=message)
        raise StorageUnknownFailure(details=message)

    def refresh_access_token(self) -> str:
        if not self.refresh_token:
            raise StorageCredentialRejected(details="missing refresh token")

        body = self._token_request({"grant_type": "refresh_token", "refresh_token": self.refresh_token})
        access_token = body.get("access_token")
        if not access_token:
            raise StorageUnknownFailure(details="token response without access_token")

        logger.debug("Drive access token refreshed", extra={"expires_in": body.get("expires_in")})
        return access_token

    def upload(self, payload: bytes, file_name: str, mime_type: str = "image/jpeg") -> UploadedFile:
        access_token = self.refresh_access_token()

        metadata: dict[str, Any] = {"name": file_name, "mimeType": mime_type}
        if self.folder_id:
            metadata["parents"] = [self.folder_id]
        body, content_type = _multipart_related(metadata, payload, mime_type)

        try:
            response = requests.post(
                self.UPLOAD_URL,
                params={"uploadType": "multipart", "fields": self.UPLOAD_FIELDS},
                data=body,
                headers={"Authorization": f"Bearer {access_token}", "Content-Type": content_type},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise StorageUnknownFailure(details=str(exc)) from exc

        self._raise_for_drive_error(response)
        data = _json_or_empty(response)
        if not data.get("id"):
            raise StorageUnknownFailure(details="upload response without file id")

        logger.info(
            "Photo uploaded to Google Drive",
            extra={"file_id": data["id"], "file_name": file_name, "size": len(payload)},
        )
        return UploadedFile(
            file_id=data["id"],
            web_view_link=data.get("webViewLink") or self.VIEW_URL.format(file_id=data["id"]),
            web_content_link=data.get("webContentLink", ""),
        )

    def download(self, file_id: str) -> bytes:
        access_token = self.refresh_access_token()
        try:
            response = requests.get(
                f"{self.FILES_URL}/{file_id}",
                params={"alt": "media"},
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise StorageUnknownFailure(details=str(exc)) from exc

        self._raise_for_drive_error(response)
        return response.content

    def authorization_url(self) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.SCOPES),
            "access_type": "offline",
            "prompt": "consent",
        }
        return f"{self.AUTH_URL}?{urlencode(params)}"

    def exchange_code(self, code: str) -> dict[str, Any]:
        body = self._token_request(
            {"grant_type": "authorization_code", "code": code, "redirect_uri": self.redirect_uri}
        )
        expires_in = body.get("expires_in")
        expiry = timezone.now() + timedelta(seconds=int(expires_in)) if expires_in else None
        return {
            "access_token": body.get("access_token", ""),
            "refresh_token": body.get("refresh_token", ""),
            "expiry": expiry.isoformat() if expiry else None,
        }
