from __future__ import annotations

import base64
import binascii
import logging
import re
import time

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.request import Request
from rest_framework.response import Response

from accounts.permissions import IsAttendanceAdmin
from drive_storage.client import DriveStorageClient
from drive_storage.exceptions import StorageError

logger = logging.getLogger(__name__)

DATA_URI_PREFIX = re.compile(r"^data:image/[\w.+-]+;base64,")


def _storage_error_response(exc: StorageError) -> Response:
    return Response({"detail": exc.message, "code": exc.code}, status=status.HTTP_502_BAD_GATEWAY)


def _decode_photo(value: str) -> bytes:
    return base64.b64decode(DATA_URI_PREFIX.sub("", value.strip()), validate=True)


@api_view(["POST"])
def upload_photo_api(request: Request) -> Response:
    photo = request.data.get("photo")
    if not photo or not isinstance(photo, str):
        return Response({"detail": "Photo data is required", "code": "photo_required"}, status=status.HTTP_400_BAD_REQUEST)

    try:
        payload = _decode_photo(photo)
    except (binascii.Error, ValueError):
        return Response({"detail": "Photo must be base64 encoded", "code": "photo_invalid"}, status=status.HTTP_400_BAD_REQUEST)
    if not payload:
        return Response({"detail": "Photo data is required", "code": "photo_required"}, status=status.HTTP_400_BAD_REQUEST)

    file_name = str(request.data.get("fileName") or "").strip()
    if not file_name:
        file_name = f"attendance-{request.user.username}-{int(time.time() * 1000)}.jpg"

    client = DriveStorageClient.from_settings()
    try:
        uploaded = client.upload(payload, file_name, "image/jpeg")
    except StorageError as exc:
        logger.warning(
            "Photo upload failed",
            extra={"user_id": request.user.pk, "code": exc.code, "details": exc.details},
        )
        return _storage_error_response(exc)

    return Response(
        {
            "success": True,
            "photoMetadata": {
                "fileId": uploaded.file_id,
                "url": uploaded.web_view_link,
                "fileSize": len(payload),
            },
        }
    )


@api_view(["GET"])
@permission_classes([IsAttendanceAdmin])
def drive_auth_url_api(request: Request) -> Response:
    client = DriveStorageClient.from_settings()
    return Response(
        {
            "authUrl": client.authorization_url(),
            "instructions": "Open this URL in a browser, sign in and approve access; the redirect returns the refresh token.",
        }
    )


@api_view(["GET"])
@permission_classes([IsAttendanceAdmin])
def oauth2_callback_api(request: Request) -> Response:
    code = (request.GET.get("code") or "").strip()
    if not code:
        return Response({"detail": "No code provided"}, status=status.HTTP_400_BAD_REQUEST)

    client = DriveStorageClient.from_settings()
    try:
        tokens = client.exchange_code(code)
    except StorageError as exc:
        logger.warning("Authorization code exchange failed", extra={"code": exc.code, "details": exc.details})
        return _storage_error_response(exc)

    return Response({"success": True, **tokens})
