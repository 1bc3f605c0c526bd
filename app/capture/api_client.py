from __future__ import annotations

import base64
from typing import Any
from urllib.parse import urljoin

import requests

from attendance.claims import PhotoReference
from capture.exceptions import AttendanceRejected
from capture.loop import DetectionResult
from drive_storage.exceptions import StorageUnknownFailure, storage_error_for_code


class AttendanceApiClient:
    def __init__(self, base_url: str, timeout: int = 20):
        self.base_url = base_url.rstrip("/") + "/"
        self.timeout = timeout
        self.access_token = ""

    def _headers(self) -> dict[str, str]:
        if not self.access_token:
            return {}
        return {"Authorization": f"Bearer {self.access_token}"}

    def _post(self, path: str, payload: dict[str, Any]) -> requests.Response:
        url = urljoin(self.base_url, path.lstrip("/"))
        return requests.post(url, json=payload, headers=self._headers(), timeout=self.timeout)

    @staticmethod
    def _body(response: requests.Response) -> dict[str, Any]:
        try:
            body = response.json() if response.content else {}
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    def login(self, username: str, password: str) -> None:
        response = self._post("auth/token/", {"username": username, "password": password})
        response.raise_for_status()
        self.access_token = self._body(response)["access"]

    def upload_photo(self, payload: bytes, file_name: str) -> PhotoReference:
        try:
            response = self._post(
                "upload-photo/",
                {"photo": base64.b64encode(payload).decode("ascii"), "fileName": file_name},
            )
        except requests.RequestException as exc:
            raise StorageUnknownFailure(details=str(exc)) from exc

        body = self._body(response)
        if not response.ok:
            raise storage_error_for_code(str(body.get("code") or ""), body.get("detail"))

        metadata = body.get("photoMetadata") or {}
        return PhotoReference(
            file_id=metadata["fileId"],
            url=metadata["url"],
            file_size=int(metadata.get("fileSize") or len(payload)),
        )

    def submit_attendance(self, result: DetectionResult) -> dict[str, Any]:
        face_data: dict[str, Any] = {
            "descriptor": list(result.descriptor),
            "timestamp": result.captured_at.isoformat(),
        }
        if result.photo is not None:
            face_data["photoMetadata"] = {
                "fileId": result.photo.file_id,
                "url": result.photo.url,
                "fileSize": result.photo.file_size,
            }

        response = self._post("attendance/", {"faceData": face_data})
        body = self._body(response)
        if response.status_code in (400, 401):
            raise AttendanceRejected(
                str(body.get("detail") or "Attendance rejected"),
                code=str(body.get("code") or ""),
                status_code=response.status_code,
            )
        response.raise_for_status()
        return body.get("attendance", body)
