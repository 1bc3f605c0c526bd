from __future__ import annotations

import os
from dataclasses import dataclass


def _camera_source(value: str) -> int | str:
    value = value.strip()
    return int(value) if value.isdigit() else value


@dataclass
class CaptureConfig:
    api_url: str = "http://localhost:8000/api/"
    username: str = ""
    password: str = ""
    camera_source: int | str = 0
    interval: float = 1.0
    with_photo: bool = True
    timeout: float | None = 120.0

    @classmethod
    def from_env(cls) -> CaptureConfig:
        return cls(
            api_url=os.getenv("ATTENDANCE_API_URL", cls.api_url),
            username=os.getenv("ATTENDANCE_USERNAME", ""),
            password=os.getenv("ATTENDANCE_PASSWORD", ""),
            camera_source=_camera_source(os.getenv("CAMERA_SOURCE", "0")),
            interval=float(os.getenv("DETECTION_INTERVAL", "1.0")),
            with_photo=os.getenv("CAPTURE_PHOTO", "1").strip().lower() in {"1", "true", "yes", "on"},
            timeout=float(os.getenv("DETECTION_TIMEOUT", "120")) or None,
        )
