from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from attendance.claims import PhotoReference
from capture.api_client import AttendanceApiClient
from capture.loop import DetectionLoop, DetectionResult, FaceModel, VideoSource
from capture.photo import JPEG_QUALITY, capture_still, encode_jpeg

logger = logging.getLogger(__name__)


class PhotoUploader:
    def __init__(self, api_client: AttendanceApiClient, source: VideoSource, quality: int = JPEG_QUALITY):
        self.api_client = api_client
        self.source = source
        self.quality = quality

    async def __call__(self, frame: Any = None) -> PhotoReference:
        payload = encode_jpeg(frame, self.quality) if frame is not None else capture_still(self.source, self.quality)
        file_name = f"attendance-{int(time.time() * 1000)}.jpg"
        return await asyncio.to_thread(self.api_client.upload_photo, payload, file_name)


async def detect_face(
    source: VideoSource,
    model: FaceModel,
    api_client: AttendanceApiClient | None = None,
    interval: float = 1.0,
    timeout: float | None = None,
) -> DetectionResult:
    """Run one detection activation and return its result.

    A photo is uploaded through ``api_client`` when one is given; the camera
    is released whether detection succeeds, times out or is cancelled.
    """
    detected: asyncio.Future = asyncio.get_running_loop().create_future()

    def on_face_detected(result: DetectionResult) -> None:
        if not detected.done():
            detected.set_result(result)

    def on_no_face() -> None:
        logger.info("No face detected, waiting")

    capture_photo = PhotoUploader(api_client, source) if api_client is not None else None
    async with DetectionLoop(source, model, on_face_detected, on_no_face, capture_photo, interval) as loop:
        await loop.start()
        return await asyncio.wait_for(detected, timeout)


async def run_checkin(
    source: VideoSource,
    model: FaceModel,
    api_client: AttendanceApiClient,
    interval: float = 1.0,
    with_photo: bool = True,
    timeout: float | None = None,
) -> dict[str, Any]:
    result = await detect_face(
        source,
        model,
        api_client if with_photo else None,
        interval=interval,
        timeout=timeout,
    )
    return await asyncio.to_thread(api_client.submit_attendance, result)
