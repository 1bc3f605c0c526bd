from __future__ import annotations

import logging
from typing import Any

import cv2
import numpy as np

from capture.exceptions import CaptureUnavailable

logger = logging.getLogger(__name__)

JPEG_QUALITY = 80


def encode_jpeg(frame: np.ndarray | None, quality: int = JPEG_QUALITY) -> bytes:
    if frame is None or getattr(frame, "ndim", 0) < 2:
        raise CaptureUnavailable("No frame to encode")

    height, width = frame.shape[:2]
    if not height or not width:
        raise CaptureUnavailable("Video source has no dimensions yet")

    ok, buffer = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise CaptureUnavailable("JPEG encoding failed")
    return buffer.tobytes()


class OpenCVVideoSource:
    def __init__(self, source: int | str = 0, width: int = 640, height: int = 480):
        self.source = source
        self.width = width
        self.height = height
        self._capture: Any = None

    @property
    def is_open(self) -> bool:
        return self._capture is not None

    def open(self) -> None:
        if self._capture is not None:
            return

        capture = cv2.VideoCapture(self.source)
        if not capture.isOpened():
            capture.release()
            raise CaptureUnavailable(f"Unable to open camera {self.source!r}")

        capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self._capture = capture
        logger.info("Camera opened", extra={"camera": str(self.source)})

    def read_frame(self) -> np.ndarray:
        if self._capture is None:
            raise CaptureUnavailable("Camera is not open")

        ok, frame = self._capture.read()
        if not ok or frame is None:
            raise CaptureUnavailable("No frame available")
        return frame

    def release(self) -> None:
        capture, self._capture = self._capture, None
        if capture is not None:
            capture.release()
            logger.info("Camera released", extra={"camera": str(self.source)})


def capture_still(source, quality: int = JPEG_QUALITY) -> bytes:
    return encode_jpeg(source.read_frame(), quality)
