"""
Face detection loop for the check-in client.

The loop samples the video source at a fixed interval and reports the first
confirmed face exactly once per activation. State changes go through
``DetectionLoop._advance`` only, and the transition to LATCHED happens there,
before any awaited work, so overlapping ticks cannot report twice.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from datetime import datetime, timezone as dt_timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Protocol, Sequence

from attendance.claims import PhotoReference, validate_descriptor
from capture.exceptions import CaptureUnavailable

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 1.0


class DetectionState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    LATCHED = "latched"
    STOPPED = "stopped"


class TickAction(str, Enum):
    IGNORE = "ignore"
    NO_FACE = "no_face"
    LATCH = "latch"


@dataclass(frozen=True)
class DetectionResult:
    descriptor: tuple[float, ...]
    captured_at: datetime
    photo: PhotoReference | None = None


class VideoSource(Protocol):
    def open(self) -> None: ...

    def read_frame(self) -> Any: ...

    def release(self) -> None: ...


class FaceModel(Protocol):
    async def detect(self, frame: Any) -> list[Sequence[float]]: ...


PhotoStep = Callable[[Any], Awaitable[PhotoReference]]


async def _maybe_await(value):
    if inspect.isawaitable(value):
        return await value
    return value


class DetectionLoop:
    def __init__(
        self,
        source: VideoSource,
        model: FaceModel,
        on_face_detected: Callable[[DetectionResult], Any],
        on_no_face: Callable[[], Any],
        capture_photo: PhotoStep | None = None,
        interval: float = DEFAULT_INTERVAL,
    ):
        self.source = source
        self.model = model
        self.on_face_detected = on_face_detected
        self.on_no_face = on_no_face
        self.capture_photo = capture_photo
        self.interval = interval
        self.state = DetectionState.IDLE
        self._ticker: asyncio.Task | None = None
        self._ticks: set[asyncio.Task] = set()

    async def __aenter__(self) -> DetectionLoop:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def arm(self) -> None:
        """Open the source and reset the latch for a new activation."""
        self.source.open()
        self.state = DetectionState.ARMED

    async def start(self) -> None:
        if self.state is DetectionState.ARMED:
            return

        self.arm()
        self._ticker = asyncio.create_task(self._run())
        logger.info("Face detection started", extra={"interval": self.interval})

    async def _run(self) -> None:
        while self.state is DetectionState.ARMED:
            task = asyncio.create_task(self.tick())
            self._ticks.add(task)
            task.add_done_callback(self._ticks.discard)
            await asyncio.sleep(self.interval)

    def _advance(self, descriptors: Sequence[Any]) -> tuple[TickAction, tuple[float, ...] | None]:
        if self.state is not DetectionState.ARMED:
            return TickAction.IGNORE, None
        if not descriptors:
            return TickAction.NO_FACE, None

        try:
            descriptor = validate_descriptor(descriptors[0])
        except ValueError:
            logger.debug("Discarding face without a usable descriptor")
            return TickAction.IGNORE, None

        self.state = DetectionState.LATCHED
        return TickAction.LATCH, descriptor

    async def tick(self) -> None:
        if self.state is not DetectionState.ARMED:
            return

        frame = None
        try:
            frame = self.source.read_frame()
            descriptors = await self.model.detect(frame)
        except Exception:  # noqa: BLE001
            logger.warning("Face detection step failed", exc_info=True)
            descriptors = []

        action, descriptor = self._advance(descriptors)
        if action is TickAction.NO_FACE:
            await _maybe_await(self.on_no_face())
        elif action is TickAction.LATCH:
            await self._complete(descriptor, frame)

    async def _take_photo(self, frame: Any) -> PhotoReference | None:
        if self.capture_photo is None:
            return None
        try:
            return await self.capture_photo(frame)
        except CaptureUnavailable as exc:
            logger.info("Photo capture skipped: %s", exc)
        except Exception:  # noqa: BLE001
            logger.warning("Photo upload failed, continuing without photo", exc_info=True)
        return None

    async def _complete(self, descriptor: tuple[float, ...], frame: Any) -> None:
        captured_at = datetime.now(dt_timezone.utc)
        try:
            photo = await self._take_photo(frame)
            result = DetectionResult(descriptor=descriptor, captured_at=captured_at, photo=photo)
            logger.info("Face detected", extra={"has_photo": photo is not None})
            await _maybe_await(self.on_face_detected(result))
        finally:
            self.stop()

    def stop(self) -> None:
        self.state = DetectionState.STOPPED

        current = asyncio.current_task() if _has_running_loop() else None
        ticker, self._ticker = self._ticker, None
        if ticker is not None and ticker is not current:
            ticker.cancel()
        for task in list(self._ticks):
            if task is not current:
                task.cancel()

        self.source.release()

    async def aclose(self) -> None:
        ticker = self._ticker
        self.stop()
        if ticker is not None and ticker is not asyncio.current_task():
            try:
                await ticker
            except asyncio.CancelledError:
                pass


def _has_running_loop() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True
