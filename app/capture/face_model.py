from __future__ import annotations

import asyncio

import cv2
import face_recognition
import numpy as np


class FaceRecognitionModel:
    """dlib-based detector returning one 128-d descriptor per face found."""

    def __init__(self, detector: str = "hog", upsample: int = 1):
        self.detector = detector
        self.upsample = upsample

    def _detect(self, frame: np.ndarray) -> list[list[float]]:
        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        locations = face_recognition.face_locations(rgb, number_of_times_to_upsample=self.upsample, model=self.detector)
        if not locations:
            return []
        return [encoding.tolist() for encoding in face_recognition.face_encodings(rgb, locations)]

    async def detect(self, frame: np.ndarray) -> list[list[float]]:
        return await asyncio.to_thread(self._detect, frame)
