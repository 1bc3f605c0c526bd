from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Union


@dataclass(frozen=True)
class PhotoReference:
    file_id: str
    url: str
    file_size: int
    mime_type: str = "image/jpeg"


@dataclass(frozen=True)
class VectorClaim:
    descriptor: tuple[float, ...]
    captured_at: datetime | None = None


@dataclass(frozen=True)
class PhotoClaim:
    descriptor: tuple[float, ...]
    photo: PhotoReference
    captured_at: datetime | None = None


FaceClaim = Union[VectorClaim, PhotoClaim]


def validate_descriptor(descriptor) -> tuple[float, ...]:
    if not isinstance(descriptor, (list, tuple)) or not descriptor:
        raise ValueError("descriptor must be a non-empty sequence of numbers")

    values = []
    for value in descriptor:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("descriptor must only contain numbers")
        try:
            number = float(value)
        except OverflowError as exc:
            raise ValueError("descriptor must only contain finite numbers") from exc
        if not math.isfinite(number):
            raise ValueError("descriptor must only contain finite numbers")
        values.append(number)
    return tuple(values)


def build_claim(descriptor, captured_at: datetime | None = None, photo: PhotoReference | None = None) -> FaceClaim:
    if photo is None:
        return VectorClaim(descriptor=descriptor, captured_at=captured_at)
    return PhotoClaim(descriptor=descriptor, photo=photo, captured_at=captured_at)
