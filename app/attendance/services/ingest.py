from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from django.db import IntegrityError, transaction
from django.utils import timezone

from attendance.claims import FaceClaim, PhotoClaim, validate_descriptor
from attendance.exceptions import DuplicateAttendance, InvalidFaceData, Unauthorized
from attendance.models import AttendanceEvent, AttendancePhoto
from attendance.services.status import classify_status

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestResult:
    event_id: int
    timestamp: datetime
    status: str
    has_photo: bool


def local_day_window(day: date) -> tuple[datetime, datetime]:
    start = timezone.make_aware(datetime.combine(day, time.min))
    end = timezone.make_aware(datetime.combine(day + timedelta(days=1), time.min))
    return start, end


def _has_event_on(user, day: date) -> bool:
    start, end = local_day_window(day)
    return AttendanceEvent.objects.filter(user=user, timestamp__gte=start, timestamp__lt=end).exists()


def record_attendance(user, claim: FaceClaim) -> IngestResult:
    if user is None or not user.is_authenticated:
        raise Unauthorized()

    try:
        descriptor = validate_descriptor(claim.descriptor)
    except ValueError as exc:
        raise InvalidFaceData() from exc

    now = timezone.now()
    day = timezone.localdate(now)
    if _has_event_on(user, day):
        raise DuplicateAttendance()

    status = classify_status(now)
    photo = claim.photo if isinstance(claim, PhotoClaim) else None

    try:
        with transaction.atomic():
            event = AttendanceEvent.objects.create(user=user, timestamp=now, day=day, status=status)
            if photo is not None:
                AttendancePhoto.objects.create(
                    event=event,
                    drive_file_id=photo.file_id,
                    drive_url=photo.url,
                    mime_type=photo.mime_type,
                    file_size=photo.file_size,
                )
    except IntegrityError:
        if AttendanceEvent.objects.filter(user=user, day=day).exists():
            logger.info("Concurrent duplicate attendance rejected", extra={"user_id": user.pk, "day": day.isoformat()})
            raise DuplicateAttendance() from None
        raise

    logger.info(
        "Attendance recorded",
        extra={
            "user_id": user.pk,
            "event_id": event.pk,
            "status": status,
            "has_photo": photo is not None,
            "descriptor_length": len(descriptor),
        },
    )
    return IngestResult(event_id=event.pk, timestamp=event.timestamp, status=status, has_photo=photo is not None)
