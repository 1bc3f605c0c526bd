from __future__ import annotations

from datetime import datetime, time

from django.utils import timezone

from attendance.models import AttendanceEvent

# Check-ins up to and including 09:00:00.000 local time are on time.
LATE_AFTER = time(9, 0)


def classify_status(moment: datetime, late_after: time = LATE_AFTER) -> str:
    local_time = timezone.localtime(moment).time() if timezone.is_aware(moment) else moment.time()
    if local_time > late_after:
        return AttendanceEvent.STATUS_LATE
    return AttendanceEvent.STATUS_PRESENT
