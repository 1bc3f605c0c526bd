from __future__ import annotations

import calendar
from datetime import date, datetime, time

from django.contrib.auth import get_user_model
from django.db.models import QuerySet
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from accounts.permissions import is_admin_user
from attendance.models import AttendanceEvent


def _as_aware(dt: datetime) -> datetime:
    if timezone.is_naive(dt):
        return timezone.make_aware(dt)
    return dt


def parse_bound(value: str | None, *, end_of_day: bool = False) -> datetime | None:
    """Parse a ``startDate``/``endDate`` query value.

    Date-only values expand to the start (or end) of that local day.
    Raises ``ValueError`` on anything unparsable.
    """
    value = (value or "").strip()
    if not value:
        return None

    parsed_dt = parse_datetime(value)
    if parsed_dt is not None:
        return _as_aware(parsed_dt)

    parsed_date = parse_date(value)
    if parsed_date is None:
        raise ValueError(f"Invalid date: {value}")
    return _as_aware(datetime.combine(parsed_date, time.max if end_of_day else time.min))


def current_month_window(now: datetime | None = None) -> tuple[datetime, datetime]:
    today = timezone.localdate(now or timezone.now())
    first = today.replace(day=1)
    last = today.replace(day=calendar.monthrange(today.year, today.month)[1])
    return _as_aware(datetime.combine(first, time.min)), _as_aware(datetime.combine(last, time.max))


def attendance_history(
    actor,
    user_id: int | str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> QuerySet:
    queryset = AttendanceEvent.objects.select_related("user", "photo")

    if not is_admin_user(actor):
        queryset = queryset.filter(user=actor)
    elif user_id not in (None, ""):
        queryset = queryset.filter(user_id=user_id)

    if start is None and end is None:
        start, end = current_month_window()
    if start is not None:
        queryset = queryset.filter(timestamp__gte=start)
    if end is not None:
        queryset = queryset.filter(timestamp__lte=end)

    return queryset.order_by("-timestamp", "-id")


def daily_roster(day: date) -> list[dict]:
    user_model = get_user_model()
    events = {
        event.user_id: event
        for event in AttendanceEvent.objects.filter(day=day).select_related("photo")
    }

    roster = []
    employees = user_model.objects.filter(is_active=True, role=user_model.ROLE_USER).order_by("full_name", "username")
    for user in employees.iterator():
        event = events.get(user.pk)
        roster.append(
            {
                "user": user,
                "status": event.status if event else AttendanceEvent.STATUS_ABSENT,
                "event": event,
            }
        )
    return roster
