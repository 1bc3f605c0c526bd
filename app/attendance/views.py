from __future__ import annotations

import base64
import logging

from django.db import DatabaseError
from django.http import Http404, HttpResponse
from django.shortcuts import render
from django.utils import timezone
from django.utils.dateparse import parse_date
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.request import Request
from rest_framework.response import Response

from accounts.permissions import IsAttendanceAdmin, is_admin_user
from attendance.models import AttendancePhoto
from attendance.serializers import AttendanceEventSerializer, FaceDataSerializer
from attendance.services.history import attendance_history, daily_roster, parse_bound
from attendance.services.ingest import record_attendance
from drive_storage.client import DriveStorageClient
from drive_storage.exceptions import StorageError

logger = logging.getLogger(__name__)


@api_view(["GET", "POST"])
def attendance_api(request: Request) -> Response:
    if request.method == "POST":
        return _record_attendance(request)
    return _attendance_history(request)


def _record_attendance(request: Request) -> Response:
    face_data = request.data.get("faceData", request.data)
    if not isinstance(face_data, dict) or not face_data:
        return Response(
            {"detail": "No face was detected.", "code": "invalid_face_data"},
            status=status.HTTP_400_BAD_REQUEST,
        )

    serializer = FaceDataSerializer(data=face_data)
    serializer.is_valid(raise_exception=True)
    claim = serializer.to_claim()

    try:
        result = record_attendance(request.user, claim)
    except DatabaseError:
        logger.exception("Unable to record attendance", extra={"user_id": request.user.pk})
        return Response({"detail": "Internal server error"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    return Response(
        {
            "success": True,
            "message": "Attendance recorded",
            "attendance": {
                "id": result.event_id,
                "timestamp": result.timestamp,
                "status": result.status,
                "hasPhoto": result.has_photo,
            },
        },
        status=status.HTTP_201_CREATED,
    )


def _attendance_history(request: Request) -> Response:
    try:
        start = parse_bound(request.GET.get("startDate"))
        end = parse_bound(request.GET.get("endDate"), end_of_day=True)
    except ValueError as exc:
        return Response({"detail": str(exc), "code": "invalid_date"}, status=status.HTTP_400_BAD_REQUEST)

    events = attendance_history(request.user, user_id=request.GET.get("userId"), start=start, end=end)
    return Response(AttendanceEventSerializer(events, many=True).data)


@api_view(["GET"])
@permission_classes([IsAttendanceAdmin])
def daily_roster_api(request: Request) -> Response:
    raw_day = (request.GET.get("date") or "").strip()
    day = parse_date(raw_day) if raw_day else timezone.localdate()
    if day is None:
        return Response({"detail": f"Invalid date: {raw_day}", "code": "invalid_date"}, status=status.HTTP_400_BAD_REQUEST)

    results = [
        {
            "user": {"id": row["user"].pk, "username": row["user"].username, "fullName": row["user"].full_name},
            "status": row["status"],
            "timestamp": row["event"].timestamp if row["event"] else None,
            "hasPhoto": row["event"].has_photo if row["event"] else False,
        }
        for row in daily_roster(day)
    ]
    return Response({"date": day.isoformat(), "count": len(results), "results": results})


@api_view(["GET"])
def attendance_photo_page(request: Request, event_id: int) -> HttpResponse:
    photo = AttendancePhoto.objects.select_related("event").filter(event_id=event_id).first()
    if photo is None or not (is_admin_user(request.user) or photo.event.user_id == request.user.pk):
        raise Http404("Photo not found")

    client = DriveStorageClient.from_settings()
    try:
        content = client.download(photo.drive_file_id)
    except StorageError as exc:
        logger.warning(
            "Unable to fetch attendance photo",
            extra={"event_id": event_id, "code": exc.code, "details": exc.details},
        )
        return Response({"detail": exc.message, "code": exc.code}, status=status.HTTP_502_BAD_GATEWAY)

    context = {
        "event_id": event_id,
        "mime_type": photo.mime_type,
        "image_base64": base64.b64encode(content).decode("ascii"),
    }
    return render(request, "attendance/photo.html", context)
