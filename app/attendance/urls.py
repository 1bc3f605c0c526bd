from django.urls import path

from attendance.views import attendance_api, attendance_photo_page, daily_roster_api

urlpatterns = [
    path("attendance/", attendance_api, name="attendance-api"),
    path("attendance/daily/", daily_roster_api, name="attendance-daily"),
    path("attendance/<int:event_id>/photo/", attendance_photo_page, name="attendance-photo"),
]
