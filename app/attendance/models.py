from django.conf import settings
from django.db import models
from django.utils import timezone


class AttendanceEvent(models.Model):
    STATUS_PRESENT = "PRESENT"
    STATUS_LATE = "LATE"
    # Reporting default for a day without an event, never stored.
    STATUS_ABSENT = "ABSENT"
    STATUS_CHOICES = [
        (STATUS_PRESENT, "Present"),
        (STATUS_LATE, "Late"),
    ]

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="attendance_events")
    timestamp = models.DateTimeField(default=timezone.now)
    day = models.DateField()
    status = models.CharField(max_length=16, choices=STATUS_CHOICES)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["user", "day"], name="uq_attendance_user_day"),
        ]
        indexes = [
            models.Index(fields=["user", "timestamp"], name="attendance_user_ts_idx"),
            models.Index(fields=["timestamp"], name="attendance_ts_idx"),
        ]

    def __str__(self):
        return f"AttendanceEvent<{self.user_id}:{self.day}:{self.status}>"

    @property
    def has_photo(self) -> bool:
        try:
            return self.photo is not None
        except AttendancePhoto.DoesNotExist:
            return False


class AttendancePhoto(models.Model):
    event = models.OneToOneField(AttendanceEvent, on_delete=models.CASCADE, related_name="photo")
    drive_file_id = models.CharField(max_length=255)
    drive_url = models.URLField(max_length=1024)
    mime_type = models.CharField(max_length=64, default="image/jpeg")
    file_size = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"AttendancePhoto<{self.event_id}:{self.drive_file_id}>"
