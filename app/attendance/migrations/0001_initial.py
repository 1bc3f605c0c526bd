import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="AttendanceEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("timestamp", models.DateTimeField(default=django.utils.timezone.now)),
                ("day", models.DateField()),
                (
                    "status",
                    models.CharField(choices=[("PRESENT", "Present"), ("LATE", "Late")], max_length=16),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="attendance_events",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["user", "timestamp"], name="attendance_user_ts_idx"),
                    models.Index(fields=["timestamp"], name="attendance_ts_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("user", "day"), name="uq_attendance_user_day"),
                ],
            },
        ),
        migrations.CreateModel(
            name="AttendancePhoto",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("drive_file_id", models.CharField(max_length=255)),
                ("drive_url", models.URLField(max_length=1024)),
                ("mime_type", models.CharField(default="image/jpeg", max_length=64)),
                ("file_size", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "event",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="photo",
                        to="attendance.attendanceevent",
                    ),
                ),
            ],
        ),
    ]
