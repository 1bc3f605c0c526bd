import asyncio

import requests
from django.core.management.base import BaseCommand, CommandError

from capture.api_client import AttendanceApiClient
from capture.config import CaptureConfig
from capture.exceptions import AttendanceRejected, CaptureUnavailable
from capture.photo import OpenCVVideoSource
from capture.session import run_checkin


class Command(BaseCommand):
    help = "Open the camera, wait for a face and submit today's attendance"

    def add_arguments(self, parser):
        defaults = CaptureConfig.from_env()
        parser.add_argument("--api-url", default=defaults.api_url)
        parser.add_argument("--username", default=defaults.username)
        parser.add_argument("--password", default=defaults.password)
        parser.add_argument("--camera", default=str(defaults.camera_source))
        parser.add_argument("--interval", type=float, default=defaults.interval)
        parser.add_argument("--timeout", type=float, default=defaults.timeout)
        parser.add_argument("--no-photo", action="store_true", default=not defaults.with_photo)

    def handle(self, *args, **options):
        if not options["username"] or not options["password"]:
            raise CommandError("--username and --password are required (or set ATTENDANCE_USERNAME/ATTENDANCE_PASSWORD)")

        try:
            from capture.face_model import FaceRecognitionModel
        except ImportError as exc:
            raise CommandError(f"Face model unavailable, install the capture extra: {exc}") from exc

        camera = options["camera"]
        source = OpenCVVideoSource(int(camera) if camera.isdigit() else camera)
        api_client = AttendanceApiClient(options["api_url"])
        try:
            api_client.login(options["username"], options["password"])
        except requests.RequestException as exc:
            raise CommandError(f"Login failed: {exc}") from exc

        self.stdout.write("Looking for a face, stay in front of the camera...")
        try:
            attendance = asyncio.run(
                run_checkin(
                    source,
                    FaceRecognitionModel(),
                    api_client,
                    interval=options["interval"],
                    with_photo=not options["no_photo"],
                    timeout=options["timeout"] or None,
                )
            )
        except CaptureUnavailable as exc:
            raise CommandError(f"Camera unavailable: {exc}") from exc
        except asyncio.TimeoutError as exc:
            raise CommandError("No face detected before the timeout") from exc
        except AttendanceRejected as exc:
            raise CommandError(exc.detail) from exc

        self.stdout.write(
            self.style.SUCCESS(
                f"Attendance recorded ✅ status={attendance.get('status')} "
                f"hasPhoto={attendance.get('hasPhoto')} at {attendance.get('timestamp')}"
            )
        )
