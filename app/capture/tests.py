import asyncio
import json
import sys
import types
from datetime import datetime, timezone as dt_timezone
from io import StringIO
from unittest import IsolatedAsyncioTestCase, TestCase
from unittest.mock import patch

import numpy as np
import requests
from django.core.management import call_command
from django.core.management.base import CommandError

from attendance.claims import PhotoReference
from capture.api_client import AttendanceApiClient
from capture.exceptions import AttendanceRejected, CaptureUnavailable
from capture.loop import DetectionLoop, DetectionResult, DetectionState
from capture.photo import encode_jpeg
from capture.session import PhotoUploader, detect_face, run_checkin
from drive_storage.exceptions import StorageQuotaExceeded


DESCRIPTOR = [0.1] * 128


class FakeSource:
    def __init__(self, frame=None):
        self.frame = frame if frame is not None else np.zeros((8, 8, 3), dtype=np.uint8)
        self.is_open = False
        self.open_calls = 0
        self.release_calls = 0

    def open(self):
        self.open_calls += 1
        self.is_open = True

    def read_frame(self):
        return self.frame

    def release(self):
        self.release_calls += 1
        self.is_open = False


class ScriptedModel:
    def __init__(self, script):
        self.script = list(script)
        self.calls = 0

    async def detect(self, frame):
        self.calls += 1
        item = self.script.pop(0) if self.script else []
        if isinstance(item, Exception):
            raise item
        return item


class GatedModel:
    def __init__(self):
        self.gate = asyncio.Event()

    async def detect(self, frame):
        await self.gate.wait()
        return [DESCRIPTOR]


class FakeApiClient:
    def __init__(self):
        self.uploads = []
        self.submitted = []
        self.logins = []

    def login(self, username, password):
        self.logins.append(username)

    def upload_photo(self, payload, file_name):
        self.uploads.append((payload, file_name))
        return PhotoReference(file_id="file-1", url="https://drive.google.com/file/d/file-1/view", file_size=len(payload))

    def submit_attendance(self, result):
        self.submitted.append(result)
        return {"status": "PRESENT", "hasPhoto": result.photo is not None}


class DetectionLoopTests(IsolatedAsyncioTestCase):
    def setUp(self):
        self.source = FakeSource()
        self.detected = []
        self.no_face = 0

    def _loop(self, model, capture_photo=None, interval=0.01):
        def on_face_detected(result):
            self.detected.append(result)

        def on_no_face():
            self.no_face += 1

        return DetectionLoop(self.source, model, on_face_detected, on_no_face, capture_photo, interval)

    async def test_face_is_reported_once_per_activation(self):
        loop = self._loop(ScriptedModel([[], [DESCRIPTOR], [DESCRIPTOR], [DESCRIPTOR]]))

        await loop.start()
        for _ in range(100):
            if self.detected:
                break
            await asyncio.sleep(0.01)
        await asyncio.sleep(0.05)
        await loop.aclose()

        self.assertEqual(len(self.detected), 1)
        self.assertEqual(self.no_face, 1)
        self.assertEqual(self.detected[0].descriptor, tuple(DESCRIPTOR))
        self.assertIsNone(self.detected[0].photo)
        self.assertIs(loop.state, DetectionState.STOPPED)
        self.assertFalse(self.source.is_open)

    async def test_manual_ticks_follow_the_latch(self):
        model = ScriptedModel([[], [DESCRIPTOR], [DESCRIPTOR], [DESCRIPTOR]])
        loop = self._loop(model)
        loop.arm()

        for _ in range(4):
            await loop.tick()

        self.assertEqual(len(self.detected), 1)
        self.assertEqual(self.no_face, 1)
        self.assertEqual(model.calls, 2)

    async def test_overlapping_ticks_report_a_single_detection(self):
        photo_calls = []

        async def slow_photo(frame):
            photo_calls.append(frame)
            await asyncio.sleep(0.01)
            return PhotoReference(file_id="f", url="https://drive/f", file_size=1)

        model = GatedModel()
        loop = self._loop(model, capture_photo=slow_photo)
        loop.arm()

        ticks = [asyncio.create_task(loop.tick()) for _ in range(3)]
        await asyncio.sleep(0)
        model.gate.set()
        await asyncio.gather(*ticks)

        self.assertEqual(len(self.detected), 1)
        self.assertEqual(len(photo_calls), 1)
        self.assertEqual(self.detected[0].photo.file_id, "f")

    async def test_no_face_is_reported_every_tick(self):
        loop = self._loop(ScriptedModel([[], [], []]))
        loop.arm()

        for _ in range(3):
            await loop.tick()

        self.assertEqual(self.no_face, 3)
        self.assertEqual(self.detected, [])
        self.assertIs(loop.state, DetectionState.ARMED)

    async def test_model_failure_counts_as_no_face(self):
        loop = self._loop(ScriptedModel([RuntimeError("model crashed")]))
        loop.arm()

        with self.assertLogs("capture.loop", level="WARNING"):
            await loop.tick()

        self.assertEqual(self.no_face, 1)
        self.assertIs(loop.state, DetectionState.ARMED)

    async def test_face_without_usable_descriptor_is_ignored(self):
        loop = self._loop(ScriptedModel([[[]], [["x", "y"]]]))
        loop.arm()

        await loop.tick()
        await loop.tick()

        self.assertEqual(self.detected, [])
        self.assertEqual(self.no_face, 0)
        self.assertIs(loop.state, DetectionState.ARMED)

    async def test_capture_unavailable_still_reports_face(self):
        async def broken_capture(frame):
            raise CaptureUnavailable("Video source has no dimensions yet")

        loop = self._loop(ScriptedModel([[DESCRIPTOR]]), capture_photo=broken_capture)
        loop.arm()

        await loop.tick()

        self.assertEqual(len(self.detected), 1)
        self.assertIsNone(self.detected[0].photo)

    async def test_upload_failure_still_reports_face(self):
        async def quota_exceeded(frame):
            raise StorageQuotaExceeded()

        loop = self._loop(ScriptedModel([[DESCRIPTOR]]), capture_photo=quota_exceeded)
        loop.arm()

        with self.assertLogs("capture.loop", level="WARNING"):
            await loop.tick()

        self.assertEqual(len(self.detected), 1)
        self.assertIsNone(self.detected[0].photo)
        self.assertFalse(self.source.is_open)

    async def test_rearming_resets_the_latch(self):
        loop = self._loop(ScriptedModel([[DESCRIPTOR], [DESCRIPTOR]]))
        loop.arm()
        await loop.tick()

        loop.arm()
        await loop.tick()

        self.assertEqual(len(self.detected), 2)
        self.assertEqual(self.source.open_calls, 2)

    async def test_context_manager_releases_camera(self):
        async with self._loop(ScriptedModel([])) as loop:
            await loop.start()
            await asyncio.sleep(0.03)
            self.assertTrue(self.source.is_open)

        self.assertIs(loop.state, DetectionState.STOPPED)
        self.assertFalse(self.source.is_open)
        self.assertGreater(self.no_face, 0)

    async def test_stop_is_idempotent(self):
        loop = self._loop(ScriptedModel([]))
        await loop.start()

        loop.stop()
        loop.stop()
        await loop.aclose()

        self.assertIs(loop.state, DetectionState.STOPPED)
        self.assertFalse(self.source.is_open)


class DetectionLoopStopTests(TestCase):
    def test_stop_before_start_is_safe(self):
        source = FakeSource()
        loop = DetectionLoop(source, ScriptedModel([]), lambda result: None, lambda: None)

        loop.stop()
        loop.stop()

        self.assertIs(loop.state, DetectionState.STOPPED)
        self.assertEqual(source.open_calls, 0)


class EncodeJpegTests(TestCase):
    def test_encodes_frame_as_jpeg(self):
        payload = encode_jpeg(np.zeros((16, 16, 3), dtype=np.uint8))

        self.assertTrue(payload.startswith(b"\xff\xd8"))

    def test_frame_without_dimensions_is_unavailable(self):
        with self.assertRaises(CaptureUnavailable):
            encode_jpeg(np.zeros((0, 0, 3), dtype=np.uint8))
        with self.assertRaises(CaptureUnavailable):
            encode_jpeg(None)


class CaptureSessionTests(IsolatedAsyncioTestCase):
    async def test_photo_uploader_encodes_detection_frame(self):
        api_client = FakeApiClient()
        uploader = PhotoUploader(api_client, FakeSource())

        reference = await uploader(np.zeros((8, 8, 3), dtype=np.uint8))

        payload, file_name = api_client.uploads[0]
        self.assertTrue(payload.startswith(b"\xff\xd8"))
        self.assertTrue(file_name.startswith("attendance-"))
        self.assertEqual(reference.file_size, len(payload))

    async def test_detect_face_without_photo(self):
        source = FakeSource()

        result = await detect_face(source, ScriptedModel([[], [DESCRIPTOR]]), interval=0.01, timeout=2)

        self.assertIsInstance(result, DetectionResult)
        self.assertIsNone(result.photo)
        self.assertFalse(source.is_open)

    async def test_detect_face_times_out_and_releases_camera(self):
        source = FakeSource()

        with self.assertRaises(asyncio.TimeoutError):
            await detect_face(source, ScriptedModel([]), interval=0.01, timeout=0.05)

        self.assertFalse(source.is_open)

    async def test_run_checkin_uploads_photo_and_submits(self):
        api_client = FakeApiClient()

        attendance = await run_checkin(FakeSource(), ScriptedModel([[DESCRIPTOR]]), api_client, interval=0.01, timeout=2)

        self.assertEqual(attendance, {"status": "PRESENT", "hasPhoto": True})
        self.assertEqual(len(api_client.uploads), 1)
        self.assertEqual(api_client.submitted[0].photo.file_id, "file-1")

    async def test_run_checkin_can_skip_photo(self):
        api_client = FakeApiClient()

        attendance = await run_checkin(
            FakeSource(), ScriptedModel([[DESCRIPTOR]]), api_client, interval=0.01, with_photo=False, timeout=2
        )

        self.assertFalse(attendance["hasPhoto"])
        self.assertEqual(api_client.uploads, [])


def _response(status_code, payload):
    response = requests.Response()
    response.status_code = status_code
    response._content = json.dumps(payload).encode("utf-8")
    return response


class AttendanceApiClientTests(TestCase):
    def setUp(self):
        self.api = AttendanceApiClient("http://attendance.local/api")
        self.api.access_token = "token-1"
        self.result = DetectionResult(
            descriptor=tuple(DESCRIPTOR),
            captured_at=datetime(2026, 3, 2, 8, 30, tzinfo=dt_timezone.utc),
            photo=PhotoReference(file_id="file-1", url="https://drive/file-1", file_size=10),
        )

    @patch("capture.api_client.requests.post")
    def test_submit_sends_face_data(self, mock_post):
        mock_post.return_value = _response(201, {"success": True, "attendance": {"status": "PRESENT", "hasPhoto": True}})

        attendance = self.api.submit_attendance(self.result)

        self.assertEqual(attendance["status"], "PRESENT")
        url = mock_post.call_args.args[0]
        body = mock_post.call_args.kwargs["json"]
        self.assertEqual(url, "http://attendance.local/api/attendance/")
        self.assertEqual(len(body["faceData"]["descriptor"]), 128)
        self.assertEqual(body["faceData"]["photoMetadata"]["fileId"], "file-1")
        self.assertEqual(mock_post.call_args.kwargs["headers"], {"Authorization": "Bearer token-1"})

    @patch("capture.api_client.requests.post")
    def test_duplicate_is_raised_as_rejection(self, mock_post):
        mock_post.return_value = _response(
            400, {"detail": "Attendance has already been recorded today.", "code": "duplicate_attendance"}
        )

        with self.assertRaises(AttendanceRejected) as exc:
            self.api.submit_attendance(self.result)

        self.assertEqual(exc.exception.code, "duplicate_attendance")
        self.assertEqual(exc.exception.status_code, 400)

    @patch("capture.api_client.requests.post")
    def test_upload_failure_maps_to_storage_error(self, mock_post):
        mock_post.return_value = _response(502, {"detail": "Google Drive quota exceeded.", "code": "storage_quota_exceeded"})

        with self.assertRaises(StorageQuotaExceeded):
            self.api.upload_photo(b"\xff\xd8", "a.jpg")

    @patch("capture.api_client.requests.post")
    def test_login_stores_access_token(self, mock_post):
        mock_post.return_value = _response(200, {"access": "jwt-access", "refresh": "jwt-refresh"})
        api = AttendanceApiClient("http://attendance.local/api/")

        api.login("user1", "user123")

        self.assertEqual(api.access_token, "jwt-access")
        self.assertEqual(mock_post.call_args.args[0], "http://attendance.local/api/auth/token/")


class StaticFaceModel:
    async def detect(self, frame):
        return [DESCRIPTOR]


class CaptureCheckinCommandTests(TestCase):
    def test_missing_face_model_is_reported(self):
        with patch.dict(sys.modules, {"capture.face_model": None}):
            with self.assertRaises(CommandError) as exc:
                call_command("capture_checkin", "--username", "user1", "--password", "user123")

        self.assertIn("capture extra", str(exc.exception))

    def test_credentials_are_required(self):
        with self.assertRaises(CommandError):
            call_command("capture_checkin", "--username", "", "--password", "")

    @patch("capture.management.commands.capture_checkin.AttendanceApiClient")
    @patch("capture.management.commands.capture_checkin.OpenCVVideoSource")
    def test_checkin_submits_detected_face(self, mock_source, mock_api_client):
        source = FakeSource()
        api_client = FakeApiClient()
        mock_source.return_value = source
        mock_api_client.return_value = api_client
        face_model = types.ModuleType("capture.face_model")
        face_model.FaceRecognitionModel = StaticFaceModel
        out = StringIO()

        with patch.dict(sys.modules, {"capture.face_model": face_model}):
            call_command(
                "capture_checkin", "--username", "user1", "--password", "user123", "--interval", "0.01", stdout=out
            )

        self.assertEqual(api_client.logins, ["user1"])
        self.assertEqual(len(api_client.submitted), 1)
        self.assertEqual(len(api_client.uploads), 1)
        self.assertFalse(source.is_open)
        self.assertIn("status=PRESENT", out.getvalue())
