import importlib
import os
from datetime import date, datetime, time, timezone as dt_timezone
from unittest.mock import patch

from django.contrib.auth.models import AnonymousUser
from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

import config.settings
from accounts.models import User
from attendance.claims import PhotoClaim, PhotoReference, VectorClaim, build_claim
from attendance.exceptions import DuplicateAttendance, InvalidFaceData, Unauthorized
from attendance.models import AttendanceEvent, AttendancePhoto
from attendance.services.history import attendance_history, current_month_window, parse_bound
from attendance.services.ingest import record_attendance
from attendance.services.status import classify_status
from drive_storage.exceptions import StorageCredentialRejected


DESCRIPTOR = [0.01 * i for i in range(128)]


def _at(year, month, day, hour=0, minute=0, second=0, microsecond=0):
    return timezone.make_aware(datetime(year, month, day, hour, minute, second, microsecond))


def _photo_ref(file_id="drive-file-1"):
    return PhotoReference(file_id=file_id, url=f"https://drive.google.com/file/d/{file_id}/view", file_size=2048)


class ClassifyStatusTests(SimpleTestCase):
    def test_on_time_up_to_nine_sharp(self):
        self.assertEqual(classify_status(_at(2026, 3, 2, 8, 59, 59)), AttendanceEvent.STATUS_PRESENT)
        self.assertEqual(classify_status(_at(2026, 3, 2, 9, 0, 0)), AttendanceEvent.STATUS_PRESENT)

    def test_late_after_nine(self):
        self.assertEqual(classify_status(_at(2026, 3, 2, 9, 0, 0, 1000)), AttendanceEvent.STATUS_LATE)
        self.assertEqual(classify_status(_at(2026, 3, 2, 9, 1)), AttendanceEvent.STATUS_LATE)
        self.assertEqual(classify_status(_at(2026, 3, 2, 17, 30)), AttendanceEvent.STATUS_LATE)

    def test_early_morning_is_present(self):
        self.assertEqual(classify_status(_at(2026, 3, 2, 0, 5)), AttendanceEvent.STATUS_PRESENT)

    @override_settings(TIME_ZONE="Asia/Jakarta")
    def test_uses_server_local_time(self):
        # 01:30 UTC is 08:30 in Jakarta.
        moment = datetime(2026, 3, 2, 1, 30, tzinfo=dt_timezone.utc)
        self.assertEqual(classify_status(moment), AttendanceEvent.STATUS_PRESENT)

    def test_cutoff_can_be_parameterized(self):
        self.assertEqual(
            classify_status(_at(2026, 3, 2, 9, 30), late_after=time(10, 0)),
            AttendanceEvent.STATUS_PRESENT,
        )


class TimeZoneSettingTests(SimpleTestCase):
    def tearDown(self):
        importlib.reload(config.settings)

    def test_time_zone_comes_from_environment(self):
        with patch.dict(os.environ, {"DJANGO_TIME_ZONE": "Asia/Jakarta"}):
            importlib.reload(config.settings)

        self.assertEqual(config.settings.TIME_ZONE, "Asia/Jakarta")

    def test_time_zone_defaults_to_utc(self):
        with patch.dict(os.environ):
            os.environ.pop("DJANGO_TIME_ZONE", None)
            importlib.reload(config.settings)

        self.assertEqual(config.settings.TIME_ZONE, "UTC")


class BuildClaimTests(SimpleTestCase):
    def test_claim_without_photo_is_vector_claim(self):
        claim = build_claim(DESCRIPTOR)
        self.assertIsInstance(claim, VectorClaim)

    def test_claim_with_photo_is_photo_claim(self):
        claim = build_claim(DESCRIPTOR, photo=_photo_ref())
        self.assertIsInstance(claim, PhotoClaim)
        self.assertEqual(claim.photo.file_id, "drive-file-1")


class RecordAttendanceTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="user1", password="pwd12345", full_name="John Doe")

    @patch("django.utils.timezone.now")
    def test_records_present_without_photo(self, mock_now):
        mock_now.return_value = _at(2026, 3, 2, 8, 30)

        result = record_attendance(self.user, VectorClaim(descriptor=DESCRIPTOR))

        self.assertEqual(result.status, AttendanceEvent.STATUS_PRESENT)
        self.assertFalse(result.has_photo)
        event = AttendanceEvent.objects.get()
        self.assertEqual(event.pk, result.event_id)
        self.assertEqual(event.user, self.user)
        self.assertEqual(event.day, date(2026, 3, 2))
        self.assertEqual(event.timestamp, _at(2026, 3, 2, 8, 30))
        self.assertEqual(AttendancePhoto.objects.count(), 0)

    @patch("django.utils.timezone.now")
    def test_timestamp_comes_from_server_clock(self, mock_now):
        mock_now.return_value = _at(2026, 3, 2, 9, 45)
        claim = VectorClaim(descriptor=DESCRIPTOR, captured_at=_at(2026, 3, 2, 7, 0))

        result = record_attendance(self.user, claim)

        self.assertEqual(result.timestamp, _at(2026, 3, 2, 9, 45))
        self.assertEqual(result.status, AttendanceEvent.STATUS_LATE)

    @patch("django.utils.timezone.now")
    def test_records_photo_with_event(self, mock_now):
        mock_now.return_value = _at(2026, 3, 2, 8, 0)

        result = record_attendance(self.user, PhotoClaim(descriptor=DESCRIPTOR, photo=_photo_ref()))

        self.assertTrue(result.has_photo)
        photo = AttendancePhoto.objects.get()
        self.assertEqual(photo.event_id, result.event_id)
        self.assertEqual(photo.drive_file_id, "drive-file-1")
        self.assertEqual(photo.mime_type, "image/jpeg")
        self.assertEqual(photo.file_size, 2048)

    @patch("django.utils.timezone.now")
    def test_second_attendance_same_day_is_rejected(self, mock_now):
        mock_now.return_value = _at(2026, 3, 2, 8, 0)
        record_attendance(self.user, VectorClaim(descriptor=DESCRIPTOR))

        mock_now.return_value = _at(2026, 3, 2, 17, 0)
        with self.assertRaises(DuplicateAttendance):
            record_attendance(self.user, PhotoClaim(descriptor=DESCRIPTOR, photo=_photo_ref()))

        self.assertEqual(AttendanceEvent.objects.count(), 1)
        self.assertEqual(AttendancePhoto.objects.count(), 0)

    @patch("attendance.services.ingest._has_event_on", return_value=False)
    @patch("django.utils.timezone.now")
    def test_unique_constraint_rejects_race_past_the_precheck(self, mock_now, _mock_precheck):
        mock_now.return_value = _at(2026, 3, 2, 8, 0)
        record_attendance(self.user, VectorClaim(descriptor=DESCRIPTOR))

        mock_now.return_value = _at(2026, 3, 2, 8, 0, 1)
        with self.assertRaises(DuplicateAttendance):
            record_attendance(self.user, VectorClaim(descriptor=DESCRIPTOR))

        self.assertEqual(AttendanceEvent.objects.filter(user=self.user).count(), 1)

    @patch("django.utils.timezone.now")
    def test_repeated_submissions_create_exactly_one_event(self, mock_now):
        mock_now.return_value = _at(2026, 3, 2, 8, 0)
        outcomes = []
        for _ in range(5):
            try:
                record_attendance(self.user, VectorClaim(descriptor=DESCRIPTOR))
                outcomes.append("created")
            except DuplicateAttendance:
                outcomes.append("duplicate")

        self.assertEqual(outcomes, ["created"] + ["duplicate"] * 4)
        self.assertEqual(AttendanceEvent.objects.count(), 1)

    @patch("attendance.services.ingest.AttendancePhoto")
    @patch("django.utils.timezone.now")
    def test_photo_failure_rolls_back_event(self, mock_now, mock_photo_model):
        mock_now.return_value = _at(2026, 3, 2, 8, 0)
        mock_photo_model.objects.create.side_effect = DatabaseError("photo insert failed")

        with self.assertRaises(DatabaseError):
            record_attendance(self.user, PhotoClaim(descriptor=DESCRIPTOR, photo=_photo_ref()))

        self.assertEqual(AttendanceEvent.objects.count(), 0)
        self.assertEqual(AttendancePhoto.objects.count(), 0)

    @patch("django.utils.timezone.now")
    def test_next_day_is_allowed_and_late_after_nine(self, mock_now):
        mock_now.return_value = _at(2026, 3, 2, 8, 30)
        first = record_attendance(self.user, VectorClaim(descriptor=DESCRIPTOR))

        mock_now.return_value = _at(2026, 3, 3, 9, 5)
        second = record_attendance(self.user, VectorClaim(descriptor=DESCRIPTOR))

        self.assertEqual(first.status, AttendanceEvent.STATUS_PRESENT)
        self.assertEqual(second.status, AttendanceEvent.STATUS_LATE)
        self.assertEqual(AttendanceEvent.objects.count(), 2)

    @override_settings(TIME_ZONE="Asia/Jakarta")
    @patch("django.utils.timezone.now")
    def test_day_boundary_is_local_midnight(self, mock_now):
        mock_now.return_value = _at(2026, 3, 2, 23, 30)
        record_attendance(self.user, VectorClaim(descriptor=DESCRIPTOR))

        mock_now.return_value = _at(2026, 3, 3, 0, 10)
        result = record_attendance(self.user, VectorClaim(descriptor=DESCRIPTOR))

        self.assertEqual(AttendanceEvent.objects.get(pk=result.event_id).day, date(2026, 3, 3))

    def test_other_users_are_independent(self):
        other = User.objects.create_user(username="user2", password="pwd12345")
        with patch("django.utils.timezone.now", return_value=_at(2026, 3, 2, 8, 0)):
            record_attendance(self.user, VectorClaim(descriptor=DESCRIPTOR))
            record_attendance(other, VectorClaim(descriptor=DESCRIPTOR))

        self.assertEqual(AttendanceEvent.objects.count(), 2)

    def test_anonymous_caller_is_unauthorized(self):
        with self.assertRaises(Unauthorized):
            record_attendance(AnonymousUser(), VectorClaim(descriptor=DESCRIPTOR))
        with self.assertRaises(Unauthorized):
            record_attendance(None, VectorClaim(descriptor=DESCRIPTOR))

    def test_invalid_descriptors_are_rejected(self):
        for descriptor in (None, [], "0.1,0.2", [0.1, "x"], [True, False], [float("nan")], [10**400], {"a": 1}):
            with self.subTest(descriptor=descriptor):
                with self.assertRaises(InvalidFaceData):
                    record_attendance(self.user, VectorClaim(descriptor=descriptor))

        self.assertEqual(AttendanceEvent.objects.count(), 0)


class AttendanceHistoryTests(TestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="pwd12345", role=User.ROLE_ADMIN)
        self.alice = User.objects.create_user(username="alice", password="pwd12345", full_name="Alice")
        self.bob = User.objects.create_user(username="bob", password="pwd12345", full_name="Bob")

        self.alice_early = self._event(self.alice, _at(2026, 3, 2, 8, 0))
        self.alice_late = self._event(self.alice, _at(2026, 3, 5, 9, 30), AttendanceEvent.STATUS_LATE)
        self.bob_event = self._event(self.bob, _at(2026, 3, 3, 8, 15))
        self.alice_previous_month = self._event(self.alice, _at(2026, 2, 27, 8, 0))

    def _event(self, user, moment, status_value=AttendanceEvent.STATUS_PRESENT):
        return AttendanceEvent.objects.create(
            user=user, timestamp=moment, day=timezone.localdate(moment), status=status_value
        )

    @patch("django.utils.timezone.now")
    def test_regular_user_only_sees_own_events(self, mock_now):
        mock_now.return_value = _at(2026, 3, 10, 12, 0)

        events = list(attendance_history(self.alice, user_id=self.bob.pk))

        self.assertEqual(events, [self.alice_late, self.alice_early])

    @patch("django.utils.timezone.now")
    def test_admin_can_filter_any_user(self, mock_now):
        mock_now.return_value = _at(2026, 3, 10, 12, 0)

        self.assertEqual(list(attendance_history(self.admin, user_id=self.bob.pk)), [self.bob_event])
        self.assertEqual(
            list(attendance_history(self.admin)),
            [self.alice_late, self.bob_event, self.alice_early],
        )

    @patch("django.utils.timezone.now")
    def test_default_window_is_current_month(self, mock_now):
        mock_now.return_value = _at(2026, 3, 10, 12, 0)

        events = list(attendance_history(self.alice))

        self.assertNotIn(self.alice_previous_month, events)

    def test_explicit_window_is_inclusive(self):
        start = parse_bound("2026-02-27")
        end = parse_bound("2026-03-02", end_of_day=True)

        events = list(attendance_history(self.alice, start=start, end=end))

        self.assertEqual(events, [self.alice_early, self.alice_previous_month])

    @patch("django.utils.timezone.now")
    def test_single_bound_does_not_fall_back_to_current_month(self, mock_now):
        mock_now.return_value = _at(2026, 4, 10, 12, 0)

        since_march_3 = list(attendance_history(self.alice, start=parse_bound("2026-03-03")))
        until_march_1 = list(attendance_history(self.alice, end=parse_bound("2026-03-01", end_of_day=True)))

        self.assertEqual(since_march_3, [self.alice_late])
        self.assertEqual(until_march_1, [self.alice_previous_month])

    def test_month_window_covers_whole_month(self):
        start, end = current_month_window(_at(2026, 2, 14, 10, 0))

        self.assertEqual(start, _at(2026, 2, 1))
        self.assertEqual(end, _at(2026, 2, 28, 23, 59, 59, 999999))

    def test_parse_bound_rejects_garbage(self):
        with self.assertRaises(ValueError):
            parse_bound("yesterday")
        self.assertIsNone(parse_bound(""))
        self.assertIsNone(parse_bound(None))


class AttendanceApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(
            username="admin", password="pwd12345", full_name="Administrator", role=User.ROLE_ADMIN
        )
        self.user1 = User.objects.create_user(username="user1", password="pwd12345", full_name="John Doe")
        self.user2 = User.objects.create_user(username="user2", password="pwd12345", full_name="Jane Smith")

    def _submit(self, user, face_data):
        self.client.force_authenticate(user)
        return self.client.post("/api/attendance/", {"faceData": face_data}, format="json")

    @patch("django.utils.timezone.now")
    def test_end_to_end_daily_scenario(self, mock_now):
        mock_now.return_value = _at(2026, 3, 2, 8, 30)
        response = self._submit(self.user1, {"descriptor": DESCRIPTOR, "timestamp": "2026-03-02T08:30:00Z"})

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data["success"])
        self.assertEqual(response.data["attendance"]["status"], "PRESENT")
        self.assertFalse(response.data["attendance"]["hasPhoto"])

        mock_now.return_value = _at(2026, 3, 2, 13, 0)
        response = self._submit(self.user1, {"descriptor": DESCRIPTOR})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "duplicate_attendance")

        mock_now.return_value = _at(2026, 3, 3, 9, 5)
        response = self._submit(self.user1, {"descriptor": DESCRIPTOR})

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["attendance"]["status"], "LATE")
        self.assertEqual(AttendanceEvent.objects.filter(user=self.user1).count(), 2)

    @patch("django.utils.timezone.now")
    def test_submission_with_photo_metadata(self, mock_now):
        mock_now.return_value = _at(2026, 3, 2, 8, 0)
        response = self._submit(
            self.user1,
            {
                "descriptor": DESCRIPTOR,
                "photoMetadata": {
                    "fileId": "abc123",
                    "url": "https://drive.google.com/file/d/abc123/view",
                    "fileSize": 4096,
                },
            },
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data["attendance"]["hasPhoto"])
        self.assertNotIn("url", response.data["attendance"])
        photo = AttendancePhoto.objects.get()
        self.assertEqual(photo.drive_file_id, "abc123")
        self.assertEqual(photo.file_size, 4096)

    def test_flat_body_is_accepted(self):
        self.client.force_authenticate(self.user1)
        response = self.client.post("/api/attendance/", {"descriptor": DESCRIPTOR}, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_unauthenticated_submission_is_rejected(self):
        response = self.client.post("/api/attendance/", {"faceData": {"descriptor": DESCRIPTOR}}, format="json")

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(AttendanceEvent.objects.count(), 0)

    def test_missing_face_data_is_rejected(self):
        self.client.force_authenticate(self.user1)
        response = self.client.post("/api/attendance/", {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "invalid_face_data")

    def test_invalid_descriptor_is_rejected(self):
        response = self._submit(self.user1, {"descriptor": "not-a-vector"})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "invalid_face_data")
        self.assertEqual(AttendanceEvent.objects.count(), 0)

    def test_oversized_number_in_descriptor_is_rejected(self):
        response = self._submit(self.user1, {"descriptor": [10**400, 0.1]})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "invalid_face_data")
        self.assertEqual(AttendanceEvent.objects.count(), 0)

    def test_invalid_photo_metadata_is_rejected(self):
        response = self._submit(self.user1, {"descriptor": DESCRIPTOR, "photoMetadata": {"fileId": "x"}})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("photoMetadata", response.data)

    @patch("attendance.views.record_attendance", side_effect=DatabaseError("database is locked"))
    def test_unexpected_database_error_returns_generic_message(self, _mock_record):
        with self.assertLogs("attendance.views", level="ERROR"):
            response = self._submit(self.user1, {"descriptor": DESCRIPTOR})

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data, {"detail": "Internal server error"})

    @patch("django.utils.timezone.now")
    def test_history_is_scoped_for_regular_users(self, mock_now):
        mock_now.return_value = _at(2026, 3, 2, 8, 0)
        record_attendance(self.user1, VectorClaim(descriptor=DESCRIPTOR))
        record_attendance(self.user2, VectorClaim(descriptor=DESCRIPTOR))

        self.client.force_authenticate(self.user1)
        response = self.client.get(f"/api/attendance/?userId={self.user2.pk}")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]["user"], {"username": "user1", "fullName": "John Doe"})

        self.client.force_authenticate(self.admin)
        response = self.client.get(f"/api/attendance/?userId={self.user2.pk}")

        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]["user"]["username"], "user2")

    @patch("django.utils.timezone.now")
    def test_history_is_most_recent_first(self, mock_now):
        for day, hour in ((2, 8), (3, 9), (4, 7)):
            mock_now.return_value = _at(2026, 3, day, hour, 30)
            record_attendance(self.user1, VectorClaim(descriptor=DESCRIPTOR))

        self.client.force_authenticate(self.user1)
        response = self.client.get("/api/attendance/?startDate=2026-03-01&endDate=2026-03-31")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([item["status"] for item in response.data], ["PRESENT", "LATE", "PRESENT"])
        self.assertFalse(response.data[0]["hasPhoto"])

    @patch("django.utils.timezone.now")
    def test_history_with_start_date_only(self, mock_now):
        for day in (2, 3, 4):
            mock_now.return_value = _at(2026, 3, day, 8, 30)
            record_attendance(self.user1, VectorClaim(descriptor=DESCRIPTOR))

        mock_now.return_value = _at(2026, 4, 10, 12, 0)
        self.client.force_authenticate(self.user1)
        response = self.client.get("/api/attendance/?startDate=2026-03-03")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)

    def test_history_rejects_invalid_dates(self):
        self.client.force_authenticate(self.user1)
        response = self.client.get("/api/attendance/?startDate=soon&endDate=later")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "invalid_date")

    def test_history_requires_authentication(self):
        response = self.client.get("/api/attendance/")

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class DailyRosterApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="pwd12345", role=User.ROLE_ADMIN)
        self.alice = User.objects.create_user(username="alice", password="pwd12345", full_name="Alice")
        self.bob = User.objects.create_user(username="bob", password="pwd12345", full_name="Bob")
        moment = _at(2026, 3, 2, 9, 10)
        AttendanceEvent.objects.create(
            user=self.alice, timestamp=moment, day=date(2026, 3, 2), status=AttendanceEvent.STATUS_LATE
        )

    def test_missing_event_defaults_to_absent(self):
        self.client.force_authenticate(self.admin)
        response = self.client.get("/api/attendance/daily/?date=2026-03-02")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        statuses = {row["user"]["username"]: row["status"] for row in response.data["results"]}
        self.assertEqual(statuses, {"alice": "LATE", "bob": "ABSENT"})
        self.assertFalse(AttendanceEvent.objects.filter(status=AttendanceEvent.STATUS_ABSENT).exists())

    def test_roster_is_admin_only(self):
        self.client.force_authenticate(self.alice)
        response = self.client.get("/api/attendance/daily/")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_roster_rejects_invalid_date(self):
        self.client.force_authenticate(self.admin)
        response = self.client.get("/api/attendance/daily/?date=02-03-2026")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class AttendancePhotoPageTests(APITestCase):
    def setUp(self):
        self.owner = User.objects.create_user(username="owner", password="pwd12345")
        self.stranger = User.objects.create_user(username="stranger", password="pwd12345")
        self.admin = User.objects.create_user(username="admin", password="pwd12345", role=User.ROLE_ADMIN)
        moment = _at(2026, 3, 2, 8, 0)
        self.event = AttendanceEvent.objects.create(
            user=self.owner, timestamp=moment, day=date(2026, 3, 2), status=AttendanceEvent.STATUS_PRESENT
        )
        AttendancePhoto.objects.create(
            event=self.event,
            drive_file_id="file-xyz",
            drive_url="https://drive.google.com/file/d/file-xyz/view",
            file_size=3,
        )
        self.photo_less = AttendanceEvent.objects.create(
            user=self.owner, timestamp=_at(2026, 3, 3, 8, 0), day=date(2026, 3, 3), status=AttendanceEvent.STATUS_PRESENT
        )

    @patch("attendance.views.DriveStorageClient.download", return_value=b"\xff\xd8\xff")
    def test_owner_sees_rendered_photo(self, mock_download):
        self.client.force_authenticate(self.owner)
        response = self.client.get(f"/api/attendance/{self.event.pk}/photo/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertContains(response, "data:image/jpeg;base64,/9j/")
        mock_download.assert_called_once_with("file-xyz")

    @patch("attendance.views.DriveStorageClient.download", return_value=b"\xff\xd8\xff")
    def test_admin_sees_any_photo(self, _mock_download):
        self.client.force_authenticate(self.admin)
        response = self.client.get(f"/api/attendance/{self.event.pk}/photo/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)

    @patch("attendance.views.DriveStorageClient.download")
    def test_other_user_gets_not_found(self, mock_download):
        self.client.force_authenticate(self.stranger)
        response = self.client.get(f"/api/attendance/{self.event.pk}/photo/")

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        mock_download.assert_not_called()

    def test_event_without_photo_is_not_found(self):
        self.client.force_authenticate(self.owner)
        response = self.client.get(f"/api/attendance/{self.photo_less.pk}/photo/")

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    @patch("attendance.views.DriveStorageClient.download", side_effect=StorageCredentialRejected())
    def test_storage_failure_is_reported(self, _mock_download):
        self.client.force_authenticate(self.owner)
        response = self.client.get(f"/api/attendance/{self.event.pk}/photo/", HTTP_ACCEPT="application/json")

        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(response.data["code"], "storage_credential_rejected")
