import base64
import json
from io import StringIO
from unittest.mock import patch

import requests
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import SimpleTestCase, override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.models import User
from drive_storage.client import DriveStorageClient, UploadedFile
from drive_storage.exceptions import (
    StorageCredentialRejected,
    StorageQuotaExceeded,
    StorageUnknownFailure,
    storage_error_for_code,
)


GOOGLE_DRIVE_SETTINGS = {
    "CLIENT_ID": "client-id",
    "CLIENT_SECRET": "client-secret",
    "REDIRECT_URI": "http://localhost:8000/api/oauth2callback",
    "REFRESH_TOKEN": "refresh-token",
    "FOLDER_ID": "folder-123",
    "TIMEOUT": 5,
}


def _response(status_code, payload=None, content=None):
    response = requests.Response()
    response.status_code = status_code
    if content is not None:
        response._content = content
    else:
        response._content = json.dumps(payload or {}).encode("utf-8")
    return response


def _token_response(access_token="access-1"):
    return _response(200, {"access_token": access_token, "expires_in": 3599, "token_type": "Bearer"})


def _drive_error(status_code, reason, message):
    return _response(status_code, {"error": {"code": status_code, "message": message, "errors": [{"reason": reason}]}})


class DriveStorageClientTests(SimpleTestCase):
    def setUp(self):
        self.drive = DriveStorageClient(
            client_id="client-id",
            client_secret="client-secret",
            refresh_token="refresh-token",
            redirect_uri="http://localhost:8000/api/oauth2callback",
            folder_id="folder-123",
        )

    @patch("drive_storage.client.requests.post")
    def test_upload_refreshes_token_and_returns_reference(self, mock_post):
        mock_post.side_effect = [
            _token_response("access-1"),
            _response(200, {"id": "file-1", "webViewLink": "https://view/1", "webContentLink": "https://dl/1"}),
        ]

        uploaded = self.drive.upload(b"jpeg-bytes", "attendance-1.jpg")

        self.assertEqual(uploaded, UploadedFile("file-1", "https://view/1", "https://dl/1"))
        token_call, upload_call = mock_post.call_args_list
        self.assertEqual(token_call.args[0], DriveStorageClient.TOKEN_URL)
        self.assertEqual(token_call.kwargs["data"]["grant_type"], "refresh_token")
        self.assertEqual(token_call.kwargs["data"]["refresh_token"], "refresh-token")

        self.assertEqual(upload_call.args[0], DriveStorageClient.UPLOAD_URL)
        self.assertEqual(upload_call.kwargs["params"]["uploadType"], "multipart")
        self.assertEqual(upload_call.kwargs["headers"]["Authorization"], "Bearer access-1")
        self.assertTrue(upload_call.kwargs["headers"]["Content-Type"].startswith("multipart/related; boundary="))
        body = upload_call.kwargs["data"]
        self.assertIn(b'"parents": ["folder-123"]', body)
        self.assertIn(b'"name": "attendance-1.jpg"', body)
        self.assertIn(b"jpeg-bytes", body)

    @patch("drive_storage.client.requests.post")
    def test_every_upload_refreshes_the_access_token(self, mock_post):
        mock_post.side_effect = [
            _token_response("access-1"),
            _response(200, {"id": "file-1"}),
            _token_response("access-2"),
            _response(200, {"id": "file-2"}),
        ]

        self.drive.upload(b"a", "a.jpg")
        self.drive.upload(b"b", "b.jpg")

        self.assertEqual(mock_post.call_count, 4)
        self.assertEqual(mock_post.call_args_list[3].kwargs["headers"]["Authorization"], "Bearer access-2")

    @patch("drive_storage.client.requests.post")
    def test_missing_view_link_falls_back_to_file_url(self, mock_post):
        mock_post.side_effect = [_token_response(), _response(200, {"id": "file-7"})]

        uploaded = self.drive.upload(b"a", "a.jpg")

        self.assertEqual(uploaded.web_view_link, "https://drive.google.com/file/d/file-7/view")
        self.assertEqual(uploaded.web_content_link, "")

    @patch("drive_storage.client.requests.post")
    def test_folder_is_optional(self, mock_post):
        self.drive.folder_id = ""
        mock_post.side_effect = [_token_response(), _response(200, {"id": "file-1"})]

        self.drive.upload(b"a", "a.jpg")

        self.assertNotIn(b"parents", mock_post.call_args_list[1].kwargs["data"])

    @patch("drive_storage.client.requests.post")
    def test_invalid_grant_is_credential_rejected(self, mock_post):
        mock_post.return_value = _response(400, {"error": "invalid_grant", "error_description": "Token has been expired"})

        with self.assertRaises(StorageCredentialRejected):
            self.drive.upload(b"a", "a.jpg")
        self.assertEqual(mock_post.call_count, 1)

    def test_missing_refresh_token_is_credential_rejected(self):
        self.drive.refresh_token = ""

        with self.assertRaises(StorageCredentialRejected):
            self.drive.refresh_access_token()

    @patch("drive_storage.client.requests.post")
    def test_unauthorized_upload_is_credential_rejected(self, mock_post):
        mock_post.side_effect = [_token_response(), _drive_error(401, "authError", "Invalid Credentials")]

        with self.assertRaises(StorageCredentialRejected):
            self.drive.upload(b"a", "a.jpg")

    @patch("drive_storage.client.requests.post")
    def test_quota_errors_are_reported(self, mock_post):
        mock_post.side_effect = [
            _token_response(),
            _drive_error(403, "storageQuotaExceeded", "The user's Drive storage quota has been exceeded."),
        ]

        with self.assertRaises(StorageQuotaExceeded) as exc:
            self.drive.upload(b"a", "a.jpg")
        self.assertEqual(exc.exception.code, "storage_quota_exceeded")

    @patch("drive_storage.client.requests.post")
    def test_other_failures_are_unknown(self, mock_post):
        mock_post.side_effect = [_token_response(), _response(500, content=b"backend error")]

        with self.assertRaises(StorageUnknownFailure) as exc:
            self.drive.upload(b"a", "a.jpg")
        self.assertEqual(exc.exception.details, "backend error")

    @patch("drive_storage.client.requests.post", side_effect=requests.ConnectionError("connection reset"))
    def test_transport_errors_are_unknown(self, _mock_post):
        with self.assertRaises(StorageUnknownFailure):
            self.drive.upload(b"a", "a.jpg")

    @patch("drive_storage.client.requests.post")
    def test_upload_response_without_id_is_unknown(self, mock_post):
        mock_post.side_effect = [_token_response(), _response(200, {})]

        with self.assertRaises(StorageUnknownFailure):
            self.drive.upload(b"a", "a.jpg")

    @patch("drive_storage.client.requests.get")
    @patch("drive_storage.client.requests.post")
    def test_download_returns_file_content(self, mock_post, mock_get):
        mock_post.return_value = _token_response("access-9")
        mock_get.return_value = _response(200, content=b"\xff\xd8\xff")

        content = self.drive.download("file-1")

        self.assertEqual(content, b"\xff\xd8\xff")
        self.assertEqual(mock_get.call_args.args[0], f"{DriveStorageClient.FILES_URL}/file-1")
        self.assertEqual(mock_get.call_args.kwargs["params"], {"alt": "media"})
        self.assertEqual(mock_get.call_args.kwargs["headers"]["Authorization"], "Bearer access-9")

    def test_authorization_url_requests_offline_consent(self):
        url = self.drive.authorization_url()

        self.assertTrue(url.startswith(DriveStorageClient.AUTH_URL))
        self.assertIn("access_type=offline", url)
        self.assertIn("prompt=consent", url)
        self.assertIn("client_id=client-id", url)
        self.assertIn("drive.file", url)

    @patch("drive_storage.client.requests.post")
    def test_exchange_code_returns_refresh_token(self, mock_post):
        mock_post.return_value = _response(
            200, {"access_token": "access-1", "refresh_token": "refresh-new", "expires_in": 3599}
        )

        tokens = self.drive.exchange_code("auth-code")

        self.assertEqual(tokens["refresh_token"], "refresh-new")
        self.assertEqual(tokens["access_token"], "access-1")
        self.assertIsNotNone(tokens["expiry"])
        self.assertEqual(mock_post.call_args.kwargs["data"]["grant_type"], "authorization_code")
        self.assertEqual(mock_post.call_args.kwargs["data"]["code"], "auth-code")

    @override_settings(GOOGLE_DRIVE=GOOGLE_DRIVE_SETTINGS)
    def test_from_settings(self):
        client = DriveStorageClient.from_settings()

        self.assertEqual(client.client_id, "client-id")
        self.assertEqual(client.refresh_token, "refresh-token")
        self.assertEqual(client.folder_id, "folder-123")
        self.assertEqual(client.timeout, 5)

    def test_storage_error_for_code(self):
        self.assertIsInstance(storage_error_for_code("storage_quota_exceeded"), StorageQuotaExceeded)
        self.assertIsInstance(storage_error_for_code("storage_credential_rejected"), StorageCredentialRejected)
        self.assertIsInstance(storage_error_for_code("something-else"), StorageUnknownFailure)


@override_settings(GOOGLE_DRIVE=GOOGLE_DRIVE_SETTINGS)
class UploadPhotoApiTests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="user1", password="pwd12345")
        self.photo = "data:image/jpeg;base64," + base64.b64encode(b"\xff\xd8\xffjpeg").decode("ascii")

    @patch("drive_storage.views.DriveStorageClient.upload")
    def test_upload_returns_photo_metadata(self, mock_upload):
        mock_upload.return_value = UploadedFile("file-1", "https://drive.google.com/file/d/file-1/view", "")
        self.client.force_authenticate(self.user)

        response = self.client.post("/api/upload-photo/", {"photo": self.photo, "fileName": "a.jpg"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(
            response.data["photoMetadata"],
            {"fileId": "file-1", "url": "https://drive.google.com/file/d/file-1/view", "fileSize": 7},
        )
        mock_upload.assert_called_once_with(b"\xff\xd8\xffjpeg", "a.jpg", "image/jpeg")

    @patch("drive_storage.client.requests.post")
    def test_upload_without_view_link_can_back_attendance(self, mock_post):
        mock_post.side_effect = [_token_response(), _response(200, {"id": "file-9"})]
        self.client.force_authenticate(self.user)

        upload = self.client.post("/api/upload-photo/", {"photo": self.photo, "fileName": "a.jpg"}, format="json")
        attendance = self.client.post(
            "/api/attendance/",
            {"faceData": {"descriptor": [0.1] * 128, "photoMetadata": upload.data["photoMetadata"]}},
            format="json",
        )

        self.assertEqual(upload.data["photoMetadata"]["url"], "https://drive.google.com/file/d/file-9/view")
        self.assertEqual(attendance.status_code, status.HTTP_201_CREATED)
        self.assertTrue(attendance.data["attendance"]["hasPhoto"])

    @patch("drive_storage.views.DriveStorageClient.upload")
    def test_default_file_name_includes_username(self, mock_upload):
        mock_upload.return_value = UploadedFile("file-1", "https://drive.google.com/file/d/file-1/view", "")
        self.client.force_authenticate(self.user)

        self.client.post("/api/upload-photo/", {"photo": self.photo}, format="json")

        file_name = mock_upload.call_args.args[1]
        self.assertTrue(file_name.startswith("attendance-user1-"))
        self.assertTrue(file_name.endswith(".jpg"))

    def test_missing_photo_is_rejected(self):
        self.client.force_authenticate(self.user)

        response = self.client.post("/api/upload-photo/", {"fileName": "a.jpg"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "photo_required")

    def test_garbage_photo_is_rejected(self):
        self.client.force_authenticate(self.user)

        response = self.client.post("/api/upload-photo/", {"photo": "not base64 !!"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "photo_invalid")

    def test_upload_requires_authentication(self):
        response = self.client.post("/api/upload-photo/", {"photo": self.photo}, format="json")

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    @patch("drive_storage.views.DriveStorageClient.upload")
    def test_storage_failures_are_distinguished(self, mock_upload):
        self.client.force_authenticate(self.user)
        for error, code in (
            (StorageCredentialRejected(details="invalid_grant"), "storage_credential_rejected"),
            (StorageQuotaExceeded(details="quota"), "storage_quota_exceeded"),
            (StorageUnknownFailure(details="boom"), "storage_unknown_failure"),
        ):
            with self.subTest(code=code):
                mock_upload.side_effect = error
                response = self.client.post("/api/upload-photo/", {"photo": self.photo}, format="json")

                self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
                self.assertEqual(response.data["code"], code)
                self.assertNotIn("boom", response.data["detail"])


@override_settings(GOOGLE_DRIVE=GOOGLE_DRIVE_SETTINGS)
class DriveConsentApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="pwd12345", role=User.ROLE_ADMIN)
        self.user = User.objects.create_user(username="user1", password="pwd12345")

    def test_admin_gets_authorization_url(self):
        self.client.force_authenticate(self.admin)

        response = self.client.get("/api/drive/auth-url/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn("prompt=consent", response.data["authUrl"])

    def test_regular_user_cannot_start_consent(self):
        self.client.force_authenticate(self.user)

        response = self.client.get("/api/drive/auth-url/")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    @patch("drive_storage.views.DriveStorageClient.exchange_code")
    def test_callback_exchanges_code(self, mock_exchange):
        mock_exchange.return_value = {"access_token": "a", "refresh_token": "r", "expiry": None}
        self.client.force_authenticate(self.admin)

        response = self.client.get("/api/oauth2callback?code=auth-code")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["refresh_token"], "r")
        mock_exchange.assert_called_once_with("auth-code")

    def test_callback_requires_code(self):
        self.client.force_authenticate(self.admin)

        response = self.client.get("/api/oauth2callback")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @patch("drive_storage.views.DriveStorageClient.exchange_code", side_effect=StorageCredentialRejected())
    def test_callback_reports_rejected_code(self, _mock_exchange):
        self.client.force_authenticate(self.admin)

        response = self.client.get("/api/oauth2callback?code=bad")

        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)


@override_settings(GOOGLE_DRIVE=GOOGLE_DRIVE_SETTINGS)
class DriveCommandTests(SimpleTestCase):
    def test_auth_url_command_prints_url(self):
        stdout = StringIO()
        call_command("drive_auth_url", stdout=stdout)

        self.assertIn(DriveStorageClient.AUTH_URL, stdout.getvalue())

    @patch("drive_storage.management.commands.drive_exchange_code.DriveStorageClient.exchange_code")
    def test_exchange_command_prints_refresh_token(self, mock_exchange):
        mock_exchange.return_value = {"access_token": "a", "refresh_token": "refresh-new", "expiry": None}
        stdout = StringIO()

        call_command("drive_exchange_code", "--code", "auth-code", stdout=stdout)

        self.assertIn("GOOGLE_REFRESH_TOKEN=refresh-new", stdout.getvalue())

    @patch("drive_storage.management.commands.drive_exchange_code.DriveStorageClient.exchange_code")
    def test_exchange_command_fails_without_refresh_token(self, mock_exchange):
        mock_exchange.return_value = {"access_token": "a", "refresh_token": "", "expiry": None}

        with self.assertRaises(CommandError) as exc:
            call_command("drive_exchange_code", "--code", "auth-code", stdout=StringIO())

        self.assertIn("refresh token", str(exc.exception))
