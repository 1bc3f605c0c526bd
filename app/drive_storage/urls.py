from django.urls import path

from drive_storage.views import drive_auth_url_api, oauth2_callback_api, upload_photo_api

urlpatterns = [
    path("upload-photo/", upload_photo_api, name="upload-photo"),
    path("drive/auth-url/", drive_auth_url_api, name="drive-auth-url"),
    path("oauth2callback", oauth2_callback_api, name="oauth2-callback"),
]
