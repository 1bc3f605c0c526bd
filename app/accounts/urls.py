from django.urls import path

from accounts.views import users_api

urlpatterns = [
    path("users/", users_api, name="users-api"),
]
