from io import StringIO

from django.core.management import call_command
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.models import User


class SeedUsersCommandTests(APITestCase):
    def test_command_creates_admin_and_employees(self):
        stdout = StringIO()
        call_command("seed_users", stdout=stdout)

        self.assertIn("Seeded 4 users", stdout.getvalue())
        admin = User.objects.get(username="admin")
        self.assertEqual(admin.role, User.ROLE_ADMIN)
        self.assertTrue(admin.check_password("admin123"))
        employee = User.objects.get(username="user1")
        self.assertEqual(employee.full_name, "John Doe")
        self.assertEqual(employee.role, User.ROLE_USER)
        self.assertTrue(employee.check_password("user123"))

    def test_command_is_idempotent(self):
        call_command("seed_users", stdout=StringIO())
        User.objects.filter(username="user1").update(full_name="Renamed")

        stdout = StringIO()
        call_command("seed_users", "--password", "other-pass", stdout=stdout)

        self.assertIn("Seeded 0 users", stdout.getvalue())
        self.assertEqual(User.objects.count(), 4)
        user1 = User.objects.get(username="user1")
        self.assertEqual(user1.full_name, "Renamed")
        self.assertTrue(user1.check_password("user123"))


class UsersApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(
            username="admin", password="pwd12345", full_name="Administrator", role=User.ROLE_ADMIN
        )
        self.alice = User.objects.create_user(username="alice", password="pwd12345", full_name="Alice")

    def test_admin_lists_users(self):
        self.client.force_authenticate(self.admin)
        response = self.client.get("/api/users/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        usernames = [item["username"] for item in response.data]
        self.assertEqual(sorted(usernames), ["admin", "alice"])
        alice = next(item for item in response.data if item["username"] == "alice")
        self.assertEqual(alice["fullName"], "Alice")
        self.assertEqual(alice["role"], User.ROLE_USER)

    def test_admin_filters_users_by_role(self):
        self.client.force_authenticate(self.admin)
        response = self.client.get("/api/users/?role=user")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([item["username"] for item in response.data], ["alice"])

    def test_regular_user_is_forbidden(self):
        self.client.force_authenticate(self.alice)
        response = self.client.get("/api/users/")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_anonymous_is_rejected(self):
        response = self.client.get("/api/users/")

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
