from __future__ import annotations

import logging

from django.core.management.base import BaseCommand

from accounts.models import User

logger = logging.getLogger(__name__)

SEED_USERS = [
    ("admin", "Administrator", User.ROLE_ADMIN),
    ("user1", "John Doe", User.ROLE_USER),
    ("user2", "Jane Smith", User.ROLE_USER),
    ("user3", "Bob Johnson", User.ROLE_USER),
]


class Command(BaseCommand):
    help = "Create the default admin and employee accounts if they do not exist"

    def add_arguments(self, parser):
        parser.add_argument("--admin-password", default="admin123")
        parser.add_argument("--password", default="user123", help="Password for the employee accounts")

    def handle(self, *args, **options):
        created = 0
        for username, full_name, role in SEED_USERS:
            user, was_created = User.objects.get_or_create(
                username=username,
                defaults={"full_name": full_name, "role": role, "is_staff": role == User.ROLE_ADMIN},
            )
            if not was_created:
                self.stdout.write(f"Skipped existing user {username}")
                continue

            password = options["admin_password"] if role == User.ROLE_ADMIN else options["password"]
            user.set_password(password)
            user.save(update_fields=["password"])
            logger.info("Seeded user", extra={"username": username, "role": role})
            created += 1

        self.stdout.write(self.style.SUCCESS(f"Seeded {created} users"))
