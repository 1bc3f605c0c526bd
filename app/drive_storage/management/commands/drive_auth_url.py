from django.core.management.base import BaseCommand, CommandError

from drive_storage.client import DriveStorageClient


class Command(BaseCommand):
    help = "Print the Google consent URL used to obtain a Drive refresh token"

    def handle(self, *args, **options):
        client = DriveStorageClient.from_settings()
        if not client.client_id:
            raise CommandError("GOOGLE_CLIENT_ID is not configured")

        self.stdout.write(client.authorization_url())
