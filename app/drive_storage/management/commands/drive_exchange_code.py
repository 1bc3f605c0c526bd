from django.core.management.base import BaseCommand, CommandError

from drive_storage.client import DriveStorageClient
from drive_storage.exceptions import StorageError


class Command(BaseCommand):
    help = "Exchange a Google authorization code for the refresh token stored in GOOGLE_REFRESH_TOKEN"

    def add_arguments(self, parser):
        parser.add_argument("--code", required=True, help="Code returned on the OAuth redirect")

    def handle(self, *args, **options):
        code = options["code"].strip()
        if not code:
            raise CommandError("--code must not be empty")

        client = DriveStorageClient.from_settings()
        try:
            tokens = client.exchange_code(code)
        except StorageError as exc:
            raise CommandError(f"Code exchange failed: {exc.message}") from exc

        if not tokens["refresh_token"]:
            raise CommandError("Google did not return a refresh token; revoke access and retry with prompt=consent")

        self.stdout.write(self.style.SUCCESS(f"GOOGLE_REFRESH_TOKEN={tokens['refresh_token']}"))
