import requests
from django.core.management.base import BaseCommand, CommandError
from quran.services import sync_surahs


class Command(BaseCommand):
    help = "Fetch surah metadata from the Quran.com API into the local Surah table."

    def handle(self, *args, **options):
        self.stdout.write("Fetching chapters...")
        try:
            created, updated = sync_surahs()
        except requests.RequestException as e:
            raise CommandError(f"Quran API request failed: {e}")
        self.stdout.write(self.style.SUCCESS(f"Surahs synced: {created} created, {updated} updated"))
