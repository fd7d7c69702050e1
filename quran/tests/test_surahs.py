"""Surah metadata sync and lookup."""

from io import StringIO
from unittest import mock

import requests
from django.core.management import CommandError, call_command
from rest_framework import status

from quran.models import Surah
from quran.services import AyahRangeError, sync_surahs, validate_ayah_range
from accounts.tests.base import TestBase

CHAPTERS = {
    "chapters": [
        {"id": 1, "name_simple": "Al-Fatihah", "name_arabic": "الفاتحة", "verses_count": 7,
         "revelation_place": "makkah"},
        {"id": 2, "name_simple": "Al-Baqarah", "name_arabic": "البقرة", "verses_count": 286,
         "revelation_place": "madinah"},
    ]
}


def fake_response(payload, status_code=200):
    response = mock.Mock(status_code=status_code, text="")
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(response=response)
    return response


class SyncTests(TestBase):

    @mock.patch("quran.client.requests.get")
    def test_sync_creates_then_updates(self, get):
        get.return_value = fake_response(CHAPTERS)
        self.assertEqual(sync_surahs(), (2, 0))
        self.assertEqual(sync_surahs(), (0, 2))
        self.assertEqual(Surah.objects.get(number=2).verses_count, 286)
        self.assertEqual(get.call_args.kwargs["timeout"], 20)

    @mock.patch("quran.client.requests.get")
    def test_command_reports_api_failure(self, get):
        get.return_value = fake_response({}, status_code=503)
        with self.assertRaises(CommandError):
            call_command("sync_surahs", stdout=StringIO())
        self.assertFalse(Surah.objects.exists())

    @mock.patch("quran.client.requests.get")
    def test_surahs_endpoint(self, get):
        get.return_value = fake_response(CHAPTERS)
        call_command("sync_surahs", stdout=StringIO())
        self.authenticate(self.student_user)
        response = self.client.get("/api/quran/surahs")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([s["number"] for s in response.data["surahs"]], [1, 2])


class AyahRangeTests(TestBase):

    def test_bounds_without_synced_table(self):
        validate_ayah_range(2, 1, 300)
        with self.assertRaises(AyahRangeError):
            validate_ayah_range(115, 1, 1)
        with self.assertRaises(AyahRangeError):
            validate_ayah_range(2, 5, 4)

    def test_verse_count_enforced_once_synced(self):
        Surah.objects.create(number=1, name_simple="Al-Fatihah", verses_count=7)
        validate_ayah_range(1, 1, 7)
        with self.assertRaisesMessage(AyahRangeError, "Surah 1 has only 7 ayahs"):
            validate_ayah_range(1, 1, 8)
