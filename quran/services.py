import logging
from django.db import transaction
from .client import fetch_chapters
from .models import SURAH_COUNT, Surah

logger = logging.getLogger(__name__)


class AyahRangeError(ValueError):
    pass


def validate_ayah_range(surah, ayah_start, ayah_end):
    """
    Raises AyahRangeError unless the range is a valid slice of `surah`.
    Verse counts are only enforced once the surah table has been synced.
    """
    if not 1 <= surah <= SURAH_COUNT:
        raise AyahRangeError(f"surah must be between 1 and {SURAH_COUNT}")
    if ayah_start < 1 or ayah_end < ayah_start:
        raise AyahRangeError("ayah_start must be at least 1 and not after ayah_end")
    verses = Surah.objects.filter(number=surah).values_list("verses_count", flat=True).first()
    if verses and ayah_end > verses:
        raise AyahRangeError(f"Surah {surah} has only {verses} ayahs")


@transaction.atomic
def sync_surahs():
    created = updated = 0
    for ch in fetch_chapters():
        translated = ch.get("translated_name") or {}
        _, was_created = Surah.objects.update_or_create(
            number=ch["id"],
            defaults={
                "name_simple": ch.get("name_simple") or translated.get("name", ""),
                "name_arabic": ch.get("name_arabic", ""),
                "verses_count": ch["verses_count"],
                "revelation_place": (ch.get("revelation_place") or "").lower(),
            },
        )
        if was_created:
            created += 1
        else:
            updated += 1
    logger.info("Surah sync: %s created, %s updated", created, updated)
    return created, updated
