from django.db import models

SURAH_COUNT = 114

REVELATION_CHOICES = [
    ("makkah", "Makkah"),
    ("madinah", "Madinah"),
]


class Surah(models.Model):
    number = models.PositiveSmallIntegerField(unique=True)
    name_simple = models.CharField(max_length=64)
    name_arabic = models.CharField(max_length=64, blank=True, default="")
    verses_count = models.PositiveSmallIntegerField()
    revelation_place = models.CharField(max_length=16, choices=REVELATION_CHOICES, blank=True, default="")
    synced_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["number"]

    def __str__(self):
        return f"{self.number}. {self.name_simple}"
