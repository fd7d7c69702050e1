from django.conf import settings
from django.db import models

RECAP = "recap"
TAJWEED = "tajweed"
HARAKA = "haraka"
LETTER = "letter"
HOMEWORK = "homework"
COMPLETED = "completed"

TYPE_CHOICES = [
    (RECAP, "Recap"),
    (TAJWEED, "Tajweed"),
    (HARAKA, "Haraka"),
    (LETTER, "Letter"),
    (HOMEWORK, "Homework"),
    (COMPLETED, "Completed"),
]

MISTAKE_TYPES = (RECAP, TAJWEED, HARAKA, LETTER)

GREEN = "green"
GOLD = "gold"

TYPE_COLORS = {
    RECAP: "purple",
    TAJWEED: "orange",
    HARAKA: "red",
    LETTER: "brown",
    HOMEWORK: GREEN,
    COMPLETED: GOLD,
}

COLOR_HEX = {
    "purple": "#9333ea",
    "orange": "#ea580c",
    "red": "#dc2626",
    "brown": "#92400e",
    GREEN: "#16a34a",
    GOLD: "#eab308",
}

NOTE_TEXT = "text"
NOTE_AUDIO = "audio"
NOTE_TYPE_CHOICES = [
    (NOTE_TEXT, "Text"),
    (NOTE_AUDIO, "Audio"),
]


class Highlight(models.Model):
    school = models.ForeignKey("schools.School", on_delete=models.CASCADE, related_name="highlights")
    student = models.ForeignKey("students.Student", on_delete=models.CASCADE, related_name="highlights")
    teacher = models.ForeignKey(
        "schools.Teacher", on_delete=models.SET_NULL, null=True, blank=True, related_name="highlights"
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name="highlights_created"
    )
    type = models.CharField(max_length=16, choices=TYPE_CHOICES, blank=True, default="")
    color = models.CharField(max_length=16)
    previous_color = models.CharField(max_length=16, blank=True, null=True)
    surah = models.PositiveSmallIntegerField()
    ayah_start = models.PositiveSmallIntegerField()
    ayah_end = models.PositiveSmallIntegerField()
    word_start = models.PositiveSmallIntegerField(blank=True, null=True)
    word_end = models.PositiveSmallIntegerField(blank=True, null=True)
    page_number = models.PositiveSmallIntegerField(blank=True, null=True)
    note = models.TextField(blank=True, default="")
    completed_at = models.DateTimeField(blank=True, null=True)
    completed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="highlights_completed",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [models.Index(fields=["school", "student"], name="highlight_school_student_idx")]

    def __str__(self):
        return f"{self.surah}:{self.ayah_start}-{self.ayah_end} ({self.color})"

    @property
    def is_completed(self):
        return self.color == GOLD

    @property
    def ayah_label(self):
        if self.ayah_end != self.ayah_start:
            return f"Ayah {self.ayah_start}-{self.ayah_end}"
        return f"Ayah {self.ayah_start}"


class Note(models.Model):
    highlight = models.ForeignKey(Highlight, on_delete=models.CASCADE, related_name="notes")
    author = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="highlight_notes")
    parent_note = models.ForeignKey(
        "self", on_delete=models.CASCADE, null=True, blank=True, related_name="replies"
    )
    type = models.CharField(max_length=8, choices=NOTE_TYPE_CHOICES, default=NOTE_TEXT)
    text = models.TextField(blank=True, default="")
    audio_url = models.CharField(max_length=500, blank=True, default="")
    visible_to_parent = models.BooleanField(default=True)
    seen_at = models.DateTimeField(blank=True, null=True)
    seen_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]
