import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("students", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="AyahMastery",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("surah", models.PositiveSmallIntegerField()),
                ("ayah", models.PositiveSmallIntegerField()),
                (
                    "level",
                    models.CharField(
                        choices=[
                            ("unknown", "Unknown"),
                            ("learning", "Learning"),
                            ("proficient", "Proficient"),
                            ("mastered", "Mastered"),
                        ],
                        default="unknown",
                        max_length=16,
                    ),
                ),
                ("last_updated", models.DateTimeField(auto_now=True)),
                (
                    "student",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="mastery", to="students.student"
                    ),
                ),
                (
                    "updated_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["surah", "ayah"],
                "indexes": [models.Index(fields=["student", "surah"], name="mastery_student_surah_idx")],
                "constraints": [
                    models.UniqueConstraint(fields=("student", "surah", "ayah"), name="mastery_once_per_ayah")
                ],
            },
        ),
    ]
