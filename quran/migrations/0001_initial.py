from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Surah",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("number", models.PositiveSmallIntegerField(unique=True)),
                ("name_simple", models.CharField(max_length=64)),
                ("name_arabic", models.CharField(blank=True, default="", max_length=64)),
                ("verses_count", models.PositiveSmallIntegerField()),
                (
                    "revelation_place",
                    models.CharField(
                        blank=True,
                        choices=[("makkah", "Makkah"), ("madinah", "Madinah")],
                        default="",
                        max_length=16,
                    ),
                ),
                ("synced_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["number"],
            },
        ),
    ]
