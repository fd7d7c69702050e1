from django.apps import AppConfig


class QuranConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "quran"
