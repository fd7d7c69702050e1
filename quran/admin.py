from django.contrib import admin
from .models import Surah


@admin.register(Surah)
class SurahAdmin(admin.ModelAdmin):
    list_display = ("number", "name_simple", "name_arabic", "verses_count", "revelation_place")
    search_fields = ("name_simple",)
