from django.contrib import admin

from .models import AyahMastery


@admin.register(AyahMastery)
class AyahMasteryAdmin(admin.ModelAdmin):
    list_display = ("student", "surah", "ayah", "level", "last_updated")
    list_filter = ("level",)
    search_fields = ("student__user__email",)
