from django.contrib import admin
from .models import Highlight, Note


class NoteInline(admin.TabularInline):
    model = Note
    extra = 0
    fk_name = "highlight"


@admin.register(Highlight)
class HighlightAdmin(admin.ModelAdmin):
    list_display = ("id", "student", "type", "color", "surah", "ayah_start", "ayah_end", "created_at")
    list_filter = ("type", "color")
    inlines = [NoteInline]
