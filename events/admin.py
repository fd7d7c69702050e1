from django.contrib import admin

from .models import Event, EventParticipant


class EventParticipantInline(admin.TabularInline):
    model = EventParticipant
    extra = 0


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ("title", "event_type", "start_at", "end_at", "school", "recurrence_parent")
    list_filter = ("event_type", "school")
    date_hierarchy = "start_at"
    search_fields = ("title",)
    inlines = [EventParticipantInline]
