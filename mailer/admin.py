from django.contrib import admin

from .models import EmailEvent


@admin.register(EmailEvent)
class EmailEventAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "notification", "event", "email", "timestamp")
    list_filter = ("event",)
    search_fields = ("email", "provider_id")
