from django.contrib import admin

from .models import AttendanceRecord


@admin.register(AttendanceRecord)
class AttendanceRecordAdmin(admin.ModelAdmin):
    list_display = ("session_date", "school_class", "student", "status", "marked_by")
    list_filter = ("status", "school")
    date_hierarchy = "session_date"
