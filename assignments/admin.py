from django.contrib import admin
from .models import Assignment, AssignmentEvent, AssignmentHighlight, AssignmentSubmission


class AssignmentEventInline(admin.TabularInline):
    model = AssignmentEvent
    extra = 0
    readonly_fields = ("actor", "event_type", "from_status", "to_status", "meta", "created_at")


@admin.register(Assignment)
class AssignmentAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "student", "status", "due_at", "late", "reopen_count")
    list_filter = ("status", "late")
    search_fields = ("title", "student__user__email")
    inlines = [AssignmentEventInline]


admin.site.register(AssignmentHighlight)
admin.site.register(AssignmentSubmission)
