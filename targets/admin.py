from django.contrib import admin

from .models import Milestone, Target


class MilestoneInline(admin.TabularInline):
    model = Milestone
    extra = 0


@admin.register(Target)
class TargetAdmin(admin.ModelAdmin):
    list_display = ("title", "type", "category", "status", "school", "due_date")
    list_filter = ("type", "status", "category", "school")
    search_fields = ("title",)
    inlines = [MilestoneInline]
