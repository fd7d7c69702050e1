from django.contrib import admin
from .models import ClassEnrollment, ClassTeacher, School, SchoolClass, Teacher


@admin.register(School)
class SchoolAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "timezone", "created_at")
    search_fields = ("name",)


@admin.register(Teacher)
class TeacherAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "school", "subject", "active")
    list_filter = ("active",)
    search_fields = ("user__email",)


@admin.register(SchoolClass)
class SchoolClassAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "school", "room", "capacity")
    search_fields = ("name",)


admin.site.register(ClassTeacher)
admin.site.register(ClassEnrollment)
