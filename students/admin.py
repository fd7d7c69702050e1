from django.contrib import admin
from .models import Parent, ParentStudentLink, Student


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "school", "grade", "active", "last_page")
    list_filter = ("active",)
    search_fields = ("user__email",)


@admin.register(Parent)
class ParentAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "school")
    search_fields = ("user__email",)


@admin.register(ParentStudentLink)
class PSLAdmin(admin.ModelAdmin):
    list_display = ("parent", "student", "created_at")
