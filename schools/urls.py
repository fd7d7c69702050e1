from django.urls import path
from . import views

app_name = "schools"

urlpatterns = [
    path("settings", views.school_settings, name="settings"),
    path("teachers", views.list_teachers, name="teachers"),
    path("create-teacher", views.create_teacher, name="create_teacher"),
    path("bulk-create-teachers", views.bulk_create_teachers, name="bulk_create_teachers"),
    path("update-teacher", views.update_teacher, name="update_teacher"),
    path("delete-teachers", views.delete_teachers, name="delete_teachers"),
    path("reset-password", views.reset_password, name="reset_password"),
    path("cleanup-orphaned-users", views.cleanup_orphaned_users, name="cleanup_orphaned_users"),
]
