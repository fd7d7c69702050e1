from django.urls import path
from . import views

app_name = "students"

urlpatterns = [
    path("students", views.list_students, name="list"),
    path("create-student", views.create_student, name="create_student"),
    path("bulk-create-students", views.bulk_create_students, name="bulk_create_students"),
    path("update-student", views.update_student, name="update_student"),
    path("delete-students", views.delete_students, name="delete_students"),
    path("parents", views.list_parents, name="parents"),
    path("create-parent", views.create_parent, name="create_parent"),
    path("update-parent", views.update_parent, name="update_parent"),
    path("delete-parents", views.delete_parents, name="delete_parents"),
    path("link-parent-student", views.link_parent_student, name="link_parent_student"),
]
