from django.urls import path
from . import views

app_name = "classes"

urlpatterns = [
    path("classes", views.classes, name="list"),
    path("classes/my-classes", views.my_classes, name="my_classes"),
    path("classes/<int:class_id>", views.class_detail, name="detail"),
    path("teacher/students", views.teacher_students, name="teacher_students"),
]
