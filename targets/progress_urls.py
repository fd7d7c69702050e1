from django.urls import path

from . import views

app_name = "progress"

urlpatterns = [
    path("student", views.student_progress, name="student"),
]
