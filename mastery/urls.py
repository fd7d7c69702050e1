from django.urls import path

from . import views

app_name = "mastery"

urlpatterns = [
    path("upsert", views.upsert, name="upsert"),
    path("auto-update", views.auto_update, name="auto_update"),
    path("heatmap/<int:surah>", views.heatmap, name="heatmap"),
    path("student/<int:student_id>", views.student_mastery, name="student"),
    path("school", views.school_mastery, name="school"),
]
