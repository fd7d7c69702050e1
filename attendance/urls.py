from django.urls import path

from . import views

app_name = "attendance"

urlpatterns = [
    path("", views.attendance, name="attendance"),
    path("session", views.record, name="session"),
    path("summary", views.summary, name="summary"),
    path("<int:record_id>", views.update_record, name="update_record"),
]
