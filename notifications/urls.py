from django.urls import path
from . import views

app_name = "notifications"

urlpatterns = [
    path("", views.list_notifications, name="list"),
    path("counts", views.counts, name="counts"),
    path("read-all", views.read_all, name="read_all"),
    path("mark-section-read", views.mark_section_read, name="mark_section_read"),
    path("preferences", views.preferences, name="preferences"),
    path("send", views.send, name="send"),
    path("<int:notification_id>/read", views.read_notification, name="read"),
]
