from django.urls import path

from . import views

app_name = "events"

urlpatterns = [
    path("", views.events, name="list"),
    path("ical", views.calendar_feed, name="ical"),
    path("<int:event_id>", views.event_detail, name="detail"),
    path("<int:event_id>/respond", views.respond, name="respond"),
]
