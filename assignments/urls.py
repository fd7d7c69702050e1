from django.urls import path
from . import views

app_name = "assignments"

urlpatterns = [
    path("", views.assignments, name="list"),
    path("<int:assignment_id>", views.assignment_detail, name="detail"),
    path("<int:assignment_id>/transition", views.transition, name="transition"),
    path("<int:assignment_id>/submit", views.submit, name="submit"),
    path("<int:assignment_id>/reopen", views.reopen, name="reopen"),
    path("<int:assignment_id>/complete", views.complete, name="complete"),
    path("<int:assignment_id>/highlights", views.assignment_highlights, name="highlights"),
]
