from django.urls import path

from . import views

app_name = "targets"

urlpatterns = [
    path("", views.targets, name="list"),
    path("<int:target_id>", views.target_detail, name="detail"),
    path("<int:target_id>/milestones", views.milestones, name="milestones"),
    path("<int:target_id>/milestones/<int:milestone_id>", views.milestone_detail, name="milestone_detail"),
]
