from django.urls import path
from . import views

app_name = "family"

urlpatterns = [
    path("parents/my-children", views.my_children, name="my_children"),
    path("students/update-last-page", views.update_last_page, name="update_last_page"),
]
