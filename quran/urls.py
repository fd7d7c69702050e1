from django.urls import path
from . import views

app_name = "quran"

urlpatterns = [
    path("surahs", views.surahs, name="surahs"),
]
