from django.urls import path
from . import views

app_name = "uploads"

urlpatterns = [
    path("attachment", views.upload_attachment, name="attachment"),
    path("voice-note", views.upload_voice_note, name="voice_note"),
]
