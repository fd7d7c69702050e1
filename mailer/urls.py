from django.urls import include, path

from . import views

app_name = "mailer"

# public email endpoints: unsubscribe links and ESP tracking webhooks
urlpatterns = [
    path("unsubscribe/", views.unsubscribe, name="unsubscribe"),
    path("webhooks/email/", include("anymail.urls")),
]
