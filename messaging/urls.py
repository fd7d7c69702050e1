from django.urls import path

from . import views

app_name = "messaging"

urlpatterns = [
    path("", views.messages, name="messages"),
    path("recipients", views.recipients, name="recipients"),
    path("send-group", views.send_group, name="send_group"),
    path("thread/<int:message_id>", views.thread, name="thread"),
    path("<int:message_id>", views.message_detail, name="message_detail"),
]
