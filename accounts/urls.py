from django.urls import path
from . import views

app_name = "accounts"

urlpatterns = [
    path("signin", views.signin, name="signin"),
    path("signout", views.signout, name="signout"),
    path("me", views.me, name="me"),
    path("register-school", views.register_school, name="register_school"),
]
