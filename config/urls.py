from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path("django-rq/", include("django_rq.urls")),
    path("accounts/", include("allauth.urls")),
    # JSON API
    path("api/auth/", include("accounts.urls")),
    path("api/school/", include("schools.urls")),
    path("api/school/", include("students.urls")),
    path("api/", include("schools.class_urls")),
    path("api/", include("students.family_urls")),
    path("api/quran/", include("quran.urls")),
    path("api/", include("highlights.urls")),
    path("api/assignments/", include("assignments.urls")),
    path("api/notifications/", include("notifications.urls")),
    path("api/messages/", include("messaging.urls")),
    path("api/uploads/", include("uploads.urls")),
    path("api/attendance/", include("attendance.urls")),
    path("api/targets/", include("targets.urls")),
    path("api/progress/", include("targets.progress_urls")),
    path("api/events/", include("events.urls")),
    path("api/", include("gradebook.urls")),
    path("api/mastery/", include("mastery.urls")),
    # unsubscribe link and ESP tracking webhooks
    path("", include("mailer.urls")),
] + static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
