from django.conf import settings
from django.db import models

SUPPRESSING_EVENTS = {"bounced", "complained"}


class EmailEvent(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)
    notification = models.ForeignKey(
        "notifications.Notification", on_delete=models.SET_NULL, null=True, blank=True, related_name="email_events"
    )
    event = models.CharField(max_length=32)
    provider_id = models.CharField(max_length=128, blank=True, null=True)
    email = models.EmailField()
    timestamp = models.DateTimeField(auto_now_add=True)
    payload = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["-timestamp"]

    def __str__(self):
        return f"{self.event} {self.email}"
