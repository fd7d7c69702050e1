from urllib.parse import urlparse

from allauth.account.models import EmailAddress
from django.conf import settings
from django.contrib.sites.models import Site
from django.db.models.signals import post_migrate, post_save
from django.dispatch import receiver

from .models import User


@receiver(post_save, sender=User)
def ensure_email_address(sender, instance, created, **kwargs):
    # provisioned logins are trusted; allauth needs the address for password reset
    if created:
        EmailAddress.objects.get_or_create(
            user=instance,
            email=instance.email,
            defaults={"verified": True, "primary": True},
        )


@receiver(post_migrate)
def sync_site_domain(sender, **kwargs):
    if sender.name != "accounts":
        return
    site_url = getattr(settings, "SITE_URL", "")
    if not site_url:
        return
    host = urlparse(site_url).hostname or "example.com"
    Site.objects.update_or_create(
        id=getattr(settings, "SITE_ID", 1),
        defaults={"domain": host, "name": host},
    )
