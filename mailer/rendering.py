from django.conf import settings
from django.template.loader import render_to_string


def render_email(name, context):
    """Renders templates/emails/<name>.txt and .html; returns (text, html)."""
    text_body = render_to_string(f"emails/{name}.txt", context)
    html_body = render_to_string(f"emails/{name}.html", context)
    return text_body, html_body


def render_notification_email(notification, unsubscribe_url):
    context = {
        "notification": notification,
        "school": notification.school,
        "recipient": notification.user,
        "site_url": settings.SITE_URL,
        "unsubscribe_url": unsubscribe_url,
    }
    subject = notification.title or notification.type.replace("_", " ").capitalize()
    text_body, html_body = render_email("notification", context)
    return subject, text_body, html_body
