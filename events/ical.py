"""iCalendar (RFC 5545) export of school events."""
from datetime import timezone as dt_timezone
from urllib.parse import urlparse

from django.conf import settings
from django.utils import timezone

from schools.serializers import display_name

PRODID = "-//QuranAkh//Calendar//EN"
LINE_OCTETS = 75


def escape(value):
    return (
        (value or "")
        .replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
    )


def fold(line):
    """Splits a content line into 75-octet chunks without breaking a UTF-8 sequence."""
    raw = line.encode("utf-8")
    if len(raw) <= LINE_OCTETS:
        return line
    parts = []
    limit = LINE_OCTETS
    while raw:
        cut = min(limit, len(raw))
        while cut < len(raw) and (raw[cut] & 0xC0) == 0x80:
            cut -= 1
        parts.append(raw[:cut].decode("utf-8"))
        raw = raw[cut:]
        # continuation lines start with a space, which counts toward the limit
        limit = LINE_OCTETS - 1
    return "\r\n ".join(parts)


def format_utc(value):
    return value.astimezone(dt_timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def uid_domain():
    return urlparse(settings.SITE_URL).hostname or "localhost"


def vevent(event, stamp):
    lines = [
        "BEGIN:VEVENT",
        f"UID:{event.pk}@{uid_domain()}",
        f"DTSTAMP:{stamp}",
        f"DTSTART:{format_utc(event.start_at)}",
        f"DTEND:{format_utc(event.end_at)}",
        f"SUMMARY:{escape(event.title)}",
    ]
    if event.description:
        lines.append(f"DESCRIPTION:{escape(event.description)}")
    if event.location:
        lines.append(f"LOCATION:{escape(event.location)}")
    if event.created_by_id:
        name = escape(display_name(event.created_by)).replace('"', "")
        lines.append(f'ORGANIZER;CN="{name}":mailto:{event.created_by.email}')
    lines.append(f"CATEGORIES:{escape(event.get_event_type_display())}")
    lines.append("STATUS:CONFIRMED")
    lines.append("END:VEVENT")
    return lines


def build_calendar(events, name="School calendar"):
    stamp = format_utc(timezone.now())
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODID}",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        f"X-WR-CALNAME:{escape(name)}",
    ]
    for event in events:
        lines.extend(vevent(event, stamp))
    lines.append("END:VCALENDAR")
    return "\r\n".join(fold(line) for line in lines) + "\r\n"
