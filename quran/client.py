import logging
import requests
from django.conf import settings

logger = logging.getLogger(__name__)


def quran_get(path, params=None):
    url = f"{settings.QURAN_API_BASE.rstrip('/')}/{path.lstrip('/')}"
    try:
        r = requests.get(
            url,
            headers={"Accept": "application/json"},
            params=params,
            timeout=20,
        )
        r.raise_for_status()
        return r.json()
    except requests.HTTPError as e:
        body = e.response.text if e.response is not None else ""
        logger.error(
            "Quran API GET %s failed: %s %s", url, getattr(e.response, "status_code", ""), body[:500]
        )
        raise


def fetch_chapters(language="en"):
    """Returns the raw `chapters` list from the Quran.com v4 API."""
    data = quran_get("chapters", params={"language": language})
    return data.get("chapters", [])
