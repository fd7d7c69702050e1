"""
Expands a recurrence rule into occurrence start times.

A rule is a dict:

    {"frequency": "weekly", "interval": 1, "count": 10,
     "by_weekday": [1, 3]}

Weekdays count from Sunday (0) to Saturday (6). `count` includes the first
occurrence; `until` is inclusive. Exactly one of them bounds the series.
"""
from datetime import timedelta

from dateutil.relativedelta import relativedelta

DAILY = "daily"
WEEKLY = "weekly"
MONTHLY = "monthly"
YEARLY = "yearly"

FREQUENCIES = (DAILY, WEEKLY, MONTHLY, YEARLY)

MAX_OCCURRENCES = 365
# iterations before giving up on a rule whose filters never match
MAX_STEPS = 5000


def sunday_weekday(value):
    return (value.weekday() + 1) % 7


def _step(frequency, n):
    if frequency == DAILY:
        return relativedelta(days=n)
    if frequency == WEEKLY:
        return relativedelta(weeks=n)
    if frequency == MONTHLY:
        return relativedelta(months=n)
    return relativedelta(years=n)


def _matches(rule, candidate):
    if rule.get("by_month_day") and candidate.day not in rule["by_month_day"]:
        return False
    if rule.get("by_month") and candidate.month not in rule["by_month"]:
        return False
    if rule.get("by_weekday") and sunday_weekday(candidate) not in rule["by_weekday"]:
        return False
    return True


def _candidates(rule, start):
    frequency = rule["frequency"]
    interval = rule.get("interval") or 1
    if frequency == WEEKLY and rule.get("by_weekday"):
        # every day of each active week, the week anchored on Sunday
        week_start = start - timedelta(days=sunday_weekday(start))
        weeks = 0
        while True:
            anchor = week_start + timedelta(weeks=weeks * interval)
            for offset in range(7):
                yield anchor + timedelta(days=offset)
            weeks += 1
    else:
        n = 1
        while True:
            # stepping from `start` each time keeps month ends from drifting
            yield start + _step(frequency, n * interval)
            n += 1


def occurrences(rule, start):
    """Start datetimes of every occurrence after the first, in order."""
    limit = min(rule.get("count") or MAX_OCCURRENCES, MAX_OCCURRENCES)
    until = rule.get("until")
    found = []
    for steps, candidate in enumerate(_candidates(rule, start)):
        if steps >= MAX_STEPS or len(found) + 1 >= limit:
            break
        if candidate <= start:
            continue
        if until is not None and candidate > until:
            break
        if _matches(rule, candidate):
            found.append(candidate)
    return found
