"""Shared utility functions used across store and route modules."""
import re
from datetime import datetime, timezone

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def utc_now():
    return datetime.now(timezone.utc)


def clean_text(value, max_length=255):
    if value is None:
        return ''
    return str(value).strip()[:max_length]


def iso_timestamp(moment):
    """Render an aware datetime the way browsers serialize dates (``...Z``)."""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime('%Y-%m-%dT%H:%M:%S.') + f'{moment.microsecond // 1000:03d}Z'


def parse_iso_timestamp(value):
    """Parse an ISO-8601 string into an aware UTC datetime, or None."""
    if not isinstance(value, str) or not value.strip():
        return None
    candidate = value.strip()
    if candidate.endswith(('Z', 'z')):
        candidate = candidate[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def display_date(moment):
    return moment.strftime('%m/%d/%Y')


def display_time(moment):
    return moment.strftime('%I:%M %p')


def display_datetime(moment):
    return f'{display_date(moment)}, {display_time(moment)}'
