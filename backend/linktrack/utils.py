import secrets
import string
from typing import Optional, Tuple
from datetime import date, datetime, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from .config import settings

# Project slug formats as (letters, digits), tried in order as the
# shorter ones run out.
PROJECT_SLUG_FORMATS = [
    (1, 0), (1, 2), (2, 1), (1, 3), (3, 0),
    (2, 2), (3, 1), (2, 3), (4, 0), (3, 2),
]

SHORT_CODE_FORMATS = [(2, 3), (3, 2), (4, 1), (3, 3), (4, 2)]


def generate_code(letters: int, digits: int) -> str:
    """Random code of `letters` lowercase letters followed by `digits` digits."""
    head = ''.join(secrets.choice(string.ascii_lowercase) for _ in range(letters))
    tail = ''.join(secrets.choice(string.digits) for _ in range(digits))
    return head + tail


def format_tracking_url(
    short_code: str,
    project_slug: Optional[str] = None,
    creator: Optional[str] = None,
    submission: Optional[str] = None,
) -> str:
    """Build a public tracking URL for a link."""
    base = settings.BASE_URL.rstrip('/')
    parts = [project_slug] if project_slug else ["l"]
    parts.append(short_code)
    if creator:
        parts.append(creator)
        if submission:
            parts.append(submission)
    return f"{base}/" + "/".join(parts)


def utc_now() -> datetime:
    """Return timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def normalize_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Normalize a datetime to timezone-aware UTC (assume naive is UTC)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def get_timezone(name: str) -> tzinfo:
    """Resolve a timezone name, falling back to UTC for unknown names."""
    if not name or name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return timezone.utc


def local_date(dt: datetime, tz: tzinfo) -> date:
    """Calendar day of a stored timestamp in the given timezone."""
    return normalize_utc(dt).astimezone(tz).date()


def week_bounds(today: date) -> Tuple[date, date]:
    """Monday and Sunday of the week containing `today`."""
    monday = today - timedelta(days=today.weekday())
    return monday, monday + timedelta(days=6)


def format_day_label(day: date) -> str:
    """Short human label for a day, e.g. "Oct 6"."""
    return f"{day.strftime('%b')} {day.day}"
