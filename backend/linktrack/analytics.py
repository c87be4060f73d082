"""
Click analytics for the dashboard.

Everything below load_clicks() is a pure function over click rows that are
already ordered newest first. Empty input always yields zero totals, empty
groupings and a zero-filled daily series.
"""

import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, tzinfo
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from .config import settings
from .models import ClickEvent
from .utils import format_day_label, get_timezone, local_date, normalize_utc, week_bounds

ALL_SUBMISSIONS = "all"

# "7" and "sub7" both sort as the number 7
NUMERIC_SUBMISSION = re.compile(r"^(?:sub)?(\d+)$")


@dataclass
class DailyCount:
    date: date
    label: str
    count: int


@dataclass
class CreatorSummary:
    username: str
    total_clicks: int
    last_click: Optional[datetime]
    submissions: int


@dataclass
class ClickStats:
    start: date
    end: date
    total_clicks: int = 0
    clicks_by_link_title: Dict[str, int] = field(default_factory=dict)
    clicks_by_creator: Dict[str, int] = field(default_factory=dict)
    clicks_by_submission: Dict[str, int] = field(default_factory=dict)
    clicks_by_country: Dict[str, int] = field(default_factory=dict)
    clicks_by_device: Dict[str, int] = field(default_factory=dict)
    clicks_by_browser: Dict[str, int] = field(default_factory=dict)
    daily: List[DailyCount] = field(default_factory=list)
    recent: List[ClickEvent] = field(default_factory=list)
    creators: List[CreatorSummary] = field(default_factory=list)


@dataclass
class CreatorStats:
    creator: str
    selected_submission: str
    total_clicks: int = 0
    submissions: List[str] = field(default_factory=list)
    clicks_by_submission: Dict[str, int] = field(default_factory=dict)
    clicks_by_country: Dict[str, int] = field(default_factory=dict)
    clicks_by_device: Dict[str, int] = field(default_factory=dict)
    clicks_by_browser: Dict[str, int] = field(default_factory=dict)
    recent: List[ClickEvent] = field(default_factory=list)


def load_clicks(
    db: Session,
    link_ids: Sequence[int],
    creator: Optional[str] = None,
) -> List[ClickEvent]:
    """
    Load click rows for links, newest first.
    Database errors are not caught here; read failures belong to the caller.
    """
    if not link_ids:
        return []
    query = db.query(ClickEvent).filter(ClickEvent.link_id.in_(list(link_ids)))
    if creator is not None:
        query = query.filter(ClickEvent.creator_username == creator)
    return query.order_by(ClickEvent.clicked_at.desc(), ClickEvent.id.desc()).all()


def sort_by_count(counts: Mapping[str, int]) -> Dict[str, int]:
    """Highest count first; equal counts ordered by key."""
    return dict(sorted(counts.items(), key=lambda item: (-item[1], item[0])))


def submission_sort_key(value: str) -> Tuple[int, int, str, str]:
    """
    Sort key for submission labels.

    Numeric labels ("3", "sub3") come first in ascending numeric order; all
    other labels follow case-insensitively alphabetical. The raw label breaks
    any remaining tie so the order is total.
    """
    match = NUMERIC_SUBMISSION.match(value)
    if match:
        return (0, int(match.group(1)), "", value)
    return (1, 0, value.casefold(), value)


def sort_submission_counts(counts: Mapping[str, int]) -> Dict[str, int]:
    return {key: counts[key] for key in sorted(counts, key=submission_sort_key)}


def sort_submissions(values: Iterable[str]) -> List[str]:
    return sorted(set(values), key=submission_sort_key)


def current_week(tz: Optional[tzinfo] = None, today: Optional[date] = None) -> Tuple[date, date]:
    """Monday..Sunday of the current week in the analytics timezone."""
    if today is None:
        tz = tz or get_timezone(settings.TIMEZONE)
        today = datetime.now(tz).date()
    return week_bounds(today)


def fill_range(
    start: Optional[date],
    end: Optional[date],
    tz: Optional[tzinfo] = None,
) -> Tuple[date, date]:
    """
    Complete a possibly partial date range.
    One missing end is taken as seven days from the other; with neither,
    the current week is used.
    """
    if start is None and end is None:
        return current_week(tz)
    if end is None:
        return start, start + timedelta(days=6)
    if start is None:
        return end - timedelta(days=6), end
    return start, end


def daily_series(day_counts: Mapping[date, int], start: date, end: date) -> List[DailyCount]:
    """One entry per day in [start, end], zero-filled."""
    days = (end - start).days + 1
    series = []
    for offset in range(max(days, 0)):
        day = start + timedelta(days=offset)
        series.append(DailyCount(date=day, label=format_day_label(day), count=day_counts.get(day, 0)))
    return series


def summarize_creators(clicks: Sequence[ClickEvent]) -> List[CreatorSummary]:
    """Per-creator totals, most recently active creator first."""
    totals: Counter = Counter()
    last_click: Dict[str, Optional[datetime]] = {}
    submissions: Dict[str, set] = {}
    for click in clicks:
        name = click.creator_username
        if not name:
            continue
        totals[name] += 1
        seen = normalize_utc(click.clicked_at)
        previous = last_click.get(name)
        if previous is None or (seen is not None and seen > previous):
            last_click[name] = seen or previous
        if click.submission_number:
            submissions.setdefault(name, set()).add(click.submission_number)

    summaries = [
        CreatorSummary(
            username=name,
            total_clicks=count,
            last_click=last_click.get(name),
            submissions=len(submissions.get(name, ())),
        )
        for name, count in totals.items()
    ]
    summaries.sort(key=lambda s: s.username)
    summaries.sort(key=lambda s: s.last_click.timestamp() if s.last_click else float("-inf"), reverse=True)
    return summaries


def _tally(clicks: Iterable[ClickEvent], fields: Dict[str, Callable[[ClickEvent], Any]]) -> Dict[str, Counter]:
    """Count the truthy values of every field in one pass over the rows."""
    counters = {name: Counter() for name in fields}
    for click in clicks:
        for name, getter in fields.items():
            value = getter(click)
            if value:
                counters[name][value] += 1
    return counters


def aggregate(
    clicks: Sequence[ClickEvent],
    link_titles: Mapping[int, str],
    start: Optional[date] = None,
    end: Optional[date] = None,
    tz: Optional[tzinfo] = None,
    recent_limit: Optional[int] = None,
) -> ClickStats:
    """
    Build the dashboard statistics for a set of click rows.

    Groupings cover every row; the daily series covers [start, end] as
    completed by fill_range().
    """
    tz = tz or get_timezone(settings.TIMEZONE)
    start, end = fill_range(start, end, tz)
    if recent_limit is None:
        recent_limit = settings.RECENT_CLICKS_LIMIT

    counters = _tally(clicks, {
        "title": lambda c: link_titles.get(c.link_id),
        "creator": lambda c: c.creator_username,
        "submission": lambda c: c.submission_number,
        "country": lambda c: c.country,
        "device": lambda c: c.device_type,
        "browser": lambda c: c.browser,
        "day": lambda c: local_date(c.clicked_at, tz) if c.clicked_at is not None else None,
    })

    return ClickStats(
        start=start,
        end=end,
        total_clicks=len(clicks),
        clicks_by_link_title=sort_by_count(counters["title"]),
        clicks_by_creator=sort_by_count(counters["creator"]),
        clicks_by_submission=sort_submission_counts(counters["submission"]),
        clicks_by_country=sort_by_count(counters["country"]),
        clicks_by_device=sort_by_count(counters["device"]),
        clicks_by_browser=sort_by_count(counters["browser"]),
        daily=daily_series(counters["day"], start, end),
        recent=list(clicks[:recent_limit]),
        creators=summarize_creators(clicks),
    )


def creator_drilldown(
    clicks: Sequence[ClickEvent],
    creator: str,
    submission: str = ALL_SUBMISSIONS,
    recent_limit: Optional[int] = None,
) -> CreatorStats:
    """
    Statistics for one creator, optionally narrowed to one submission.

    `submissions` always lists every submission the creator has, so the
    caller can offer the full filter list while a single one is selected.
    """
    if recent_limit is None:
        recent_limit = settings.RECENT_CLICKS_LIMIT

    own = [c for c in clicks if c.creator_username == creator]
    selected = own
    if submission and submission != ALL_SUBMISSIONS:
        selected = [c for c in own if c.submission_number == submission]

    counters = _tally(selected, {
        "submission": lambda c: c.submission_number,
        "country": lambda c: c.country,
        "device": lambda c: c.device_type,
        "browser": lambda c: c.browser,
    })

    return CreatorStats(
        creator=creator,
        selected_submission=submission or ALL_SUBMISSIONS,
        total_clicks=len(selected),
        submissions=sort_submissions(c.submission_number for c in own if c.submission_number),
        clicks_by_submission=sort_submission_counts(counters["submission"]),
        clicks_by_country=sort_by_count(counters["country"]),
        clicks_by_device=sort_by_count(counters["device"]),
        clicks_by_browser=sort_by_count(counters["browser"]),
        recent=selected[:recent_limit],
    )
