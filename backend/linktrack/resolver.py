"""
Link resolution for tracking URLs.

A tracking URL names its link either through a project slug plus the
project's shared short code, or through the short code alone. Both modes
go through resolve(); only the candidate query differs.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

from sqlalchemy.orm import Session

from .models import Link
from .services import ProjectService
from .logging_config import get_logger

logger = get_logger(__name__)

# Bounded so a token always fits ClickEvent.submission_number
SUBMISSION_PATTERN = re.compile(r"^sub\d{1,16}$")

MAX_CREATOR_LENGTH = 255


@dataclass(frozen=True)
class SlugScoped:
    project_slug: str
    short_code: str


@dataclass(frozen=True)
class GlobalCode:
    short_code: str


LinkLookup = Union[SlugScoped, GlobalCode]


@dataclass(frozen=True)
class ResolvedLink:
    link: Link
    creator_username: Optional[str]
    submission_number: Optional[str]


def split_segments(segments: Sequence[str]) -> Tuple[Optional[str], Optional[str]]:
    """Read trailing path segments as (creator_username, submission_token)."""
    parts = [s for s in segments if s]
    creator = parts[0][:MAX_CREATOR_LENGTH] if len(parts) > 0 else None
    submission = parts[1] if len(parts) > 1 else None
    return creator, submission


def is_valid_submission_token(token: str) -> bool:
    return bool(SUBMISSION_PATTERN.match(token))


def find_candidates(db: Session, lookup: LinkLookup) -> List[Link]:
    """Active links matching the lookup, oldest first."""
    query = db.query(Link).filter(
        Link.short_code == lookup.short_code,
        Link.is_active.is_(True),
    )
    if isinstance(lookup, SlugScoped):
        project = ProjectService.get_by_slug(db, lookup.project_slug)
        if project is None:
            logger.info(f"Unknown project slug: {lookup.project_slug}")
            return []
        query = query.filter(Link.project_id == project.id)
    return query.order_by(Link.created_at.asc(), Link.id.asc()).all()


def pick_link(candidates: List[Link], submission_token: Optional[str]) -> Optional[Link]:
    """Prefer the link tagged with the URL's submission number, else the oldest."""
    if not candidates:
        return None
    if submission_token:
        for link in candidates:
            if link.submission_number == submission_token:
                return link
    return candidates[0]


def resolve(db: Session, lookup: LinkLookup, segments: Sequence[str] = ()) -> Optional[ResolvedLink]:
    """
    Resolve a tracking request to its link and attribution.

    Returns None on any miss: malformed submission token, unknown project,
    unknown or inactive link. A malformed token short-circuits before any
    database access.
    """
    creator, submission_token = split_segments(segments)

    if submission_token is not None and not is_valid_submission_token(submission_token):
        logger.info(f"Invalid submission number format: {submission_token[:32]}")
        return None

    link = pick_link(find_candidates(db, lookup), submission_token)
    if link is None:
        logger.info(f"No active link for {lookup}")
        return None

    return ResolvedLink(
        link=link,
        creator_username=creator,
        submission_number=submission_token or link.submission_number,
    )
