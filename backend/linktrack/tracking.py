"""
Click tracking pipeline: resolve, enrich, record, then redirect.
"""

import enum
from dataclasses import dataclass
from typing import Optional, Sequence

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .config import settings
from .geolocation import GeoLocation, GeoResolver
from .models import ClickEvent
from .resolver import LinkLookup, ResolvedLink, resolve
from .security import clean_client_ip
from .signals import ClientSignals, extract_signals
from .utils import utc_now
from .logging_config import get_logger

logger = get_logger(__name__)


class TrackingState(str, enum.Enum):
    REDIRECT_TO_DESTINATION = "redirect_to_destination"
    REDIRECT_TO_BLANK = "redirect_to_blank"


@dataclass(frozen=True)
class TrackingOutcome:
    state: TrackingState
    location: str
    click_id: Optional[int] = None

    @classmethod
    def blank(cls) -> "TrackingOutcome":
        return cls(TrackingState.REDIRECT_TO_BLANK, settings.BLANK_REDIRECT_URL)


@dataclass(frozen=True)
class RequestMeta:
    user_agent: str
    referrer: Optional[str]
    client_ip: Optional[str]


def get_client_ip(request: Request) -> Optional[str]:
    """Extract client IP, considering proxy and Cloudflare headers."""
    cf_ip = request.headers.get("CF-Connecting-IP")
    if cf_ip:
        return cf_ip.strip()

    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return request.client.host if request.client else None


def request_meta(request: Request) -> RequestMeta:
    return RequestMeta(
        user_agent=request.headers.get("user-agent", ""),
        referrer=request.headers.get("referer") or None,
        client_ip=get_client_ip(request),
    )


class ClickRecorder:
    """Writes click events. Rows are never updated or retried."""

    @staticmethod
    def build_click(
        resolved: ResolvedLink,
        signals: ClientSignals,
        location: GeoLocation,
        meta: RequestMeta,
    ) -> ClickEvent:
        return ClickEvent(
            link_id=resolved.link.id,
            platform_name=resolved.link.platform,
            creator_username=resolved.creator_username,
            submission_number=resolved.submission_number,
            ip_address=clean_client_ip(meta.client_ip) or location.resolved_ip,
            user_agent=meta.user_agent,
            referrer=meta.referrer,
            country=location.country,
            city=location.city,
            device_type=signals.device_type,
            browser=signals.browser,
            os=signals.os,
            is_bot=signals.is_bot,
            clicked_at=utc_now(),
        )

    @staticmethod
    def record(
        db: Session,
        resolved: ResolvedLink,
        signals: ClientSignals,
        location: GeoLocation,
        meta: RequestMeta,
    ) -> Optional[ClickEvent]:
        """
        Insert one click event.
        Returns the stored row, or None if the insert failed (logged, not raised).
        """
        click = ClickRecorder.build_click(resolved, signals, location, meta)
        link_id = click.link_id
        try:
            db.add(click)
            db.commit()
            db.refresh(click)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to record click for link {link_id}: {e}")
            return None

        logger.info(
            f"Click {click.id} recorded for link {click.link_id} "
            f"(creator={click.creator_username}, sub={click.submission_number}, country={click.country})"
        )
        return click


async def dispatch(
    db: Session,
    lookup: LinkLookup,
    segments: Sequence[str],
    meta: RequestMeta,
    geo_resolver: GeoResolver,
) -> TrackingOutcome:
    """
    Run the tracking pipeline for one request.

    The click insert is attempted before the destination outcome is returned.
    Unexpected errors propagate; the route turns them into a blank redirect.
    """
    resolved = resolve(db, lookup, segments)
    if resolved is None:
        return TrackingOutcome.blank()

    # Fixed before the insert so a failed write cannot change the redirect
    destination = resolved.link.destination_url

    signals = extract_signals(meta.user_agent)
    location = await geo_resolver.resolve(meta.client_ip)

    click = ClickRecorder.record(db, resolved, signals, location, meta)

    return TrackingOutcome(
        state=TrackingState.REDIRECT_TO_DESTINATION,
        location=destination,
        click_id=click.id if click is not None else None,
    )
