from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .analytics import ALL_SUBMISSIONS, aggregate, creator_drilldown, load_clicks
from .auth import get_owned_link, get_owned_project
from .database import get_db
from .models import ClickEvent, Link, Project
from .schemas import AnalyticsResponse, CreatorAnalyticsResponse, ErrorResponse
from .services import LinkService
from .logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter()

READ_ERROR_RESPONSES = {
    401: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


def _check_range(start: Optional[date], end: Optional[date]) -> None:
    if start and end and end < start:
        raise HTTPException(status_code=400, detail="End date must not be before start date")


def _load_or_503(db: Session, link_ids: List[int], creator: Optional[str] = None) -> List[ClickEvent]:
    try:
        return load_clicks(db, link_ids, creator=creator)
    except SQLAlchemyError as e:
        logger.error(f"Failed to load clicks for links {link_ids}: {e}")
        raise HTTPException(status_code=503, detail="Analytics data is unavailable")


@router.get(
    "/links/{link_id}/analytics",
    response_model=AnalyticsResponse,
    responses=READ_ERROR_RESPONSES,
)
async def link_analytics(
    start: Optional[date] = Query(None, description="First day of the daily series (default: this Monday)"),
    end: Optional[date] = Query(None, description="Last day of the daily series (default: this Sunday)"),
    link: Link = Depends(get_owned_link),
    db: Session = Depends(get_db),
):
    """Click statistics for one link."""
    _check_range(start, end)
    clicks = _load_or_503(db, [link.id])
    stats = aggregate(clicks, LinkService.titles_by_id([link]), start=start, end=end)
    return AnalyticsResponse.model_validate(stats)


@router.get(
    "/links/{link_id}/analytics/creators/{creator}",
    response_model=CreatorAnalyticsResponse,
    responses=READ_ERROR_RESPONSES,
)
async def creator_analytics(
    creator: str,
    submission: str = Query(ALL_SUBMISSIONS, description="'all' or one submission number"),
    link: Link = Depends(get_owned_link),
    db: Session = Depends(get_db),
):
    """Statistics for one creator on one link."""
    clicks = _load_or_503(db, [link.id], creator=creator)
    stats = creator_drilldown(clicks, creator, submission=submission)
    return CreatorAnalyticsResponse.model_validate(stats)


@router.get(
    "/projects/{project_id}/analytics",
    response_model=AnalyticsResponse,
    responses=READ_ERROR_RESPONSES,
)
async def project_analytics(
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    project: Project = Depends(get_owned_project),
    db: Session = Depends(get_db),
):
    """Click statistics across every link of a project."""
    _check_range(start, end)
    links = list(project.links)
    clicks = _load_or_503(db, [l.id for l in links])
    stats = aggregate(clicks, LinkService.titles_by_id(links), start=start, end=end)
    return AnalyticsResponse.model_validate(stats)
