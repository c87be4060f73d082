"""
Caller identity for dashboard endpoints.

Authentication happens upstream; the identity provider forwards the
authenticated user id in a trusted header. This module only reads it and
checks project ownership.
"""

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db
from .models import Link, Project
from .logging_config import get_logger

logger = get_logger(__name__)


def get_current_owner(request: Request) -> str:
    """Dependency returning the caller's user id, or 401 when absent."""
    owner_id = (request.headers.get(settings.IDENTITY_HEADER) or "").strip()
    if not owner_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    return owner_id


def get_owned_project(
    project_id: int,
    owner_id: str = Depends(get_current_owner),
    db: Session = Depends(get_db),
) -> Project:
    """Load a project the caller owns. Foreign projects look like missing ones."""
    project = db.query(Project).filter(Project.id == project_id).first()
    if project is None or project.owner_id != owner_id:
        if project is not None:
            logger.warning(f"User {owner_id} denied access to project {project_id}")
        raise HTTPException(status_code=404, detail="Project not found")
    return project


def get_owned_link(
    link_id: int,
    owner_id: str = Depends(get_current_owner),
    db: Session = Depends(get_db),
) -> Link:
    """Load a link whose project the caller owns."""
    link = db.query(Link).filter(Link.id == link_id).first()
    if link is None or link.project.owner_id != owner_id:
        if link is not None:
            logger.warning(f"User {owner_id} denied access to link {link_id}")
        raise HTTPException(status_code=404, detail="Link not found")
    return link
