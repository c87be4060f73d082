import secrets
import string
import time
from typing import Dict, Iterable, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .config import settings
from .models import ClickEvent, Link, Project, ProjectPassword
from .schemas import LinkCreate, ProjectCreate
from .utils import PROJECT_SLUG_FORMATS, SHORT_CODE_FORMATS, generate_code
from .logging_config import get_logger

logger = get_logger(__name__)

MAX_RETRY_ATTEMPTS = 3
ATTEMPTS_PER_FORMAT = 50


def is_reserved_slug(slug: str) -> bool:
    return slug.lower() in {s.lower() for s in settings.RESERVED_SLUGS}


class ProjectService:
    """Persistence for projects."""

    @staticmethod
    def slug_exists(db: Session, slug: str) -> bool:
        return db.query(Project.id).filter(Project.slug == slug).first() is not None

    @staticmethod
    def generate_unique_slug(db: Session) -> str:
        """
        Pick a free slug, shortest format first.
        Single letters are chosen from the free ones directly; longer formats
        are sampled at random.
        """
        for letters, digits in PROJECT_SLUG_FORMATS:
            if (letters, digits) == (1, 0):
                taken = {
                    row.slug for row in
                    db.query(Project.slug).filter(func.length(Project.slug) == 1).all()
                }
                available = [
                    c for c in string.ascii_lowercase
                    if c not in taken and not is_reserved_slug(c)
                ]
                if available:
                    return secrets.choice(available)
                continue

            for _ in range(ATTEMPTS_PER_FORMAT):
                candidate = generate_code(letters, digits)
                if not is_reserved_slug(candidate) and not ProjectService.slug_exists(db, candidate):
                    return candidate

        return generate_code(3, 2) + str(int(time.time()))[-2:]

    @staticmethod
    def create_project(db: Session, data: ProjectCreate) -> Tuple[Optional[Project], Optional[str]]:
        """
        Create a project.
        Returns (project, error_message).
        """
        if data.slug:
            if is_reserved_slug(data.slug):
                return None, "This slug is reserved"
            if ProjectService.slug_exists(db, data.slug):
                return None, "This slug is already taken"

        for attempt in range(MAX_RETRY_ATTEMPTS):
            slug = data.slug or ProjectService.generate_unique_slug(db)
            project = Project(
                owner_id=data.owner_id,
                name=data.name,
                description=data.description,
                slug=slug,
            )
            try:
                db.add(project)
                db.commit()
                db.refresh(project)
            except IntegrityError:
                db.rollback()
                if data.slug:
                    return None, "This slug is already taken"
                logger.info(f"Slug collision on {slug}, retrying (attempt {attempt + 1})")
                continue

            logger.info(f"Created project {project.id} with slug {slug}")
            return project, None

        return None, "Failed to create project. Please try again."

    @staticmethod
    def get_by_slug(db: Session, slug: str) -> Optional[Project]:
        return db.query(Project).filter(Project.slug == slug).first()

    @staticmethod
    def delete_project(db: Session, project_id: int) -> bool:
        """Delete a project with its clicks, links and passwords, children first."""
        project = db.query(Project).filter(Project.id == project_id).first()
        if not project:
            return False

        link_ids = [row.id for row in db.query(Link.id).filter(Link.project_id == project_id).all()]
        if link_ids:
            db.query(ClickEvent).filter(ClickEvent.link_id.in_(link_ids)).delete(synchronize_session=False)
        db.query(Link).filter(Link.project_id == project_id).delete(synchronize_session=False)
        db.query(ProjectPassword).filter(ProjectPassword.project_id == project_id).delete(synchronize_session=False)
        db.expire(project)
        db.delete(project)
        db.commit()

        logger.info(f"Deleted project {project_id} and {len(link_ids)} links")
        return True


class LinkService:
    """Persistence for tracked links."""

    @staticmethod
    def short_code_in_use(db: Session, code: str) -> bool:
        return db.query(Link.id).filter(Link.short_code == code).first() is not None

    @staticmethod
    def project_short_code(db: Session, project: Project) -> str:
        """
        The short code shared by all links of a project.
        A project without links gets a code no other project uses.
        """
        existing = (
            db.query(Link.short_code)
            .filter(Link.project_id == project.id)
            .order_by(Link.created_at.asc(), Link.id.asc())
            .first()
        )
        if existing:
            return existing.short_code

        for letters, digits in SHORT_CODE_FORMATS:
            for _ in range(ATTEMPTS_PER_FORMAT):
                candidate = generate_code(letters, digits)
                if not LinkService.short_code_in_use(db, candidate):
                    return candidate

        return generate_code(4, 2) + str(int(time.time()))[-2:]

    @staticmethod
    def next_submission_number(db: Session, project: Project) -> str:
        count = db.query(func.count(Link.id)).filter(Link.project_id == project.id).scalar() or 0
        return f"sub{count + 1}"

    @staticmethod
    def create_link(db: Session, project: Project, data: LinkCreate) -> Tuple[Optional[Link], Optional[str]]:
        """
        Add a tracked link to a project.
        Returns (link, error_message). A destination already tracked in the
        project is rejected by the database's unique constraint.
        """
        link = Link(
            project_id=project.id,
            destination_url=data.destination_url,
            short_code=LinkService.project_short_code(db, project),
            link_title=data.link_title,
            platform=data.platform,
            submission_number=LinkService.next_submission_number(db, project),
            is_active=True,
        )
        try:
            db.add(link)
            db.commit()
            db.refresh(link)
        except IntegrityError:
            db.rollback()
            logger.warning(f"Duplicate destination for project {project.id}: {data.destination_url[:50]}")
            return None, "This destination URL is already tracked in this project"

        logger.info(f"Created link {link.id} ({link.submission_number}) -> {link.destination_url[:50]}...")
        return link, None

    @staticmethod
    def set_active(db: Session, link_id: int, active: bool) -> bool:
        link = db.query(Link).filter(Link.id == link_id).first()
        if not link:
            return False
        link.is_active = active
        db.commit()
        return True

    @staticmethod
    def delete_link(db: Session, link_id: int) -> bool:
        """Delete a link and its clicks."""
        link = db.query(Link).filter(Link.id == link_id).first()
        if not link:
            return False
        db.query(ClickEvent).filter(ClickEvent.link_id == link_id).delete(synchronize_session=False)
        db.expire(link)
        db.delete(link)
        db.commit()
        return True

    @staticmethod
    def titles_by_id(links: Iterable[Link]) -> Dict[int, str]:
        return {link.id: link.link_title for link in links}
