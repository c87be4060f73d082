from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean, Text, BigInteger, Index,
    ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from .database import Base
from .utils import utc_now

# SQLite only autoincrements INTEGER primary keys
PrimaryKey = BigInteger().with_variant(Integer(), "sqlite")


class Project(Base):
    """A group of tracked links owned by one user."""

    __tablename__ = "projects"

    id = Column(PrimaryKey, primary_key=True, autoincrement=True)
    owner_id = Column(String(64), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    slug = Column(String(32), unique=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    links = relationship(
        "Link",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Link.created_at",
    )
    passwords = relationship(
        "ProjectPassword",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<Project(slug={self.slug}, name={self.name})>"


class Link(Base):
    """A tracked destination inside a project."""

    __tablename__ = "links"

    id = Column(PrimaryKey, primary_key=True, autoincrement=True)
    project_id = Column(
        PrimaryKey, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    destination_url = Column(String(2048), nullable=False)
    short_code = Column(String(20), nullable=False)
    link_title = Column(String(255), nullable=False)
    platform = Column(String(100), nullable=True)
    submission_number = Column(String(20), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    project = relationship("Project", back_populates="links")
    clicks = relationship(
        "ClickEvent",
        back_populates="link",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint("project_id", "destination_url", name="uq_link_project_destination"),
        Index("idx_link_project_code", "project_id", "short_code"),
        Index("idx_link_code_active", "short_code", "is_active"),
    )

    def __repr__(self):
        return f"<Link(code={self.short_code}, sub={self.submission_number}, url={self.destination_url[:50]}...)>"


class ClickEvent(Base):
    """One visit to a tracking URL. Rows are only ever inserted."""

    __tablename__ = "link_clicks"

    id = Column(PrimaryKey, primary_key=True, autoincrement=True)
    link_id = Column(
        PrimaryKey, ForeignKey("links.id", ondelete="CASCADE"), nullable=False
    )
    platform_name = Column(String(100), nullable=True)
    creator_username = Column(String(255), nullable=True)
    submission_number = Column(String(20), nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    referrer = Column(Text, nullable=True)
    country = Column(String(100), nullable=True)
    city = Column(String(100), nullable=True)
    device_type = Column(String(20), nullable=False)
    browser = Column(String(20), nullable=False)
    os = Column(String(20), nullable=False)
    is_bot = Column(Boolean, default=False, nullable=False)
    clicked_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    link = relationship("Link", back_populates="clicks")

    __table_args__ = (
        Index("idx_click_link_clicked", "link_id", "clicked_at"),
        Index("idx_click_creator", "link_id", "creator_username"),
    )

    def __repr__(self):
        return f"<ClickEvent(link_id={self.link_id}, at={self.clicked_at})>"


class ProjectPassword(Base):
    """Access password for a protected project; verified by the auth layer."""

    __tablename__ = "project_passwords"

    id = Column(PrimaryKey, primary_key=True, autoincrement=True)
    project_id = Column(
        PrimaryKey, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    password_hash = Column(String(255), nullable=False)
    description = Column(String(255), nullable=True)
    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())

    def __repr__(self):
        return f"<ProjectPassword(project_id={self.project_id})>"
