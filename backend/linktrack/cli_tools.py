#!/usr/bin/env python3
"""
CLI tool for managing projects and tracked links.
Usage: python -m linktrack.cli_tools create-project OWNER NAME [--slug SLUG]
"""

import argparse
import sys

from pydantic import ValidationError

from .database import get_db, engine, Base
from .models import Link, Project
from .schemas import LinkCreate, ProjectCreate
from .services import LinkService, ProjectService
from .utils import format_tracking_url


def _validation_message(e: ValidationError) -> str:
    return "; ".join(err["msg"] for err in e.errors())


def create_project(owner_id: str, name: str, slug: str = None, description: str = None):
    """Create a project and print its slug."""
    Base.metadata.create_all(bind=engine)

    try:
        data = ProjectCreate(owner_id=owner_id, name=name, slug=slug, description=description)
    except ValidationError as e:
        print(f"Invalid project: {_validation_message(e)}")
        return None

    db = next(get_db())
    try:
        project, error = ProjectService.create_project(db, data)
        if error:
            print(f"Could not create project: {error}")
            return None
        print("\n" + "=" * 60)
        print("PROJECT CREATED")
        print("=" * 60)
        print(f"\nID:       {project.id}")
        print(f"Name:     {project.name}")
        print(f"Slug:     {project.slug}")
        print(f"Owner:    {project.owner_id}")
        print(f"Created:  {project.created_at}")
        print("\n" + "=" * 60 + "\n")
        return project.id
    finally:
        db.close()


def add_link(project_id: int, destination_url: str, title: str, platform: str = None):
    """Add a tracked link to a project and print its tracking URLs."""
    Base.metadata.create_all(bind=engine)

    try:
        data = LinkCreate(destination_url=destination_url, link_title=title, platform=platform)
    except ValidationError as e:
        print(f"Invalid link: {_validation_message(e)}")
        return None

    db = next(get_db())
    try:
        project = db.query(Project).filter(Project.id == project_id).first()
        if not project:
            print(f"Project {project_id} not found.")
            return None
        link, error = LinkService.create_link(db, project, data)
        if error:
            print(f"Could not add link: {error}")
            return None
        print("\n" + "=" * 60)
        print("LINK ADDED")
        print("=" * 60)
        print(f"\nID:          {link.id}")
        print(f"Title:       {link.link_title}")
        print(f"Destination: {link.destination_url}")
        print(f"Short code:  {link.short_code}")
        print(f"Submission:  {link.submission_number}")
        print(f"\nProject URL: {format_tracking_url(link.short_code, project.slug)}")
        print(f"Global URL:  {format_tracking_url(link.short_code)}")
        print(f"Creator URL: {format_tracking_url(link.short_code, project.slug, '<creator>', link.submission_number)}")
        print("\n" + "=" * 60 + "\n")
        return link.id
    finally:
        db.close()


def list_links(project_id: int):
    """List the links of a project."""
    Base.metadata.create_all(bind=engine)

    db = next(get_db())
    try:
        links = (
            db.query(Link)
            .filter(Link.project_id == project_id)
            .order_by(Link.created_at.asc(), Link.id.asc())
            .all()
        )
        if not links:
            print("No links found.")
            return

        print(f"\nLinks in project {project_id}:")
        print("-" * 90)
        print(f"{'ID':<6} {'Code':<8} {'Sub':<8} {'Active':<8} {'Title':<25} {'Destination'}")
        print("-" * 90)
        for link in links:
            print(
                f"{link.id:<6} {link.short_code:<8} {link.submission_number:<8} "
                f"{str(link.is_active):<8} {link.link_title[:24]:<25} {link.destination_url[:40]}"
            )
        print("-" * 90)
    finally:
        db.close()


def set_active(link_id: int, active: bool):
    """Activate or deactivate a link by ID."""
    Base.metadata.create_all(bind=engine)

    db = next(get_db())
    try:
        if LinkService.set_active(db, link_id, active):
            state = "activated" if active else "deactivated"
            print(f"Link {link_id} {state} successfully.")
            return True
        print(f"Link {link_id} not found.")
        return False
    finally:
        db.close()


def delete_project(project_id: int):
    """Delete a project with all of its links and clicks."""
    Base.metadata.create_all(bind=engine)

    db = next(get_db())
    try:
        if ProjectService.delete_project(db, project_id):
            print(f"Project {project_id} deleted successfully.")
            return True
        print(f"Project {project_id} not found.")
        return False
    finally:
        db.close()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Link Tracker Management CLI")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    proj_parser = subparsers.add_parser("create-project", help="Create a project")
    proj_parser.add_argument("owner", help="Owner user id")
    proj_parser.add_argument("name", help="Project name")
    proj_parser.add_argument("--slug", "-s", help="Custom slug (generated when omitted)")
    proj_parser.add_argument("--description", "-d", help="Optional description")

    link_parser = subparsers.add_parser("add-link", help="Add a tracked link to a project")
    link_parser.add_argument("project_id", type=int, help="ID of the project")
    link_parser.add_argument("url", help="Destination URL")
    link_parser.add_argument("--title", "-t", required=True, help="Link title")
    link_parser.add_argument("--platform", "-p", help="Platform name (e.g. tiktok)")

    list_parser = subparsers.add_parser("list-links", help="List the links of a project")
    list_parser.add_argument("project_id", type=int, help="ID of the project")

    active_parser = subparsers.add_parser("set-active", help="Activate or deactivate a link")
    active_parser.add_argument("link_id", type=int, help="ID of the link")
    active_parser.add_argument("state", choices=["on", "off"], help="on to activate, off to deactivate")

    del_parser = subparsers.add_parser("delete-project", help="Delete a project and its data")
    del_parser.add_argument("project_id", type=int, help="ID of the project")

    args = parser.parse_args(argv)

    if args.command == "create-project":
        ok = create_project(args.owner, args.name, slug=args.slug, description=args.description)
    elif args.command == "add-link":
        ok = add_link(args.project_id, args.url, args.title, platform=args.platform)
    elif args.command == "list-links":
        list_links(args.project_id)
        ok = True
    elif args.command == "set-active":
        ok = set_active(args.link_id, args.state == "on")
    elif args.command == "delete-project":
        ok = delete_project(args.project_id)
    else:
        parser.print_help()
        ok = True

    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
