"""Project-level authorization checks used by every mutating endpoint."""

from __future__ import annotations

from typing import Any

from .errors import ForbiddenError, NotFoundError, ValidationError
from .extensions import db
from .models import Project


def parse_id(raw: Any, field: str) -> int:
    """Convert an opaque identifier from a request body into a primary key."""

    if raw is None or (isinstance(raw, str) and not raw.strip()):
        raise ValidationError(f"Missing required field: {field}")
    try:
        return int(str(raw).strip())
    except ValueError as exc:
        raise ValidationError(f"Invalid identifier for {field}.") from exc


def get_project_or_404(project_id: Any) -> Project:
    project = db.session.get(Project, parse_id(project_id, "projectId"))
    if project is None:
        raise NotFoundError("Project not found")
    return project


def can_read(project: Project, user) -> bool:
    if project.owner_id == user.id:
        return True
    return project.collaborator_role(user.id) is not None


def can_write(project: Project, user) -> bool:
    if project.owner_id == user.id:
        return True
    return project.collaborator_role(user.id) == "Editor"


def require_project_access(project: Project, user) -> Project:
    if not can_read(project, user):
        raise ForbiddenError("You do not have permission to access this project")
    return project


def require_project_editor(project: Project, user) -> Project:
    if not can_write(project, user):
        raise ForbiddenError("You do not have permission to modify this project")
    return project


def require_project_owner(project: Project, user) -> Project:
    if project.owner_id != user.id:
        raise ForbiddenError("Only the project owner can manage collaborators")
    return project
