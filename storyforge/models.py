from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from .extensions import db, login_manager

COLLABORATOR_ROLES = ("Editor", "Viewer", "Contributor")
CHARACTER_ROLES = ("Protagonist", "Antagonist", "Supporting", "Minor")
PLOT_TYPES = ("Main Plot", "Subplot", "Character Arc")
PLOT_STATUSES = ("Planned", "In Progress", "Completed", "Abandoned")
SETTING_TYPES = ("City", "Country", "Planet", "Building", "Landscape", "Region", "World", "Room", "Other")
OBJECT_TYPES = ("Item", "Artifact", "Vehicle", "Weapon", "Tool", "Clothing", "Other")
CHAPTER_STATUSES = ("Draft", "Revised", "Final", "Needs Review")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    display_name = db.Column(db.String(120), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    projects = db.relationship("Project", backref="owner", lazy=True, cascade="all, delete-orphan")

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "email": self.email, "display_name": self.display_name}

    def __repr__(self) -> str:  # pragma: no cover - repr for debugging
        return f"<User {self.email}>"


@login_manager.user_loader
def load_user(user_id: str) -> Optional["User"]:
    return db.session.get(User, int(user_id))


class Project(db.Model):
    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text, nullable=True)
    genre = db.Column(db.String(50), nullable=True)
    target_audience = db.Column(db.String(50), nullable=True)
    status = db.Column(db.String(50), nullable=False, default="Draft")
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    collaborators = db.relationship(
        "ProjectCollaborator",
        backref="project",
        lazy=True,
        cascade="all, delete-orphan",
    )
    characters = db.relationship(
        "Character",
        backref="project",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="Character.name",
    )
    plots = db.relationship("Plot", backref="project", lazy=True, cascade="all, delete-orphan")
    settings = db.relationship("Setting", backref="project", lazy=True, cascade="all, delete-orphan")
    objects = db.relationship("StoryObject", backref="project", lazy=True, cascade="all, delete-orphan")
    chapters = db.relationship(
        "Chapter",
        backref="project",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="Chapter.position",
    )
    generations = db.relationship(
        "GenerationRecord",
        backref="project",
        lazy=True,
        cascade="all, delete-orphan",
    )
    exports = db.relationship("ProjectExport", backref="project", lazy=True, cascade="all, delete-orphan")

    def collaborator_role(self, user_id: int) -> Optional[str]:
        for collaborator in self.collaborators:
            if collaborator.user_id == user_id:
                return collaborator.role
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "genre": self.genre,
            "target_audience": self.target_audience,
            "status": self.status,
            "owner_id": self.owner_id,
            "collaborators": [collaborator.to_dict() for collaborator in self.collaborators],
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Project {self.title} ({self.status})>"


class ProjectCollaborator(db.Model):
    __tablename__ = "project_collaborators"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    role = db.Column(db.String(20), nullable=False, default="Viewer")

    user = db.relationship("User")

    __table_args__ = (
        db.UniqueConstraint("project_id", "user_id", name="uq_project_collaborator_user"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {"user_id": self.user_id, "role": self.role}


class Character(db.Model):
    __tablename__ = "characters"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    short_description = db.Column(db.Text, nullable=True)
    background = db.Column(db.Text, nullable=True)
    role = db.Column(db.String(120), nullable=True)
    physical_traits = db.Column(db.JSON, nullable=False, default=list)
    personality_traits = db.Column(db.JSON, nullable=False, default=list)
    goals = db.Column(db.JSON, nullable=False, default=list)
    fears = db.Column(db.JSON, nullable=False, default=list)
    skills = db.Column(db.JSON, nullable=False, default=list)
    voice = db.Column(db.Text, nullable=True)
    arc = db.Column(db.Text, nullable=True)
    relationships = db.Column(db.JSON, nullable=False, default=list)
    notes = db.Column(db.Text, nullable=True)
    ai_generated = db.Column(db.Boolean, nullable=False, default=False)
    edited_by_user = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "short_description": self.short_description,
            "background": self.background,
            "role": self.role,
            "physical_traits": list(self.physical_traits or []),
            "personality_traits": list(self.personality_traits or []),
            "goals": list(self.goals or []),
            "fears": list(self.fears or []),
            "skills": list(self.skills or []),
            "voice": self.voice,
            "arc": self.arc,
            "relationships": list(self.relationships or []),
            "notes": self.notes,
            "ai_generated": self.ai_generated,
            "edited_by_user": self.edited_by_user,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Character {self.name}>"


class Plot(db.Model):
    __tablename__ = "plots"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id"), nullable=False, index=True)
    title = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text, nullable=True)
    plot_type = db.Column(db.String(50), nullable=False, default="Main Plot")
    structure = db.Column(db.String(50), nullable=True)
    importance = db.Column(db.Integer, nullable=False, default=5)
    status = db.Column(db.String(50), nullable=False, default="Planned")
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "title": self.title,
            "description": self.description,
            "plot_type": self.plot_type,
            "structure": self.structure,
            "importance": self.importance,
            "status": self.status,
            "notes": self.notes,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Plot {self.title}>"


class Setting(db.Model):
    __tablename__ = "settings"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id"), nullable=False, index=True)
    name = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text, nullable=True)
    setting_type = db.Column(db.String(50), nullable=False, default="Other")
    time_period = db.Column(db.String(120), nullable=True)
    mood = db.Column(db.String(120), nullable=True)
    key_features = db.Column(db.JSON, nullable=False, default=list)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "description": self.description,
            "setting_type": self.setting_type,
            "time_period": self.time_period,
            "mood": self.mood,
            "key_features": list(self.key_features or []),
            "notes": self.notes,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Setting {self.name}>"


class StoryObject(db.Model):
    __tablename__ = "story_objects"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id"), nullable=False, index=True)
    name = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text, nullable=True)
    object_type = db.Column(db.String(50), nullable=False, default="Item")
    significance = db.Column(db.Text, nullable=True)
    history = db.Column(db.Text, nullable=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("characters.id"), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    owner = db.relationship("Character")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "description": self.description,
            "object_type": self.object_type,
            "significance": self.significance,
            "history": self.history,
            "owner_id": self.owner_id,
            "notes": self.notes,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<StoryObject {self.name}>"


class Chapter(db.Model):
    __tablename__ = "chapters"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id"), nullable=False, index=True)
    title = db.Column(db.String(150), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=1)
    synopsis = db.Column(db.Text, nullable=True)
    content = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(50), nullable=False, default="Draft")
    word_count = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)
    ai_generated = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "title": self.title,
            "position": self.position,
            "synopsis": self.synopsis,
            "content": self.content,
            "status": self.status,
            "word_count": self.word_count,
            "notes": self.notes,
            "ai_generated": self.ai_generated,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Chapter {self.position}: {self.title}>"


class GenerationRecord(db.Model):
    """Audit entry for one provider request/response pair.

    Rows are written once; ``is_saved`` is the only column that changes
    afterwards.
    """

    __tablename__ = "ai_generations"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    task = db.Column(db.String(20), nullable=False)
    request_params = db.Column(db.JSON, nullable=False, default=dict)
    response_content = db.Column(db.Text, nullable=False)
    model = db.Column(db.String(100), nullable=False, default="")
    generated_at = db.Column(db.String(40), nullable=False, default="")
    prompt_tokens = db.Column(db.Integer, nullable=False, default=0)
    completion_tokens = db.Column(db.Integer, nullable=False, default=0)
    total_tokens = db.Column(db.Integer, nullable=False, default=0)
    is_saved = db.Column(db.Boolean, nullable=False, default=False)
    parent_id = db.Column(db.Integer, db.ForeignKey("ai_generations.id"), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "projectId": self.project_id,
            "userId": self.user_id,
            "task": self.task,
            "requestParams": self.request_params or {},
            "responseContent": self.response_content,
            "metadata": {
                "model": self.model,
                "timestamp": self.generated_at,
                "tokenUsage": {
                    "prompt": self.prompt_tokens,
                    "completion": self.completion_tokens,
                    "total": self.total_tokens,
                },
            },
            "createdAt": _iso(self.created_at),
            "isSaved": self.is_saved,
            "parentId": self.parent_id,
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<GenerationRecord {self.task} for project {self.project_id}>"


class ProjectExport(db.Model):
    """A rendered document (PDF, markdown, text or HTML) of a project's chapters."""

    __tablename__ = "project_exports"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500), nullable=False, default="")
    format = db.Column(db.String(20), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="Pending")
    configuration = db.Column(db.JSON, nullable=False, default=dict)
    file_data = db.Column(db.LargeBinary, nullable=True)
    file_size = db.Column(db.Integer, nullable=True)
    error_message = db.Column(db.Text, nullable=True)
    download_count = db.Column(db.Integer, nullable=False, default=0)
    completed_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "user_id": self.user_id,
            "name": self.name,
            "description": self.description,
            "format": self.format,
            "status": self.status,
            "configuration": dict(self.configuration or {}),
            "file_size": self.file_size,
            "error_message": self.error_message,
            "download_count": self.download_count,
            "completed_at": _iso(self.completed_at),
            "created_at": _iso(self.created_at),
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<ProjectExport {self.name} ({self.format}, {self.status})>"
