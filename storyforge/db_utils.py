"""Database helper utilities for ensuring schema consistency."""
from __future__ import annotations

from typing import Iterable, Set

from sqlalchemy import inspect, text

from .extensions import db


def _get_column_names(table_name: str) -> Set[str]:
    inspector = inspect(db.engine)
    return {column["name"] for column in inspector.get_columns(table_name)}


def ensure_database_schema() -> None:
    """Ensure that essential schema updates are applied.

    Runs on every application start. Missing tables are created and the
    ``ai_generations`` table gains the ``parent_id`` column used for
    expansion chains when the database predates it. Errors propagate so the
    application never starts against a half-migrated schema.
    """

    inspector = inspect(db.engine)
    table_names: Iterable[str] = inspector.get_table_names()

    if "projects" not in table_names:
        db.create_all()
        inspector = inspect(db.engine)
        table_names = inspector.get_table_names()

    # Import locally to avoid circular import issues during application setup.
    from .models import (
        Chapter,
        Character,
        GenerationRecord,
        Plot,
        ProjectCollaborator,
        ProjectExport,
        Setting,
        StoryObject,
    )

    required_tables = {
        "project_collaborators": ProjectCollaborator.__table__,
        "characters": Character.__table__,
        "plots": Plot.__table__,
        "settings": Setting.__table__,
        "story_objects": StoryObject.__table__,
        "chapters": Chapter.__table__,
        "ai_generations": GenerationRecord.__table__,
        "project_exports": ProjectExport.__table__,
    }

    for table_name, table in required_tables.items():
        if table_name not in table_names:
            table.create(bind=db.engine)

    if "ai_generations" in table_names:
        generation_columns = _get_column_names("ai_generations")
        if "parent_id" not in generation_columns:
            with db.engine.begin() as connection:
                connection.execute(text("ALTER TABLE ai_generations ADD COLUMN parent_id INTEGER"))
