"""Persistence for the generation audit trail."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import NotFoundError
from ..extensions import db
from ..models import GenerationRecord
from .generation import GenerationResponse

PERSISTENCE_WARNING = "The generation could not be saved to your history."


class GenerationStoreError(RuntimeError):
    """Raised when a generation record cannot be updated."""


@dataclass
class StoreOutcome:
    record: Optional[GenerationRecord]
    warnings: List[str] = field(default_factory=list)

    @property
    def generation_id(self) -> Optional[int]:
        return self.record.id if self.record is not None else None


def record_generation(
    *,
    project_id: int,
    user_id: int,
    task: str,
    request_params: Dict[str, Any],
    response: GenerationResponse,
    parent_id: Optional[int] = None,
) -> StoreOutcome:
    """Write one audit entry for a successful provider call.

    A failed write is rolled back and reported as a warning; the caller still
    owns a valid response.
    """

    record = GenerationRecord(
        project_id=project_id,
        user_id=user_id,
        task=task,
        request_params=dict(request_params or {}),
        response_content=response.content,
        model=response.model,
        generated_at=response.timestamp,
        prompt_tokens=response.token_usage.prompt,
        completion_tokens=response.token_usage.completion,
        total_tokens=response.token_usage.total,
        parent_id=parent_id,
    )
    try:
        db.session.add(record)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error("Failed to store %s generation for project %s: %s", task, project_id, exc)
        return StoreOutcome(record=None, warnings=[PERSISTENCE_WARNING])
    return StoreOutcome(record=record)


def get_generation(generation_id: int) -> GenerationRecord:
    record = db.session.get(GenerationRecord, generation_id)
    if record is None:
        raise NotFoundError("Generation not found")
    return record


def mark_saved(record: GenerationRecord) -> GenerationRecord:
    record.is_saved = True
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise GenerationStoreError("Unable to mark the generation as saved.") from exc
    return record


def list_for_project(project_id: int) -> List[GenerationRecord]:
    return (
        GenerationRecord.query.filter_by(project_id=project_id)
        .order_by(GenerationRecord.created_at.desc(), GenerationRecord.id.desc())
        .all()
    )
