from __future__ import annotations

import re
from typing import Any, Dict, List

from flask import current_app, jsonify, request
from flask_login import current_user, login_required

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..forms import apply_form
from ..models import (
    Chapter,
    Character,
    Plot,
    Project,
    ProjectCollaborator,
    Setting,
    StoryObject,
    User,
)
from ..permissions import (
    get_project_or_404,
    require_project_access,
    require_project_editor,
    require_project_owner,
)
from ..services.extraction import extract, extract_from_markdown
from ..services.generation_store import get_generation
from . import bp
from .forms import (
    ChapterForm,
    CharacterForm,
    CollaboratorForm,
    PlotForm,
    ProjectForm,
    PromoteGenerationForm,
    SettingForm,
    StoryObjectForm,
)

_WORD_PATTERN = re.compile(r"\b\w+[\w'-]*\b")

ENTITY_COLLECTIONS = {
    "characters": (Character, CharacterForm),
    "plots": (Plot, PlotForm),
    "settings": (Setting, SettingForm),
    "objects": (StoryObject, StoryObjectForm),
    "chapters": (Chapter, ChapterForm),
}

_CHARACTER_LIST_FIELDS = {
    "physicalTraits": "physical_traits",
    "personalityTraits": "personality_traits",
    "goals": "goals",
    "fears": "fears",
    "skills": "skills",
}
_CHARACTER_TEXT_FIELDS = {
    "shortDescription": "short_description",
    "background": "background",
    "role": "role",
    "voice": "voice",
    "arc": "arc",
}


def _json_body() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    return payload


def _collection(name: str):
    try:
        return ENTITY_COLLECTIONS[name]
    except KeyError:
        raise NotFoundError(f"Unknown collection: {name}") from None


def _get_entity_or_404(model, project: Project, entity_id: int):
    entity = model.query.filter_by(id=entity_id, project_id=project.id).first()
    if entity is None:
        raise NotFoundError(f"{model.__name__} not found")
    return entity


def _prepare_entity(entity, project: Project, *, creating: bool) -> None:
    """Apply the per-collection rules that forms cannot express."""

    if isinstance(entity, StoryObject) and entity.owner_id is not None:
        owner = Character.query.filter_by(id=entity.owner_id, project_id=project.id).first()
        if owner is None:
            raise ValidationError("Object owner must be a character from the same project.")
    elif isinstance(entity, Chapter):
        entity.word_count = len(_WORD_PATTERN.findall(entity.content or ""))
    elif isinstance(entity, Character) and not creating and entity.ai_generated:
        entity.edited_by_user = True


# ---------------- projects ----------------
@bp.route("/<int:project_id>", methods=["GET"])
@login_required
def detail(project_id: int):
    project = require_project_access(get_project_or_404(project_id), current_user)
    body = project.to_dict()
    body["role"] = "Owner" if project.owner_id == current_user.id else project.collaborator_role(current_user.id)
    body["counts"] = {name: len(getattr(project, name)) for name in ENTITY_COLLECTIONS}
    return jsonify({"project": body})


@bp.route("/<int:project_id>", methods=["PUT"])
@login_required
def update(project_id: int):
    project = require_project_editor(get_project_or_404(project_id), current_user)
    form = ProjectForm.from_json(_json_body(), obj=project)
    form.validate_or_raise()
    apply_form(form, project)
    db.session.commit()
    return jsonify({"project": project.to_dict()})


@bp.route("/<int:project_id>", methods=["DELETE"])
@login_required
def delete(project_id: int):
    project = require_project_owner(get_project_or_404(project_id), current_user)
    db.session.delete(project)
    db.session.commit()
    current_app.logger.info("Deleted project %s", project_id)
    return jsonify({"message": "Project deleted"})


@bp.route("/<int:project_id>/collaborators", methods=["POST"])
@login_required
def add_collaborator(project_id: int):
    project = require_project_owner(get_project_or_404(project_id), current_user)
    form = CollaboratorForm.from_json(_json_body())
    form.validate_or_raise()

    user = User.query.filter_by(email=form.email.data.strip().lower()).first()
    if user is None:
        raise NotFoundError("No account exists for that email address")
    if user.id == project.owner_id:
        raise ValidationError("The project owner cannot be added as a collaborator.")

    role = form.role.data or form.role.default
    collaborator = ProjectCollaborator.query.filter_by(project_id=project.id, user_id=user.id).first()
    created = collaborator is None
    if created:
        collaborator = ProjectCollaborator(project_id=project.id, user_id=user.id, role=role)
        db.session.add(collaborator)
    else:
        collaborator.role = role
    db.session.commit()
    return jsonify({"collaborator": collaborator.to_dict()}), 201 if created else 200


@bp.route("/<int:project_id>/collaborators/<int:user_id>", methods=["DELETE"])
@login_required
def remove_collaborator(project_id: int, user_id: int):
    project = require_project_owner(get_project_or_404(project_id), current_user)
    collaborator = ProjectCollaborator.query.filter_by(project_id=project.id, user_id=user_id).first()
    if collaborator is None:
        raise NotFoundError("Collaborator not found")
    db.session.delete(collaborator)
    db.session.commit()
    return jsonify({"message": "Collaborator removed"})


# ---------------- story entities ----------------
@bp.route("/<int:project_id>/<string:collection>", methods=["GET"])
@login_required
def list_entities(project_id: int, collection: str):
    model, _ = _collection(collection)
    project = require_project_access(get_project_or_404(project_id), current_user)
    entities = model.query.filter_by(project_id=project.id).order_by(model.id).all()
    return jsonify({collection: [entity.to_dict() for entity in entities]})


@bp.route("/<int:project_id>/<string:collection>", methods=["POST"])
@login_required
def create_entity(project_id: int, collection: str):
    model, form_class = _collection(collection)
    project = require_project_editor(get_project_or_404(project_id), current_user)
    form = form_class.from_json(_json_body())
    form.validate_or_raise()

    entity = apply_form(form, model(project_id=project.id))
    _prepare_entity(entity, project, creating=True)
    db.session.add(entity)
    db.session.commit()
    return jsonify(entity.to_dict()), 201


@bp.route("/<int:project_id>/<string:collection>/<int:entity_id>", methods=["GET"])
@login_required
def entity_detail(project_id: int, collection: str, entity_id: int):
    model, _ = _collection(collection)
    project = require_project_access(get_project_or_404(project_id), current_user)
    return jsonify(_get_entity_or_404(model, project, entity_id).to_dict())


@bp.route("/<int:project_id>/<string:collection>/<int:entity_id>", methods=["PUT"])
@login_required
def update_entity(project_id: int, collection: str, entity_id: int):
    model, form_class = _collection(collection)
    project = require_project_editor(get_project_or_404(project_id), current_user)
    entity = _get_entity_or_404(model, project, entity_id)

    form = form_class.from_json(_json_body(), obj=entity)
    form.validate_or_raise()
    apply_form(form, entity)
    _prepare_entity(entity, project, creating=False)
    db.session.commit()
    return jsonify(entity.to_dict())


@bp.route("/<int:project_id>/<string:collection>/<int:entity_id>", methods=["DELETE"])
@login_required
def delete_entity(project_id: int, collection: str, entity_id: int):
    model, _ = _collection(collection)
    project = require_project_editor(get_project_or_404(project_id), current_user)
    entity = _get_entity_or_404(model, project, entity_id)

    if isinstance(entity, Character):
        StoryObject.query.filter_by(owner_id=entity.id).update({"owner_id": None})
    db.session.delete(entity)
    db.session.commit()
    return jsonify({"message": f"{model.__name__} deleted"})


@bp.route("/<int:project_id>/characters/from-generation", methods=["POST"])
@login_required
def character_from_generation(project_id: int):
    project = require_project_editor(get_project_or_404(project_id), current_user)
    form = PromoteGenerationForm.from_json(_json_body())
    form.validate_or_raise()

    generation = get_generation(form.generation_id.data)
    if generation.project_id != project.id:
        raise ValidationError("The generation belongs to a different project.")

    record = extract(generation.response_content, "character") or extract_from_markdown(
        generation.response_content
    )
    if not record or not str(record.get("name") or "").strip():
        raise ValidationError("We couldn't find a character in that generation.")

    character = _character_from_record(record, project)
    generation.is_saved = True
    db.session.add(character)
    db.session.commit()
    return jsonify({"character": character.to_dict(), "generationId": generation.id}), 201


def _character_from_record(record: Dict[str, Any], project: Project) -> Character:
    character = Character(
        project_id=project.id,
        name=str(record["name"]).strip()[:120],
        ai_generated=True,
        edited_by_user=False,
    )
    for key, column in _CHARACTER_TEXT_FIELDS.items():
        value = record.get(key)
        if value is not None and not isinstance(value, str):
            value = str(value)
        setattr(character, column, (value or "").strip() or None)
    for key, column in _CHARACTER_LIST_FIELDS.items():
        setattr(character, column, _string_list(record.get(key)))
    relationships = record.get("relationships") or []
    character.relationships = [item for item in relationships if isinstance(item, dict)]
    return character


def _string_list(value: Any) -> List[str]:
    if not value:
        return []
    if not isinstance(value, list):
        value = [value]
    return [str(item).strip() for item in value if str(item).strip()]
