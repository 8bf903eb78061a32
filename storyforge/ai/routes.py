from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from flask import current_app, jsonify, request
from flask_login import current_user, login_required

from ..errors import ForbiddenError, ValidationError
from ..forms import form_params, snake_case
from ..models import Project
from ..permissions import (
    get_project_or_404,
    parse_id,
    require_project_access,
    require_project_editor,
)
from ..services import generation as generation_service
from ..services.extraction import SCHEMAS, extract, extract_expansion, extract_from_markdown
from ..services.generation import GenerationRequest, GenerationResponse
from ..services.generation_store import (
    GenerationStoreError,
    get_generation,
    list_for_project,
    mark_saved,
    record_generation,
)
from ..services.provider import DEFAULT_IMAGE_SIZE, TokenUsage
from . import bp
from .forms import (
    TASK_PARAM_FORMS,
    ExpansionForm,
    GenerationForm,
    ImageGenerationForm,
)


def _json_payload() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    return payload


def _authorize_caller(form) -> Project:
    """Resolve the project named in the body and check the caller may write to it."""

    project = get_project_or_404(form.project_id.data)
    user_id = parse_id(form.user_id.data, "userId")
    if user_id != current_user.id:
        raise ForbiddenError("userId does not match the signed-in user")
    return require_project_editor(project, current_user)


def _parent_generation_id(raw: Optional[int], project: Project) -> Optional[int]:
    if raw is None:
        return None
    parent = get_generation(raw)
    if parent.project_id != project.id:
        raise ValidationError("parentId must reference a generation from the same project.")
    return parent.id


def _tuning_fields(form) -> Dict[str, Any]:
    return {
        "genre": form.genre.data or None,
        "audience": form.audience.data or None,
        "filter_level": form.filter_level.data or None,
        "format_options": form.format_option_params(),
        "temperature": form.temperature.data,
        "max_tokens": form.max_tokens.data,
    }


def _entity_params(entity: Dict[str, Any]) -> Dict[str, Any]:
    normalized = {snake_case(str(key)): value for key, value in entity.items() if value is not None}
    traits = normalized.get("traits")
    if isinstance(traits, str):
        normalized["traits"] = [part.strip() for part in traits.split(",") if part.strip()]
    elif isinstance(traits, list):
        normalized["traits"] = [str(item).strip() for item in traits if str(item).strip()]
    elif traits is not None:
        normalized["traits"] = [str(traits)]
    return normalized


def _structured_output(task: str, content: str) -> Optional[Dict[str, Any]]:
    structured = extract(content, task)
    if structured is None and task == "character":
        structured = extract_from_markdown(content)
    return structured


@bp.route("/generate", methods=["POST"])
@login_required
def generate():
    payload = _json_payload()
    form = GenerationForm.from_json(payload)
    form.validate_or_raise()

    task = form.task.data.strip()
    generation_service.get_task_profile(task)
    project = _authorize_caller(form)

    params_form = TASK_PARAM_FORMS[task].from_json(payload)
    params_form.validate_or_raise()
    parent_id = _parent_generation_id(form.parent_id.data, project)

    generation_request = GenerationRequest(
        task=task,
        project_id=project.id,
        user_id=current_user.id,
        params=form_params(params_form),
        **_tuning_fields(form),
    )
    response = generation_service.generate(generation_request)

    outcome = record_generation(
        project_id=project.id,
        user_id=current_user.id,
        task=task,
        request_params=payload,
        response=response,
        parent_id=parent_id,
    )

    body = response.to_dict()
    body["generationId"] = outcome.generation_id
    body["structured"] = _structured_output(task, response.content) if task in SCHEMAS else None
    body["warnings"] = outcome.warnings
    return jsonify(body)


@bp.route("/expand", methods=["POST"])
@login_required
def expand():
    payload = _json_payload()
    form = ExpansionForm.from_json(payload)
    form.validate_or_raise()

    project = _authorize_caller(form)
    parent_id = _parent_generation_id(form.parent_id.data, project)
    entity_type = form.entity_type.data
    focus = form.focus.data

    params: Dict[str, Any] = {"entity": _entity_params(form.entity.data)}
    if form.setting_description.data:
        params["setting_description"] = form.setting_description.data.strip()
    if form.related_characters.data:
        params["related_characters"] = form.related_characters.data

    generation_request = GenerationRequest(
        task=entity_type,
        project_id=project.id,
        user_id=current_user.id,
        params=params,
        **_tuning_fields(form),
    )
    response = generation_service.expand(generation_request, focus)

    outcome = record_generation(
        project_id=project.id,
        user_id=current_user.id,
        task=entity_type,
        request_params=payload,
        response=response,
        parent_id=parent_id,
    )

    expansion = extract_expansion(response.content, focus, entity_type)
    if expansion is None:
        current_app.logger.info("Expansion for %s/%s could not be extracted", entity_type, focus)

    body = response.to_dict()
    body["generationId"] = outcome.generation_id
    body["expansion"] = expansion
    body["warnings"] = outcome.warnings
    return jsonify(body)


@bp.route("/generate-image", methods=["POST"])
@login_required
def generate_image():
    payload = _json_payload()
    form = ImageGenerationForm.from_json(payload)
    form.validate_or_raise()

    project = _authorize_caller(form)
    size = form.size.data or DEFAULT_IMAGE_SIZE

    client = generation_service.get_provider_client()
    image = client.generate_image(form.prompt.data.strip(), size=size)

    response = GenerationResponse(
        content=image.url,
        model=image.model,
        timestamp=datetime.now(timezone.utc).isoformat(),
        token_usage=TokenUsage(),
    )
    outcome = record_generation(
        project_id=project.id,
        user_id=current_user.id,
        task="image",
        request_params=payload,
        response=response,
    )
    return jsonify({"url": image.url, "generationId": outcome.generation_id, "warnings": outcome.warnings})


@bp.route("/generations/<int:generation_id>/save", methods=["PUT"])
@login_required
def save_generation(generation_id: int):
    record = get_generation(generation_id)
    project = get_project_or_404(record.project_id)
    require_project_editor(project, current_user)

    try:
        mark_saved(record)
    except GenerationStoreError as exc:
        current_app.logger.exception("Failed to save generation %s", generation_id)
        return jsonify({"error": {"code": "persistence_error", "message": str(exc)}}), 500

    return jsonify({"message": "Generation saved successfully", "generationId": record.id})


@bp.route("/projects/<int:project_id>/generations", methods=["GET"])
@login_required
def project_generations(project_id: int):
    project = require_project_access(get_project_or_404(project_id), current_user)
    records = list_for_project(project.id)
    return jsonify({"generations": [record.to_dict() for record in records]})


@bp.route("/generations/<int:generation_id>", methods=["GET"])
@login_required
def generation_detail(generation_id: int):
    record = get_generation(generation_id)
    require_project_access(get_project_or_404(record.project_id), current_user)
    return jsonify(record.to_dict())
