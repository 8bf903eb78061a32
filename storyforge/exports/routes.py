from __future__ import annotations

from datetime import datetime
from io import BytesIO
from typing import Any, Dict, List

from flask import current_app, jsonify, request, send_file
from flask_login import current_user, login_required
from werkzeug.utils import secure_filename

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Chapter, Project, ProjectExport
from ..permissions import get_project_or_404, require_project_access, require_project_editor
from ..services.exporters import FILE_EXTENSIONS, MIME_TYPES, ExportError, render_export
from . import bp
from .forms import ExportForm


def _json_body() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    return payload


def _get_export_or_404(project: Project, export_id: int) -> ProjectExport:
    export = ProjectExport.query.filter_by(id=export_id, project_id=project.id).first()
    if export is None:
        raise NotFoundError("Export not found")
    return export


def _selected_chapters(project: Project, chapter_ids: List[int]) -> List[Chapter]:
    """Chapters to render in reading order; every chapter when none are named."""

    if not chapter_ids:
        return list(project.chapters)
    chapters = (
        Chapter.query.filter(Chapter.project_id == project.id, Chapter.id.in_(chapter_ids))
        .order_by(Chapter.position, Chapter.id)
        .all()
    )
    if len(chapters) != len(set(chapter_ids)):
        raise ValidationError("includeChapters must reference chapters of this project.")
    return chapters


@bp.route("/<int:project_id>/exports", methods=["GET"])
@login_required
def list_exports(project_id: int):
    project = require_project_access(get_project_or_404(project_id), current_user)
    exports = (
        ProjectExport.query.filter_by(project_id=project.id)
        .order_by(ProjectExport.created_at.desc(), ProjectExport.id.desc())
        .all()
    )
    return jsonify({"count": len(exports), "exports": [export.to_dict() for export in exports]})


@bp.route("/<int:project_id>/exports", methods=["POST"])
@login_required
def create_export(project_id: int):
    project = require_project_access(get_project_or_404(project_id), current_user)
    form = ExportForm.from_json(_json_body())
    form.validate_or_raise()

    chapters = _selected_chapters(project, form.chapter_ids())
    export = ProjectExport(
        project_id=project.id,
        user_id=current_user.id,
        name=form.name.data.strip(),
        description=(form.description.data or "").strip(),
        format=form.format.data,
        configuration=form.stored_configuration([chapter.id for chapter in chapters]),
    )

    try:
        document = render_export(
            export.format,
            project,
            chapters,
            characters=project.characters,
            settings=project.settings,
            options=form.export_options(),
        )
    except ExportError as exc:
        current_app.logger.exception("Export of project %s as %s failed", project.id, export.format)
        export.status = "Failed"
        export.error_message = str(exc)
    else:
        export.status = "Completed"
        export.file_data = document.content
        export.file_size = document.size
        export.completed_at = datetime.utcnow()

    db.session.add(export)
    db.session.commit()
    return jsonify({"export": export.to_dict()}), 201


@bp.route("/<int:project_id>/exports/<int:export_id>", methods=["GET"])
@login_required
def export_detail(project_id: int, export_id: int):
    project = require_project_access(get_project_or_404(project_id), current_user)
    return jsonify({"export": _get_export_or_404(project, export_id).to_dict()})


@bp.route("/<int:project_id>/exports/<int:export_id>/download", methods=["GET"])
@login_required
def download_export(project_id: int, export_id: int):
    project = require_project_access(get_project_or_404(project_id), current_user)
    export = _get_export_or_404(project, export_id)
    if export.status != "Completed" or export.file_data is None:
        raise ValidationError(f"Export is not ready for download. Current status: {export.status}")

    export.download_count = (export.download_count or 0) + 1
    db.session.commit()

    filename = f"{secure_filename(export.name) or 'export'}.{FILE_EXTENSIONS[export.format]}"
    return send_file(
        BytesIO(export.file_data),
        mimetype=MIME_TYPES[export.format],
        as_attachment=True,
        download_name=filename,
    )


@bp.route("/<int:project_id>/exports/<int:export_id>", methods=["DELETE"])
@login_required
def delete_export(project_id: int, export_id: int):
    project = require_project_access(get_project_or_404(project_id), current_user)
    export = _get_export_or_404(project, export_id)
    if export.user_id != current_user.id:
        require_project_editor(project, current_user)

    db.session.delete(export)
    db.session.commit()
    return jsonify({"message": "Export deleted"})
