from flask import jsonify, request
from flask_login import current_user, login_required
from sqlalchemy import or_

from ..extensions import db
from ..forms import apply_form
from ..models import Project, ProjectCollaborator
from ..projects.forms import ProjectForm
from . import bp


@bp.route("/")
def index():
    return jsonify({"name": "storyforge", "status": "ok"})


@bp.route("/dashboard", methods=["GET", "POST"])
@login_required
def dashboard():
    if request.method == "POST":
        form = ProjectForm.from_json(request.get_json(silent=True))
        form.validate_or_raise()
        project = Project(owner_id=current_user.id)
        apply_form(form, project)
        db.session.add(project)
        db.session.commit()
        return jsonify({"project": project.to_dict()}), 201

    shared_ids = db.select(ProjectCollaborator.project_id).where(ProjectCollaborator.user_id == current_user.id)
    projects = (
        Project.query.filter(or_(Project.owner_id == current_user.id, Project.id.in_(shared_ids)))
        .order_by(Project.updated_at.desc())
        .all()
    )
    return jsonify({"projects": [project.to_dict() for project in projects]})
