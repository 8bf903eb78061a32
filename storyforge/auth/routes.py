from flask import current_app, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from ..extensions import db
from ..models import User
from . import bp
from .forms import LoginForm, RegistrationForm


@bp.route("/register", methods=["POST"])
def register():
    form = RegistrationForm.from_json(request.get_json(silent=True))
    form.validate_or_raise()

    user = User(email=form.email.data.strip().lower(), display_name=form.display_name.data.strip())
    user.set_password(form.password.data)
    db.session.add(user)
    db.session.commit()
    current_app.logger.info("Registered user %s", user.id)
    return jsonify({"message": "Account created successfully. Please sign in.", "user": user.to_dict()}), 201


@bp.route("/login", methods=["POST"])
def login():
    form = LoginForm.from_json(request.get_json(silent=True))
    form.validate_or_raise()

    user = User.query.filter_by(email=form.email.data.strip().lower()).first()
    if user and user.check_password(form.password.data):
        login_user(user)
        return jsonify({"message": f"Welcome back, {user.display_name}!", "user": user.to_dict()})

    return jsonify({"error": {"code": "invalid_credentials", "message": "Invalid email or password."}}), 401


@bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify({"message": "You have been signed out."})


@bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify({"user": current_user.to_dict()})
