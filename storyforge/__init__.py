from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv
from flask import Flask, jsonify

from .config import Config
from .db_utils import ensure_database_schema
from .errors import register_error_handlers
from .extensions import csrf, db, login_manager, migrate


BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")


def create_app(config_class: type[Config] = Config) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_class)

    register_extensions(app)
    register_blueprints(app)
    register_error_handlers(app)

    with app.app_context():
        ensure_database_schema()

    return app


def register_extensions(app: Flask) -> None:
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    login_manager.unauthorized_handler(_unauthorized)
    csrf.init_app(app)


def register_blueprints(app: Flask) -> None:
    from .ai import bp as ai_bp
    from .auth import bp as auth_bp
    from .exports import bp as exports_bp
    from .main import bp as main_bp
    from .projects import bp as projects_bp

    for blueprint in (ai_bp, auth_bp, exports_bp, main_bp, projects_bp):
        # JSON API: forms opt out of CSRF tokens and rely on the session cookie.
        csrf.exempt(blueprint)
        app.register_blueprint(blueprint)


def _unauthorized():
    return jsonify({"error": {"code": "unauthorized", "message": "Sign in to continue."}}), 401


__all__ = ["create_app", "db"]
