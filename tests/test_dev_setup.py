import argparse
import sys
from pathlib import Path

from sqlalchemy import inspect

sys.path.append(str(Path(__file__).resolve().parents[1]))

from scripts import dev_setup
from storyforge import create_app
from storyforge.config import TestConfig
from storyforge.extensions import db


def _args(env_path, **flags):
    values = {flag.lstrip("-").replace("-", "_"): None for flag, _, _ in dev_setup.ENV_OPTIONS}
    values.update(flags)
    return argparse.Namespace(flask_env="development", env_path=env_path, skip_db=True, **values)


def test_env_file_keeps_existing_keys_and_applies_flags(tmp_path):
    env_path = tmp_path / ".env"
    env_path.write_text("SECRET_KEY=keep-me\nOPENAI_MODEL=gpt-3.5-turbo\n")

    values = dev_setup.update_env_file(_args(env_path, openai_api_key="sk-new", model="gpt-4"))

    assert values["SECRET_KEY"] == "keep-me"
    assert values["OPENAI_MODEL"] == "gpt-4"
    assert values["OPENAI_API_KEY"] == "sk-new"
    assert values["FLASK_APP"] == "wsgi.py"
    assert values["FLASK_ENV"] == "development"
    assert "OPENAI_BASE_URL" not in values


def test_env_file_is_created_when_missing(tmp_path):
    env_path = tmp_path / ".env"

    values = dev_setup.update_env_file(_args(env_path, database_url="sqlite:///demo.db"))

    assert env_path.exists()
    assert values["DATABASE_URL"] == "sqlite:///demo.db"


def test_app_start_creates_every_table():
    app = create_app(TestConfig)
    with app.app_context():
        tables = set(inspect(db.engine).get_table_names())
        db.drop_all()

    assert {"projects", "ai_generations", "chapters", "project_exports"} <= tables
