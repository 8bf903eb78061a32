"""Write a development .env for StoryForge and create the database tables."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Dict

from dotenv import dotenv_values, set_key

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from storyforge import create_app, db  # noqa: E402
from storyforge.config import Config, DevelopmentConfig  # noqa: E402

SECRET_KEYS = {"SECRET_KEY", "OPENAI_API_KEY"}

# (command line flag, .env key, help text)
ENV_OPTIONS = (
    ("--secret-key", "SECRET_KEY", "Secret key for Flask sessions."),
    ("--openai-api-key", "OPENAI_API_KEY", "API key for the model provider."),
    ("--openai-base-url", "OPENAI_BASE_URL", "Base URL of an OpenAI-compatible API."),
    ("--model", "OPENAI_MODEL", "Completion model id, e.g. gpt-4."),
    ("--image-model", "OPENAI_IMAGE_MODEL", "Image model id, e.g. dall-e-3."),
    ("--database-url", "DATABASE_URL", "SQLAlchemy database URL."),
)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Create or update the StoryForge .env file and create the database tables.",
    )
    parser.add_argument("--flask-env", default="development", help="Value for FLASK_ENV (default: development)")
    for flag, _, help_text in ENV_OPTIONS:
        parser.add_argument(flag, help=f"{help_text} Existing values are kept when omitted.")
    parser.add_argument("--env-path", type=Path, default=REPO_ROOT / ".env", help="The .env file to update.")
    parser.add_argument("--skip-db", action="store_true", help="Only update the .env file.")
    return parser.parse_args()


def update_env_file(args: argparse.Namespace) -> Dict[str, str]:
    args.env_path.touch(exist_ok=True)
    updates = {"FLASK_APP": "wsgi.py", "FLASK_ENV": args.flask_env}
    for flag, key, _ in ENV_OPTIONS:
        value = getattr(args, flag.lstrip("-").replace("-", "_"))
        if value:
            updates[key] = value

    for key, value in updates.items():
        set_key(str(args.env_path), key, value, quote_mode="never")
    print(f"Environment written to {args.env_path}.")
    return {key: value or "" for key, value in dotenv_values(args.env_path).items()}


def initialize_database(flask_env: str) -> None:
    app = create_app(DevelopmentConfig if flask_env == "development" else Config)
    with app.app_context():
        db.create_all()
    print(f"Database ready at {app.config['SQLALCHEMY_DATABASE_URI']}.")


def main() -> None:
    args = parse_args()
    env_values = update_env_file(args)
    if args.skip_db:
        print("Database initialization skipped.")
    else:
        initialize_database(args.flask_env)

    print("\nSetup complete! Summary:")
    for key in sorted(env_values):
        value = env_values[key]
        if key in SECRET_KEYS and value:
            value = value[:4] + "..."
        print(f"  {key}={value}")


if __name__ == "__main__":
    main()
