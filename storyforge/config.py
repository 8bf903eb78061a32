import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _default_sqlite_uri() -> str:
    instance_path = BASE_DIR / "instance"
    instance_path.mkdir(exist_ok=True)
    return f"sqlite:///{instance_path / 'storyforge.db'}"


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


class Config:
    """Base configuration shared across environments."""

    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-change-me")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", _default_sqlite_uri())
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_TIME_LIMIT = None

    OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY", "")
    OPENAI_BASE_URL = os.environ.get("OPENAI_BASE_URL", "https://api.openai.com/v1")
    OPENAI_MODEL = os.environ.get("OPENAI_MODEL", "gpt-4")
    OPENAI_IMAGE_MODEL = os.environ.get("OPENAI_IMAGE_MODEL", "dall-e-3")

    # Retries are opt-in; the SDK backs off exponentially between attempts.
    PROVIDER_MAX_RETRIES = _env_int("PROVIDER_MAX_RETRIES", 0)
    PROVIDER_TIMEOUT_SECONDS = _env_float("PROVIDER_TIMEOUT_SECONDS", 30.0)
    PROVIDER_TIMEOUT_PER_TOKEN = _env_float("PROVIDER_TIMEOUT_PER_TOKEN", 0.05)

    GENERATION_DEFAULTS = {
        "character": {"temperature": 0.7, "max_tokens": 500},
        "plot": {"temperature": 0.6, "max_tokens": 800},
        "setting": {"temperature": 0.7, "max_tokens": 600},
        "chapter": {"temperature": 0.4, "max_tokens": 1500},
        "editorial": {"temperature": 0.3, "max_tokens": 400},
    }

    EXPOSE_PROVIDER_DETAILS = False


class DevelopmentConfig(Config):
    DEBUG = True
    EXPOSE_PROVIDER_DETAILS = True


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    OPENAI_API_KEY = "test-key"
