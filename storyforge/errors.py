"""Error taxonomy shared by the API blueprints and the generation services."""

from __future__ import annotations

from typing import Any, Dict, Optional

from flask import Flask, current_app, jsonify
from werkzeug.exceptions import HTTPException

GENERIC_PROVIDER_MESSAGE = "The writing assistant is unavailable right now. Please try again."


class StoryForgeError(Exception):
    """Base class for errors that cross the HTTP boundary."""

    status_code = 500
    code = "server_error"

    def __init__(self, message: str, *, code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message
        if code:
            self.code = code
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message

    def to_payload(self) -> Dict[str, Any]:
        return {"error": {"code": self.code, "message": self.message}}


class ValidationError(StoryForgeError):
    """A required request field is missing or malformed."""

    status_code = 400
    code = "invalid_request"


class UnsupportedTaskError(ValidationError):
    """The ``task`` discriminator is not one of the known generation tasks."""

    code = "unsupported_task"

    def __init__(self, task: object):
        super().__init__(f"Unsupported task type: {task}", details={"task": task})
        self.task = task


class ForbiddenError(StoryForgeError):
    status_code = 403
    code = "forbidden"


class NotFoundError(StoryForgeError):
    status_code = 404
    code = "not_found"


class ProviderError(StoryForgeError):
    """The remote completion provider failed (transport, status or envelope)."""

    status_code = 502
    code = "provider_error"

    def __init__(self, message: str, *, code: Optional[str] = None, cause: Optional[BaseException] = None):
        details = {"cause": repr(cause)} if cause is not None else None
        super().__init__(message, code=code, details=details)
        self.cause = cause


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(StoryForgeError)
    def handle_storyforge_error(exc: StoryForgeError):
        payload = exc.to_payload()
        if isinstance(exc, ProviderError):
            current_app.logger.warning("Provider call failed: %s", exc)
            if current_app.config.get("EXPOSE_PROVIDER_DETAILS"):
                payload["error"]["details"] = exc.details
            else:
                payload["error"]["message"] = GENERIC_PROVIDER_MESSAGE
        return jsonify(payload), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        code = (exc.name or "error").lower().replace(" ", "_")
        return jsonify({"error": {"code": code, "message": exc.description}}), exc.code
