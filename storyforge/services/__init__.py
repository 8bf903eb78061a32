"""Service layer helpers for AI-assisted workflows."""

from __future__ import annotations

from .generation import (  # noqa: F401
    TASK_TYPES,
    GenerationRequest,
    GenerationResponse,
    expand,
    generate,
)
from .provider import ProviderClient, TokenUsage  # noqa: F401

__all__ = [
    "TASK_TYPES",
    "GenerationRequest",
    "GenerationResponse",
    "ProviderClient",
    "TokenUsage",
    "expand",
    "generate",
]
