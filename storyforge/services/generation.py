"""Dispatch generation requests to the right prompt pair and call the provider."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional

from flask import current_app, has_app_context

from ..errors import UnsupportedTaskError, ValidationError
from . import prompt_templates
from .provider import ProviderClient, TokenUsage
from .system_prompts import get_system_prompt

TASK_TYPES = ("character", "plot", "setting", "chapter", "editorial")

PROVIDER_CACHE_KEY = "_PROVIDER_CLIENT_INSTANCE"


@dataclass(frozen=True)
class TaskProfile:
    task: str
    system_prompt: str
    renderer: Callable[[Mapping[str, Any]], str]
    temperature: float
    max_tokens: int


TASK_PROFILES: Dict[str, TaskProfile] = {
    "character": TaskProfile("character", get_system_prompt("character"), prompt_templates.render_character, 0.7, 500),
    "plot": TaskProfile("plot", get_system_prompt("plot"), prompt_templates.render_plot, 0.6, 800),
    "setting": TaskProfile("setting", get_system_prompt("setting"), prompt_templates.render_setting, 0.7, 600),
    "chapter": TaskProfile("chapter", get_system_prompt("chapter"), prompt_templates.render_chapter, 0.4, 1500),
    "editorial": TaskProfile("editorial", get_system_prompt("editorial"), prompt_templates.render_editorial, 0.3, 400),
}


@dataclass
class GenerationRequest:
    task: str
    project_id: int
    user_id: int
    genre: Optional[str] = None
    audience: Optional[str] = None
    filter_level: Optional[str] = None
    format_options: Dict[str, Any] = field(default_factory=dict)
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    params: Dict[str, Any] = field(default_factory=dict)

    def template_params(self) -> Dict[str, Any]:
        merged = dict(self.params)
        merged.update(
            genre=self.genre,
            audience=self.audience,
            filter_level=self.filter_level,
            format_options=dict(self.format_options or {}),
        )
        return merged


@dataclass
class GenerationResponse:
    content: str
    model: str
    timestamp: str
    token_usage: TokenUsage
    prompt: str = ""
    temperature: float = 0.0
    max_tokens: int = 0

    def metadata(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "timestamp": self.timestamp,
            "tokenUsage": self.token_usage.to_dict(),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {"content": self.content, "metadata": self.metadata()}


def get_task_profile(task: Any) -> TaskProfile:
    profile = TASK_PROFILES.get(task) if isinstance(task, str) else None
    if profile is None:
        raise UnsupportedTaskError(task)
    return profile


def generate(request: GenerationRequest, client: Optional[ProviderClient] = None) -> GenerationResponse:
    """Render the prompt for ``request.task`` and run one provider completion.

    The response is returned as raw text; structuring it is left to the caller.
    Provider failures propagate as ``ProviderError``.
    """

    profile = get_task_profile(request.task)
    user_prompt = profile.renderer(request.template_params())
    return _complete(profile, user_prompt, request, client)


def expand(
    request: GenerationRequest,
    focus: str,
    client: Optional[ProviderClient] = None,
) -> GenerationResponse:
    """Ask the provider to deepen one facet (``focus``) of an existing entity."""

    if request.task not in prompt_templates.EXPANSION_ENTITY_TYPES:
        raise ValidationError(f"Expansion is not supported for {request.task} entities.")
    if focus not in prompt_templates.EXPANSION_FOCUS_AREAS:
        raise ValidationError(f"Unsupported expansion focus: {focus}")

    profile = get_task_profile(request.task)
    user_prompt = prompt_templates.render_expansion(request.task, focus, request.template_params())
    return _complete(profile, user_prompt, request, client)


def _complete(
    profile: TaskProfile,
    user_prompt: str,
    request: GenerationRequest,
    client: Optional[ProviderClient],
) -> GenerationResponse:
    defaults = _task_defaults(profile)
    temperature = request.temperature if request.temperature is not None else defaults["temperature"]
    max_tokens = request.max_tokens if request.max_tokens is not None else defaults["max_tokens"]

    provider = client if client is not None else _get_provider_client()
    result = provider.complete(
        profile.system_prompt,
        user_prompt,
        temperature=temperature,
        max_tokens=max_tokens,
    )
    return GenerationResponse(
        content=result.text,
        model=result.model,
        timestamp=datetime.now(timezone.utc).isoformat(),
        token_usage=result.token_usage,
        prompt=user_prompt,
        temperature=float(temperature),
        max_tokens=int(max_tokens),
    )


def _task_defaults(profile: TaskProfile) -> Dict[str, Any]:
    defaults = {"temperature": profile.temperature, "max_tokens": profile.max_tokens}
    if has_app_context():
        configured = (current_app.config.get("GENERATION_DEFAULTS") or {}).get(profile.task) or {}
        defaults.update({k: v for k, v in configured.items() if v is not None})
    return defaults


def _get_provider_client() -> ProviderClient:  # pragma: no cover - integration point
    app = current_app
    cached = app.config.get(PROVIDER_CACHE_KEY)
    if cached is not None:
        return cached

    app.logger.info("Initialising provider client for model %s", app.config.get("OPENAI_MODEL"))
    client = ProviderClient(
        app.config.get("OPENAI_API_KEY", ""),
        model=app.config.get("OPENAI_MODEL", "gpt-4"),
        image_model=app.config.get("OPENAI_IMAGE_MODEL", "dall-e-3"),
        base_url=app.config.get("OPENAI_BASE_URL"),
        timeout=app.config.get("PROVIDER_TIMEOUT_SECONDS", 30.0),
        timeout_per_token=app.config.get("PROVIDER_TIMEOUT_PER_TOKEN", 0.05),
        max_retries=app.config.get("PROVIDER_MAX_RETRIES", 0),
    )
    app.config[PROVIDER_CACHE_KEY] = client
    return client


def get_provider_client() -> ProviderClient:
    return _get_provider_client()
