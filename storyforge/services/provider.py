"""Thin wrapper around the OpenAI SDK used for every remote model call."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional

import openai

from ..errors import ProviderError

LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_IMAGE_SIZE = "1024x1024"
IMAGE_SIZES = ("1024x1024", "1024x1792", "1792x1024")


@dataclass
class TokenUsage:
    prompt: int = 0
    completion: int = 0
    total: int = 0

    def to_dict(self) -> dict:
        return {"prompt": self.prompt, "completion": self.completion, "total": self.total}


@dataclass
class CompletionResult:
    text: str
    model: str
    token_usage: TokenUsage


@dataclass
class ImageResult:
    url: str
    model: str


class ProviderClient:
    """
    Sends chat completions and image generations to an OpenAI-compatible API.

    Every transport, HTTP status or envelope problem surfaces as a single
    ``ProviderError``. The request timeout grows with the requested token
    budget so that long chapters are not cut off by a limit sized for short
    character sheets.
    """

    def __init__(
        self,
        api_key: str,
        *,
        model: str = "gpt-4",
        image_model: str = "dall-e-3",
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        timeout_per_token: float = 0.05,
        max_retries: int = 0,
        client: Any = None,
    ) -> None:
        self.api_key = (api_key or "").strip()
        self.model = (model or "").strip() or "gpt-4"
        self.image_model = (image_model or "").strip() or "dall-e-3"
        self.base_url = (base_url or "").strip() or DEFAULT_BASE_URL
        self.timeout = float(timeout)
        self.timeout_per_token = float(timeout_per_token)
        self.max_retries = int(max_retries)

        if client is not None:
            self._client = client
            return
        if not self.api_key:
            raise ProviderError("No API key is configured for the model provider.", code="provider_not_configured")
        self._client = openai.OpenAI(
            api_key=self.api_key,
            base_url=self.base_url,
            timeout=self.timeout,
            max_retries=self.max_retries,
        )

    # ---------------- public API ----------------
    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: float,
        max_tokens: int,
    ) -> CompletionResult:
        if not isinstance(user_prompt, str) or not user_prompt.strip():
            raise ValueError("user_prompt must be a non-empty string.")
        max_tokens = int(max_tokens)
        if max_tokens <= 0:
            raise ValueError("max_tokens must be positive.")

        kwargs = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": float(temperature),
            "max_tokens": max_tokens,
            "n": 1,
            "timeout": self.request_timeout(max_tokens),
        }

        try:
            resp = self._client.chat.completions.create(**kwargs)
        except openai.OpenAIError as exc:
            LOGGER.warning("Chat completion request to %s failed: %s", self.base_url, exc)
            raise ProviderError(_describe_failure(exc), code=_failure_code(exc), cause=exc) from exc

        choices = getattr(resp, "choices", None) or []
        if not choices:
            raise ProviderError(
                "The model provider returned a response without choices.",
                code="malformed_response",
            )
        text = self._extract_text_from_chat(choices[0])
        usage = self._extract_usage(getattr(resp, "usage", None))
        model = str(getattr(resp, "model", None) or self.model)
        return CompletionResult(text=text, model=model, token_usage=usage)

    def generate_image(self, prompt: str, *, size: str = DEFAULT_IMAGE_SIZE) -> ImageResult:
        if not isinstance(prompt, str) or not prompt.strip():
            raise ValueError("prompt must be a non-empty string.")
        if size not in IMAGE_SIZES:
            raise ValueError(f"Unsupported image size: {size}")

        try:
            resp = self._client.images.generate(
                model=self.image_model,
                prompt=prompt,
                n=1,
                size=size,
                timeout=self.timeout,
            )
        except openai.OpenAIError as exc:
            LOGGER.warning("Image generation request to %s failed: %s", self.base_url, exc)
            raise ProviderError(_describe_failure(exc), code=_failure_code(exc), cause=exc) from exc

        data = getattr(resp, "data", None) or []
        url = getattr(data[0], "url", None) if data else None
        if not url:
            raise ProviderError(
                "The model provider returned an image response without a URL.",
                code="malformed_response",
            )
        return ImageResult(url=str(url), model=self.image_model)

    def request_timeout(self, max_tokens: int) -> float:
        return self.timeout + self.timeout_per_token * max(int(max_tokens), 0)

    def signature(self) -> tuple:
        # Never return raw secrets
        redacted = (self.api_key[:4] + "…" + self.api_key[-4:]) if self.api_key else ""
        return (self.model, redacted)

    # ---------------- extractors ----------------
    def _extract_text_from_chat(self, choice: Any) -> str:
        msg = getattr(choice, "message", None)
        if isinstance(msg, dict):
            content = msg.get("content")
        else:
            content = getattr(msg, "content", None)
        if isinstance(content, list):
            parts: List[str] = []
            for p in content:
                if isinstance(p, dict) and p.get("type") == "text":
                    parts.append(str(p.get("text") or ""))
            return "\n".join([p for p in parts if p])
        return str(content or "")

    def _extract_usage(self, usage: Any) -> TokenUsage:
        if usage is None:
            return TokenUsage()

        def read(name: str) -> int:
            value = usage.get(name) if isinstance(usage, dict) else getattr(usage, name, None)
            try:
                return int(value or 0)
            except (TypeError, ValueError):
                return 0

        return TokenUsage(
            prompt=read("prompt_tokens"),
            completion=read("completion_tokens"),
            total=read("total_tokens"),
        )


def _failure_code(exc: Exception) -> str:
    if isinstance(exc, openai.APITimeoutError):
        return "provider_timeout"
    if isinstance(exc, openai.APIConnectionError):
        return "provider_unreachable"
    if isinstance(exc, openai.APIStatusError):
        return "provider_http_error"
    return "provider_error"


def _describe_failure(exc: Exception) -> str:
    if isinstance(exc, openai.APITimeoutError):
        return "The model provider did not respond in time."
    if isinstance(exc, openai.APIConnectionError):
        return "The model provider could not be reached."
    if isinstance(exc, openai.APIStatusError):
        return f"The model provider rejected the request (HTTP {exc.status_code})."
    return "The model provider request failed."
