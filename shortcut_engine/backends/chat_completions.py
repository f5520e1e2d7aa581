"""Chat-completions backends (OpenAI and compatible APIs)."""

from __future__ import annotations

from typing import Any, Mapping

from . import http
from .base import DispatchRequest


MAX_TOKENS = 2048


class ChatCompletionsBackend:
    requires_credential = True

    def __init__(
        self,
        name: str,
        api_base: str,
        extra_headers: Mapping[str, str] | None = None,
    ) -> None:
        self.name = name
        self.api_base = api_base.rstrip("/")
        self.extra_headers = dict(extra_headers or {})

    @property
    def endpoint(self) -> str:
        return f"{self.api_base}/chat/completions"

    def complete(self, request: DispatchRequest) -> str:
        headers = {"Authorization": f"Bearer {request.credential}", **self.extra_headers}
        response = http._post_json(self.endpoint, build_payload(request), headers, request.timeout_s)
        return extract_text(response)


def build_payload(request: DispatchRequest) -> dict[str, Any]:
    return {
        "model": request.model,
        "messages": [
            {"role": "system", "content": request.instruction},
            {"role": "user", "content": request.text},
        ],
        "max_tokens": MAX_TOKENS,
    }


def extract_text(response: Mapping[str, Any]) -> str:
    choices = response.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    first = choices[0]
    if not isinstance(first, dict):
        return ""
    message = first.get("message")
    if not isinstance(message, dict):
        return ""
    content = message.get("content")
    if not isinstance(content, str):
        return ""
    return content.strip()


def openai_backend() -> ChatCompletionsBackend:
    return ChatCompletionsBackend("openai", "https://api.openai.com/v1")


def openrouter_backend() -> ChatCompletionsBackend:
    return ChatCompletionsBackend(
        "openrouter",
        "https://openrouter.ai/api/v1",
        extra_headers={"X-Title": "Shortcut"},
    )


def perplexity_backend() -> ChatCompletionsBackend:
    return ChatCompletionsBackend("perplexity", "https://api.perplexity.ai")


def groq_backend() -> ChatCompletionsBackend:
    return ChatCompletionsBackend("groq", "https://api.groq.com/openai/v1")
