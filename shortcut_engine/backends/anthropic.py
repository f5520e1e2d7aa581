"""Anthropic messages backend."""

from __future__ import annotations

from typing import Any, Mapping

from . import http
from .base import DispatchRequest


ANTHROPIC_VERSION = "2023-06-01"
MAX_TOKENS = 2048


class AnthropicBackend:
    name = "anthropic"
    requires_credential = True

    def __init__(self, endpoint: str | None = None) -> None:
        self.endpoint = endpoint or "https://api.anthropic.com/v1/messages"

    def complete(self, request: DispatchRequest) -> str:
        headers = {
            "x-api-key": request.credential,
            "anthropic-version": ANTHROPIC_VERSION,
        }
        response = http._post_json(self.endpoint, build_payload(request), headers, request.timeout_s)
        return extract_text(response)


def build_payload(request: DispatchRequest) -> dict[str, Any]:
    return {
        "model": request.model,
        "max_tokens": MAX_TOKENS,
        "system": request.instruction,
        "messages": [{"role": "user", "content": request.text}],
    }


def extract_text(response: Mapping[str, Any]) -> str:
    blocks = response.get("content")
    if not isinstance(blocks, list):
        return ""
    for block in blocks:
        if not isinstance(block, dict) or block.get("type") != "text":
            continue
        text = block.get("text")
        return text.strip() if isinstance(text, str) else ""
    return ""
