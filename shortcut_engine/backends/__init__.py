"""Backend registry."""

from __future__ import annotations

from .anthropic import AnthropicBackend
from .base import BackendRegistry
from .chat_completions import groq_backend, openai_backend, openrouter_backend, perplexity_backend
from .dryrun import DryRunBackend


def default_registry() -> BackendRegistry:
    return BackendRegistry(
        [
            DryRunBackend(),
            openai_backend(),
            AnthropicBackend(),
            openrouter_backend(),
            perplexity_backend(),
            groq_backend(),
        ]
    )
