"""Model catalogue for text backends."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping


@dataclass(frozen=True)
class ModelSpec:
    name: str
    backend: str
    is_default: bool = False


_DEFAULT_MODELS: dict[str, ModelSpec] = {
    "dryrun-echo-1": ModelSpec(name="dryrun-echo-1", backend="dryrun", is_default=True),
    "gpt-4o-mini": ModelSpec(name="gpt-4o-mini", backend="openai", is_default=True),
    "gpt-4o": ModelSpec(name="gpt-4o", backend="openai"),
    "claude-3-5-sonnet-20241022": ModelSpec(
        name="claude-3-5-sonnet-20241022",
        backend="anthropic",
        is_default=True,
    ),
    "anthropic/claude-3.5-sonnet": ModelSpec(
        name="anthropic/claude-3.5-sonnet",
        backend="openrouter",
        is_default=True,
    ),
    "llama-3.1-sonar-small-128k-online": ModelSpec(
        name="llama-3.1-sonar-small-128k-online",
        backend="perplexity",
        is_default=True,
    ),
    "llama-3.1-70b-versatile": ModelSpec(
        name="llama-3.1-70b-versatile",
        backend="groq",
        is_default=True,
    ),
}


class ModelRegistry:
    def __init__(self, models: Mapping[str, ModelSpec] | None = None) -> None:
        self._models = dict(models) if models else dict(_DEFAULT_MODELS)

    def get(self, name: str) -> ModelSpec | None:
        return self._models.get(name)

    def for_backend(self, backend: str) -> list[ModelSpec]:
        models = [model for model in self._models.values() if model.backend == backend]
        return sorted(models, key=lambda model: not model.is_default)

    def ensure(self, name: str, backend: str) -> ModelSpec | None:
        model = self.get(name)
        if model and model.backend == backend:
            return model
        return None
