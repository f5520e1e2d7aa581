"""Dispatch gateway: one instruction plus input text to one backend."""

from __future__ import annotations

from dataclasses import dataclass

from ..models.selectors import ModelSelector
from ..utils import getenv_float
from .base import BackendRegistry, DispatchRequest, MissingCredentialError, UnknownBackendError


DEFAULT_TIMEOUT_S = 30.0


@dataclass(frozen=True)
class DispatchResult:
    text: str
    backend_id: str
    model_id: str
    fallback_reason: str | None = None


class DispatchGateway:
    """Stateless apart from its collaborators; never retries.

    Raises a ``BackendError`` subclass on any failure.
    """

    def __init__(
        self,
        registry: BackendRegistry,
        model_selector: ModelSelector | None = None,
        timeout_s: float | None = None,
    ) -> None:
        self.registry = registry
        self.model_selector = model_selector or ModelSelector()
        self.timeout_s = timeout_s or getenv_float("SHORTCUT_DISPATCH_TIMEOUT_S", DEFAULT_TIMEOUT_S)

    def resolve_model(self, backend_id: str, requested: str | None = None) -> str:
        backend = self._backend(backend_id)
        return self.model_selector.select(requested, backend.name).model.name

    def dispatch(
        self,
        backend_id: str,
        credential: str,
        instruction: str,
        text: str,
        *,
        model: str | None = None,
    ) -> DispatchResult:
        backend = self._backend(backend_id)
        if backend.requires_credential and not (credential or "").strip():
            raise MissingCredentialError(f"API key missing for backend '{backend.name}'.")
        selection = self.model_selector.select(model, backend.name)
        model_id = selection.model.name
        request = DispatchRequest(
            instruction=instruction,
            text=text,
            credential=credential,
            model=model_id,
            timeout_s=self.timeout_s,
        )
        output = backend.complete(request)
        return DispatchResult(
            text=output,
            backend_id=backend.name,
            model_id=model_id,
            fallback_reason=selection.fallback_reason,
        )

    def _backend(self, backend_id: str):
        backend = self.registry.get(backend_id)
        if backend is None:
            raise UnknownBackendError(f"Unknown backend '{backend_id}'.")
        return backend
