"""Backend base classes and dispatch errors."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Protocol

from ..utils import truncate


BODY_SNIPPET_LIMIT = 500


class BackendError(RuntimeError):
    """Any failure raised while dispatching to a text backend."""


class DispatchError(BackendError):
    def __init__(self, status: int, status_text: str, body_snippet: str = "") -> None:
        self.status = status
        self.status_text = status_text
        self.body_snippet = truncate(body_snippet.strip(), BODY_SNIPPET_LIMIT)
        message = f"{status} {status_text}".strip()
        if self.body_snippet:
            message = f"{message}: {self.body_snippet}"
        super().__init__(message)


class CredentialRejectedError(DispatchError):
    pass


class TransportError(BackendError):
    pass


class MissingCredentialError(BackendError):
    pass


class UnknownBackendError(BackendError):
    pass


@dataclass(frozen=True)
class DispatchRequest:
    instruction: str
    text: str
    credential: str
    model: str
    timeout_s: float


class TextBackend(Protocol):
    name: str
    requires_credential: bool

    def complete(self, request: DispatchRequest) -> str:
        ...


class BackendRegistry:
    def __init__(self, backends: Iterable[TextBackend]) -> None:
        items = list(backends)
        self._order = [backend.name for backend in items]
        self._backends = {backend.name: backend for backend in items}

    def get(self, name: str) -> TextBackend | None:
        backend = self._backends.get(name)
        if backend is None:
            backend = self._backends.get((name or "").strip().lower())
        return backend

    def list(self) -> list[str]:
        return sorted(self._backends.keys())

    def backends(self) -> list[TextBackend]:
        return [self._backends[name] for name in self._order]
