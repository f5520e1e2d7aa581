"""Dry-run text backend (offline)."""

from __future__ import annotations

from .base import DispatchRequest


class DryRunBackend:
    """Echoes the input back without touching the network."""

    name = "dryrun"
    requires_credential = False

    def __init__(self, prefix: str = "") -> None:
        self.prefix = prefix
        self.last_request: DispatchRequest | None = None

    def complete(self, request: DispatchRequest) -> str:
        self.last_request = request
        return f"{self.prefix}{request.text}".strip()
