"""Credential vault kept apart from the setup document."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from ..storage import DocumentStore, JsonFileStore


PRIVATE_MODE = 0o600


@dataclass
class CredentialVault:
    store: DocumentStore

    @classmethod
    def at(cls, path: Path) -> "CredentialVault":
        return cls(JsonFileStore(path, mode=PRIVATE_MODE))

    def load(self) -> str | None:
        payload = self.store.read()
        if not isinstance(payload, dict):
            return None
        credential = payload.get("credential")
        return credential if isinstance(credential, str) else None

    def save(self, credential: str) -> None:
        self.store.write({"credential": credential})
