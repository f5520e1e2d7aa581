"""Document persistence adapters.

Services take one of these instead of touching the filesystem directly so
tests can swap in an in-memory double.
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from .utils import read_json, write_json


class DocumentStore(Protocol):
    def read(self) -> Any:
        """Return the stored document, or None when absent or unreadable."""
        ...

    def write(self, payload: Any) -> None:
        ...


@dataclass
class JsonFileStore:
    path: Path
    mode: int | None = None

    def read(self) -> Any:
        return read_json(self.path, None)

    def write(self, payload: Any) -> None:
        write_json(self.path, payload, mode=self.mode)


@dataclass
class InMemoryStore:
    payload: Any = None
    writes: int = field(default=0, init=False)

    def read(self) -> Any:
        return deepcopy(self.payload)

    def write(self, payload: Any) -> None:
        self.payload = deepcopy(payload)
        self.writes += 1
