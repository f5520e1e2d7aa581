"""Append-only session events stream (JSONL)."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from ..utils import now_utc_iso


_SECRET_KEYS = {"credential", "api_key", "apikey", "authorization", "x-api-key"}


class EventSink(Protocol):
    def emit(self, event_type: str, **payload: Any) -> dict[str, Any]:
        ...


@dataclass
class EventWriter:
    path: Path
    session_id: str
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, init=False)

    def emit(self, event_type: str, **payload: Any) -> dict[str, Any]:
        event: dict[str, Any] = {
            "type": event_type,
            "session_id": self.session_id,
            "ts": now_utc_iso(),
        }
        event.update(_scrub(payload))
        line = f"{json.dumps(event, default=str)}\n"
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(line)
        return event


class NullEventWriter:
    def emit(self, event_type: str, **payload: Any) -> dict[str, Any]:
        return {"type": event_type, **_scrub(payload)}


def read_events(path: Path) -> list[dict[str, Any]]:
    if not path.exists():
        return []
    events: list[dict[str, Any]] = []
    for line in path.read_text(encoding="utf-8").splitlines():
        if not line.strip():
            continue
        try:
            item = json.loads(line)
        except ValueError:
            continue
        if isinstance(item, dict):
            events.append(item)
    return events


def _scrub(payload: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in payload.items() if key.lower() not in _SECRET_KEYS}
