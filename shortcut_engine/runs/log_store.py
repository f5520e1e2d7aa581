"""Capped, append-only execution history."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Mapping

from ..storage import DocumentStore
from ..utils import new_id, now_utc_iso


LOG_CAPACITY = 500


@dataclass(frozen=True)
class ExecutionLogEntry:
    action_id: str
    action_name: str
    prompt_snapshot: str
    backend_id: str
    duration_ms: float
    input_length: int
    output_length: int
    success: bool
    error_message: str | None = None
    model_id: str | None = None
    id: str = field(default_factory=new_id)
    timestamp: str = field(default_factory=now_utc_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "actionId": self.action_id,
            "actionName": self.action_name,
            "promptSnapshot": self.prompt_snapshot,
            "backendId": self.backend_id,
            "modelId": self.model_id,
            "durationMs": self.duration_ms,
            "inputLength": self.input_length,
            "outputLength": self.output_length,
            "success": self.success,
            "errorMessage": self.error_message,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ExecutionLogEntry | None":
        action_id = payload.get("actionId")
        success = payload.get("success")
        if not isinstance(action_id, str) or not isinstance(success, bool):
            return None
        try:
            duration_ms = float(payload.get("durationMs") or 0.0)
            input_length = int(payload.get("inputLength") or 0)
            output_length = int(payload.get("outputLength") or 0)
        except (TypeError, ValueError):
            return None
        error_message = payload.get("errorMessage")
        model_id = payload.get("modelId")
        return cls(
            id=str(payload.get("id") or new_id()),
            timestamp=str(payload.get("timestamp") or ""),
            action_id=action_id,
            action_name=str(payload.get("actionName") or ""),
            prompt_snapshot=str(payload.get("promptSnapshot", payload.get("prompt")) or ""),
            backend_id=str(payload.get("backendId", payload.get("provider")) or ""),
            model_id=model_id if isinstance(model_id, str) else None,
            duration_ms=duration_ms,
            input_length=input_length,
            output_length=output_length,
            success=success,
            error_message=error_message if isinstance(error_message, str) else None,
        )


class ExecutionLogStore:
    """Newest entry last; the oldest entries fall off past ``capacity``.

    Appends are a read-modify-write of the whole document, serialized by a
    lock so runs finishing on different threads cannot lose each other's
    entries.
    """

    def __init__(self, store: DocumentStore, capacity: int = LOG_CAPACITY) -> None:
        self.store = store
        self.capacity = capacity
        self._lock = threading.Lock()

    def load(self) -> list[ExecutionLogEntry]:
        with self._lock:
            return self._read()

    def append(self, entry: ExecutionLogEntry) -> list[ExecutionLogEntry]:
        with self._lock:
            entries = self._read()
            entries.append(entry)
            if len(entries) > self.capacity:
                entries = entries[-self.capacity :]
            self.store.write([item.to_dict() for item in entries])
            return entries

    def _read(self) -> list[ExecutionLogEntry]:
        payload = self.store.read()
        if not isinstance(payload, list):
            return []
        entries: list[ExecutionLogEntry] = []
        for item in payload:
            if not isinstance(item, Mapping):
                continue
            entry = ExecutionLogEntry.from_dict(item)
            if entry is not None:
                entries.append(entry)
        return entries
