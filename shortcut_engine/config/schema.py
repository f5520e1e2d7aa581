"""Configuration records and the setup document format.

Two on-disk shapes are understood. The canonical one::

    {"backendId", "modelId", "credential", "actions": [...], "defaultActionId", "setupCompletedAt"}

and the legacy single-action one::

    {"backendId", "credential", "actionName", "prompt", "setupCompletedAt"}

The desktop app's older key names (``provider``, ``apiKey``) are accepted in
place of ``backendId`` and ``credential`` for both.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from ..utils import new_id, now_utc_iso


NEW_ACTION_NAME = "New Action"
NEW_ACTION_PROMPT = "Describe how the selected text should be transformed. Return only the transformed text."

STARTER_ACTIONS: tuple[tuple[str, str], ...] = (
    (
        "Fix Grammar",
        "Fix the grammar and spelling errors in the following text. Return only the corrected text without explanations:",
    ),
    (
        "Rephrase Text",
        "Rephrase the following text to make it clearer and more engaging while preserving the original meaning. Return only the rephrased text:",
    ),
    (
        "Shorten Text",
        "Shorten the following text while keeping the key points and meaning. Return only the shortened text:",
    ),
    (
        "Formalize Tone",
        "Rewrite the following text in a more formal and professional tone. Return only the rewritten text:",
    ),
    (
        "Translate to English",
        "Translate the following text to English. Return only the translation:",
    ),
)


class ConfigurationError(ValueError):
    pass


@dataclass(frozen=True)
class Action:
    id: str
    name: str
    prompt: str
    created_at: str
    last_used_at: str | None = None

    @classmethod
    def create(cls, name: str, prompt: str, created_at: str | None = None) -> "Action":
        return cls(id=new_id(), name=name, prompt=prompt, created_at=created_at or now_utc_iso())

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "prompt": self.prompt,
            "createdAt": self.created_at,
        }
        if self.last_used_at:
            payload["lastUsedAt"] = self.last_used_at
        return payload


@dataclass
class Configuration:
    backend_id: str
    credential: str
    actions: list[Action]
    setup_completed_at: str
    default_action_id: str | None = None
    model_id: str | None = None

    def __post_init__(self) -> None:
        if not self.actions:
            raise ConfigurationError("A configuration needs at least one action.")
        if self.default_action_id and self.find(self.default_action_id) is None:
            raise ConfigurationError(f"Default action '{self.default_action_id}' does not exist.")

    def find(self, action_id: str) -> Action | None:
        for action in self.actions:
            if action.id == action_id:
                return action
        return None

    def to_document(self, include_credential: bool = True) -> dict[str, Any]:
        payload: dict[str, Any] = {"backendId": self.backend_id}
        if self.model_id:
            payload["modelId"] = self.model_id
        if include_credential:
            payload["credential"] = self.credential
        payload["actions"] = [action.to_dict() for action in self.actions]
        if self.default_action_id:
            payload["defaultActionId"] = self.default_action_id
        payload["setupCompletedAt"] = self.setup_completed_at
        return payload


def starter_actions(created_at: str | None = None) -> list[Action]:
    stamp = created_at or now_utc_iso()
    return [Action.create(name, prompt, stamp) for name, prompt in STARTER_ACTIONS]


def is_legacy_document(payload: Any) -> bool:
    if not isinstance(payload, Mapping) or "actions" in payload:
        return False
    return isinstance(payload.get("actionName"), str) and isinstance(payload.get("prompt"), str)


def needs_rewrite(payload: Any) -> bool:
    """True when loading would synthesize ids that must be persisted to stay stable."""
    if is_legacy_document(payload):
        return True
    if not isinstance(payload, Mapping) or not isinstance(payload.get("actions"), list):
        return False
    return any(isinstance(item, Mapping) and not _first_str(item, "id") for item in payload["actions"])


def migrate_document(payload: Any) -> Configuration | None:
    """Parse either document shape; None means there is no usable setup."""
    if not isinstance(payload, Mapping):
        return None
    backend_id = _first_str(payload, "backendId", "provider")
    if not backend_id:
        return None
    credential = _first_str(payload, "credential", "apiKey") or ""
    setup_completed_at = _first_str(payload, "setupCompletedAt") or now_utc_iso()
    model_id = _first_str(payload, "modelId", "model")

    if is_legacy_document(payload):
        action = Action.create(str(payload["actionName"]), str(payload["prompt"]), setup_completed_at)
        return Configuration(
            backend_id=backend_id,
            credential=credential,
            actions=[action],
            setup_completed_at=setup_completed_at,
            default_action_id=action.id,
            model_id=model_id,
        )

    actions = _parse_actions(payload.get("actions"), setup_completed_at)
    if not actions:
        return None
    default_action_id = _first_str(payload, "defaultActionId")
    if default_action_id and not any(action.id == default_action_id for action in actions):
        default_action_id = None
    return Configuration(
        backend_id=backend_id,
        credential=credential,
        actions=actions,
        setup_completed_at=setup_completed_at,
        default_action_id=default_action_id,
        model_id=model_id,
    )


def _parse_actions(raw: Any, fallback_created_at: str) -> list[Action]:
    if not isinstance(raw, list):
        return []
    actions: list[Action] = []
    seen: set[str] = set()
    for item in raw:
        if not isinstance(item, Mapping):
            continue
        name = item.get("name")
        prompt = item.get("prompt")
        if not isinstance(name, str) or not isinstance(prompt, str):
            continue
        action_id = _first_str(item, "id") or new_id()
        if action_id in seen:
            continue
        seen.add(action_id)
        actions.append(
            Action(
                id=action_id,
                name=name,
                prompt=prompt,
                created_at=_first_str(item, "createdAt") or fallback_created_at,
                last_used_at=_first_str(item, "lastUsedAt"),
            )
        )
    return actions


def _first_str(payload: Mapping[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    return None
