"""Shortcut engine wiring."""

from __future__ import annotations

import uuid
from pathlib import Path

from .backends import default_registry
from .backends.base import BackendRegistry
from .backends.gateway import DispatchGateway
from .config.registry import ActionRegistry
from .config.schema import Action, ConfigurationError
from .config.vault import CredentialVault
from .insights.stats import ActionExecutionStats, compute_action_stats
from .insights.suggestions import PromptAutoSuggestion, suggest_prompt
from .runner.collaborators import Clipboard, PasteTarget, WindowControl
from .runner.machine import RunStateMachine
from .runs.events import EventSink, EventWriter, NullEventWriter
from .runs.log_store import ExecutionLogStore
from .storage import JsonFileStore
from .utils import getenv_flag, shortcut_home


SETUP_FILE = "setup.json"
LOGS_FILE = "execution-logs.json"
VAULT_FILE = "credentials.json"
EVENTS_FILE = "events.jsonl"


class ShortcutEngine:
    def __init__(
        self,
        home: Path | None = None,
        *,
        backend_registry: BackendRegistry | None = None,
        clipboard: Clipboard | None = None,
        paste_target: PasteTarget | None = None,
        window: WindowControl | None = None,
        use_vault: bool | None = None,
        emit_events: bool | None = None,
        timeout_s: float | None = None,
    ) -> None:
        self.home = home or shortcut_home()
        self.home.mkdir(parents=True, exist_ok=True)
        self.session_id = str(uuid.uuid4())
        if use_vault is None:
            use_vault = getenv_flag("SHORTCUT_VAULT", True)
        if emit_events is None:
            emit_events = getenv_flag("SHORTCUT_EVENTS", True)
        vault = CredentialVault.at(self.home / VAULT_FILE) if use_vault else None
        self.events: EventSink = (
            EventWriter(self.home / EVENTS_FILE, self.session_id) if emit_events else NullEventWriter()
        )
        self.registry = ActionRegistry(JsonFileStore(self.home / SETUP_FILE), vault=vault)
        self.log_store = ExecutionLogStore(JsonFileStore(self.home / LOGS_FILE))
        self.backends = backend_registry or default_registry()
        self.gateway = DispatchGateway(self.backends, timeout_s=timeout_s)
        self.machine = RunStateMachine(
            self.registry,
            self.gateway,
            self.log_store,
            clipboard=clipboard,
            paste_target=paste_target,
            window=window,
            events=self.events,
        )

    def stats_for(self, action_id: str) -> ActionExecutionStats | None:
        return compute_action_stats(self.log_store.load(), action_id)

    def suggestion_for(self, action_id: str) -> PromptAutoSuggestion | None:
        action = self._require_action(action_id)
        return suggest_prompt(action.prompt, self.stats_for(action.id))

    def apply_suggestion(self, action_id: str) -> Action | None:
        suggestion = self.suggestion_for(action_id)
        if suggestion is None or not suggestion.suggested_prompt:
            return None
        action = self._require_action(action_id)
        updated = self.registry.edit(action.id, action.name, suggestion.suggested_prompt)
        self.events.emit("suggestion_applied", action_id=action.id, kind=suggestion.kind)
        return updated

    def _require_action(self, action_id: str) -> Action:
        action = self.registry.get(action_id)
        if action is None:
            raise ConfigurationError(f"Unknown action '{action_id}'.")
        return action
