"""Action registry backed by the setup document."""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable

from ..storage import DocumentStore
from ..utils import now_utc_iso
from .schema import (
    NEW_ACTION_NAME,
    NEW_ACTION_PROMPT,
    Action,
    Configuration,
    ConfigurationError,
    migrate_document,
    needs_rewrite,
    starter_actions,
)
from .vault import CredentialVault


class ActionRegistry:
    """Owns the action list, backend choice and credential.

    Every mutation re-reads the document, applies the change and writes the
    whole configuration back; there is no partial merge.
    """

    def __init__(self, store: DocumentStore, vault: CredentialVault | None = None) -> None:
        self.store = store
        self.vault = vault

    def load(self) -> Configuration | None:
        payload = self.store.read()
        config = migrate_document(payload)
        if config is None:
            return None
        rewrite = needs_rewrite(payload)
        if self.vault is not None:
            if config.credential:
                # Inline credential from an older document; move it out.
                self.vault.save(config.credential)
                rewrite = True
            else:
                config.credential = self.vault.load() or ""
        if rewrite:
            self._write(config)
        return config

    def save(self, config: Configuration) -> None:
        if self.vault is not None:
            self.vault.save(config.credential)
        self._write(config)

    def complete_setup(
        self,
        backend_id: str,
        credential: str,
        actions: Iterable[Action] | None = None,
        model_id: str | None = None,
    ) -> Configuration:
        completed_at = now_utc_iso()
        items = list(actions) if actions is not None else starter_actions(completed_at)
        if not items:
            raise ConfigurationError("A configuration needs at least one action.")
        config = Configuration(
            backend_id=backend_id,
            credential=credential,
            actions=items,
            setup_completed_at=completed_at,
            default_action_id=items[0].id,
            model_id=model_id,
        )
        self.save(config)
        return config

    def get(self, action_id: str) -> Action | None:
        config = self.load()
        return config.find(action_id) if config else None

    def default_action(self) -> Action | None:
        config = self.load()
        if config is None:
            return None
        if config.default_action_id:
            action = config.find(config.default_action_id)
            if action:
                return action
        return config.actions[0]

    def add(self, name: str | None = None, prompt: str | None = None) -> Action:
        config = self._require()
        action = Action.create(name or NEW_ACTION_NAME, prompt or NEW_ACTION_PROMPT)
        config.actions.append(action)
        self.save(config)
        return action

    def edit(self, action_id: str, name: str, prompt: str) -> Action | None:
        config = self._require()
        for idx, action in enumerate(config.actions):
            if action.id == action_id:
                updated = replace(action, name=name, prompt=prompt)
                config.actions[idx] = updated
                self.save(config)
                return updated
        return None

    def delete(self, action_id: str) -> bool:
        config = self._require()
        if len(config.actions) == 1:
            raise ConfigurationError("Cannot delete the last remaining action.")
        remaining = [action for action in config.actions if action.id != action_id]
        if len(remaining) == len(config.actions):
            return False
        config.actions = remaining
        if config.default_action_id == action_id:
            config.default_action_id = None
        self.save(config)
        return True

    def set_default(self, action_id: str | None) -> None:
        config = self._require()
        if action_id is not None and config.find(action_id) is None:
            raise ConfigurationError(f"Unknown action '{action_id}'.")
        config.default_action_id = action_id
        self.save(config)

    def update_backend(
        self,
        backend_id: str,
        credential: str | None = None,
        model_id: str | None = None,
    ) -> Configuration:
        """Switching backends also replaces the model choice; None means the backend default."""
        config = self._require()
        config.backend_id = backend_id
        config.model_id = model_id
        if credential is not None:
            config.credential = credential
        self.save(config)
        return config

    def mark_used(self, action_id: str, used_at: str | None = None) -> None:
        config = self.load()
        if config is None:
            return
        for idx, action in enumerate(config.actions):
            if action.id == action_id:
                config.actions[idx] = replace(action, last_used_at=used_at or now_utc_iso())
                self.save(config)
                return

    def _require(self) -> Configuration:
        config = self.load()
        if config is None:
            raise ConfigurationError("Setup has not been completed.")
        return config

    def _write(self, config: Configuration) -> None:
        self.store.write(config.to_document(include_credential=self.vault is None))
