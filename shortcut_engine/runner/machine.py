"""Capture-to-result run lifecycle.

The machine is driven from a single event loop. The only suspension point
is the backend dispatch, which runs on a worker thread. A new capture may
arrive while a dispatch is still in flight; each capture bumps a
generation counter and a finishing run only updates the displayed state if
its generation is still current. Every run appends exactly one log entry
either way.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable

from ..backends.gateway import DispatchGateway
from ..config.registry import ActionRegistry
from ..config.schema import Action, ConfigurationError
from ..runs.events import EventSink, NullEventWriter
from ..runs.log_store import ExecutionLogEntry, ExecutionLogStore
from ..utils import monotonic_ms
from .collaborators import Clipboard, MemoryClipboard, NoWindow, PasteTarget, StreamPasteTarget, WindowControl
from .states import Captured, Error, Idle, Result, RunState, Running, state_name


NO_TEXT_MESSAGE = "No text selected. Select some text first!"


class RunStateError(RuntimeError):
    pass


@dataclass(frozen=True)
class _Invocation:
    text: str
    action: Action
    backend_id: str
    credential: str
    model_id: str | None = None


class RunStateMachine:
    def __init__(
        self,
        registry: ActionRegistry,
        gateway: DispatchGateway,
        log_store: ExecutionLogStore,
        *,
        clipboard: Clipboard | None = None,
        paste_target: PasteTarget | None = None,
        window: WindowControl | None = None,
        events: EventSink | None = None,
        clock: Callable[[], float] = monotonic_ms,
    ) -> None:
        self.registry = registry
        self.gateway = gateway
        self.log_store = log_store
        self.clipboard = clipboard or MemoryClipboard()
        self.paste_target = paste_target or StreamPasteTarget()
        self.window = window or NoWindow()
        self.events = events or NullEventWriter()
        self.clock = clock
        self.last_entries: list[ExecutionLogEntry] = []
        self._state: RunState = Idle()
        self._generation = 0
        self._last: _Invocation | None = None

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def controls_enabled(self) -> bool:
        return not isinstance(self._state, Running)

    def capture(self, text: str | None) -> RunState:
        self._generation += 1
        self._last = None
        self._state = Captured(text or "")
        self.events.emit("capture_received", generation=self._generation, input_length=len(text or ""))
        return self._state

    def capture_from_clipboard(self) -> RunState:
        return self.capture(self.clipboard.read_text())

    async def run(self, action_id: str | None = None) -> RunState:
        state = self._state
        if isinstance(state, Captured):
            text = state.text
        elif isinstance(state, Idle):
            text = ""
        elif isinstance(state, Running):
            raise RunStateError("A run is already in progress.")
        else:
            raise RunStateError(f"Cannot start a run from the {state_name(state)} state.")

        config = self.registry.load()
        if config is None:
            raise ConfigurationError("Setup has not been completed.")
        if action_id:
            action = config.find(action_id)
            if action is None:
                raise ConfigurationError(f"Unknown action '{action_id}'.")
        else:
            action = self.registry.default_action() or config.actions[0]
        invocation = _Invocation(
            text=text,
            action=action,
            backend_id=config.backend_id,
            credential=config.credential,
            model_id=config.model_id,
        )
        return await self._execute(invocation)

    async def retry(self) -> RunState:
        if not isinstance(self._state, Error) or self._last is None:
            raise RunStateError("Retry is only available after a failed run.")
        return await self._execute(self._last)

    def close(self) -> RunState:
        # Detaches the display from any in-flight run without cancelling it.
        self._generation += 1
        self._last = None
        previous = state_name(self._state)
        self._state = Idle()
        self.events.emit("run_closed", generation=self._generation, from_state=previous)
        return self._state

    def apply(self) -> RunState:
        result = self._require_result("apply")
        self.window.hide_window()
        self.paste_target.paste_text(result.output)
        self.events.emit("result_applied", output_length=len(result.output))
        self._generation += 1
        self._last = None
        self._state = Idle()
        return self._state

    def copy(self) -> None:
        result = self._require_result("copy")
        self.clipboard.write_text(result.output)
        self.events.emit("result_copied", output_length=len(result.output))

    async def _execute(self, invocation: _Invocation) -> RunState:
        # Each path settles the display in a finally block; a failed log,
        # event or registry write still propagates to the caller.
        generation = self._generation
        self._last = invocation
        action = invocation.action

        if not invocation.text.strip():
            try:
                self._record(invocation, duration_ms=0.0, output="", error=NO_TEXT_MESSAGE, model_id=None)
                self.events.emit("run_failed", action_id=action.id, error=NO_TEXT_MESSAGE, generation=generation)
            finally:
                self._display(generation, Error(invocation.text, NO_TEXT_MESSAGE))
            return self._state

        self.events.emit(
            "run_started",
            action_id=action.id,
            backend_id=invocation.backend_id,
            input_length=len(invocation.text),
            generation=generation,
        )
        self._state = Running(invocation.text, action.id)
        started = self.clock()
        try:
            dispatched = await asyncio.to_thread(
                self.gateway.dispatch,
                invocation.backend_id,
                invocation.credential,
                action.prompt,
                invocation.text,
                model=invocation.model_id,
            )
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            elapsed = max(self.clock() - started, 0.0)
            try:
                self._record(
                    invocation,
                    duration_ms=elapsed,
                    output="",
                    error=message,
                    model_id=self._model_for(invocation),
                )
                self.events.emit(
                    "run_failed",
                    action_id=action.id,
                    error=message,
                    error_type=type(exc).__name__,
                    duration_ms=elapsed,
                    generation=generation,
                )
            finally:
                self._display(generation, Error(invocation.text, message))
            return self._state

        elapsed = max(self.clock() - started, 0.0)
        try:
            self._record(invocation, duration_ms=elapsed, output=dispatched.text, error=None, model_id=dispatched.model_id)
            self.events.emit(
                "run_succeeded",
                action_id=action.id,
                model_id=dispatched.model_id,
                model_fallback=dispatched.fallback_reason,
                output_length=len(dispatched.text),
                duration_ms=elapsed,
                generation=generation,
            )
            self.registry.mark_used(action.id)
        finally:
            self._display(generation, Result(invocation.text, dispatched.text, action.name))
        return self._state

    def _record(
        self,
        invocation: _Invocation,
        *,
        duration_ms: float,
        output: str,
        error: str | None,
        model_id: str | None,
    ) -> None:
        # Snapshot taken at invocation time, not a fresh registry lookup.
        entry = ExecutionLogEntry(
            action_id=invocation.action.id,
            action_name=invocation.action.name,
            prompt_snapshot=invocation.action.prompt,
            backend_id=invocation.backend_id,
            model_id=model_id,
            duration_ms=duration_ms,
            input_length=len(invocation.text),
            output_length=len(output),
            success=error is None,
            error_message=error,
        )
        self.last_entries = self.log_store.append(entry)

    def _display(self, generation: int, state: RunState) -> bool:
        if generation != self._generation:
            self.events.emit("run_detached", generation=generation, current_generation=self._generation)
            return False
        self._state = state
        return True

    def _model_for(self, invocation: _Invocation) -> str | None:
        try:
            return self.gateway.resolve_model(invocation.backend_id, invocation.model_id)
        except Exception:
            return None

    def _require_result(self, control: str) -> Result:
        if not isinstance(self._state, Result):
            raise RunStateError(f"{control} is only available when a result is shown.")
        return self._state
