from __future__ import annotations

import asyncio
import threading

import pytest

from shortcut_engine.backends.base import TransportError
from shortcut_engine.backends.gateway import DispatchResult
from shortcut_engine.config.registry import ActionRegistry
from shortcut_engine.config.schema import Action, ConfigurationError
from shortcut_engine.runner.collaborators import MemoryClipboard
from shortcut_engine.runner.machine import NO_TEXT_MESSAGE, RunStateError, RunStateMachine
from shortcut_engine.runner.states import Captured, Error, Idle, Result, Running
from shortcut_engine.runs.log_store import ExecutionLogStore
from shortcut_engine.storage import InMemoryStore


class FakeGateway:
    def __init__(self, outputs=None, *, blocking: bool = False) -> None:
        self.outputs = list(outputs or ["done"])
        self.calls: list[tuple[str, str, str, str]] = []
        self.models: list[str | None] = []
        self.started = threading.Event()
        self.release = threading.Event()
        if not blocking:
            self.release.set()

    def dispatch(self, backend_id, credential, instruction, text, *, model=None) -> DispatchResult:
        self.calls.append((backend_id, credential, instruction, text))
        self.models.append(model)
        self.started.set()
        self.release.wait(2)
        outcome = self.outputs.pop(0) if len(self.outputs) > 1 else self.outputs[0]
        if isinstance(outcome, Exception):
            raise outcome
        return DispatchResult(text=outcome, backend_id=backend_id, model_id="fake-model")

    def resolve_model(self, backend_id, requested=None) -> str:
        return "fake-model"


class RecordingPaste:
    def __init__(self, calls: list[str]) -> None:
        self.calls = calls

    def paste_text(self, text: str) -> None:
        self.calls.append(f"paste:{text}")


class RecordingWindow:
    def __init__(self, calls: list[str]) -> None:
        self.calls = calls

    def hide_window(self) -> None:
        self.calls.append("hide")


class RecordingEvents:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict]] = []

    def emit(self, event_type: str, **payload) -> dict:
        self.events.append((event_type, payload))
        return {"type": event_type, **payload}

    def types(self) -> list[str]:
        return [event_type for event_type, _ in self.events]


def _machine(gateway: FakeGateway, *, names=("Fix Grammar", "Shorten"), model_id=None):
    registry = ActionRegistry(InMemoryStore())
    actions = [Action.create(name, f"{name} prompt") for name in names]
    registry.complete_setup("openai", "sk-test", actions, model_id=model_id)
    log_store = ExecutionLogStore(InMemoryStore())
    host_calls: list[str] = []
    events = RecordingEvents()
    ticks = iter(range(0, 100_000, 250))
    machine = RunStateMachine(
        registry,
        gateway,
        log_store,
        clipboard=MemoryClipboard(),
        paste_target=RecordingPaste(host_calls),
        window=RecordingWindow(host_calls),
        events=events,
        clock=lambda: float(next(ticks)),
    )
    return machine, registry, log_store, host_calls, events


def test_successful_run_shows_result_and_logs_snapshot() -> None:
    gateway = FakeGateway(["Fixed text."])
    machine, registry, log_store, _, events = _machine(gateway)
    action = registry.default_action()
    assert action is not None

    machine.capture("fixd txt")
    state = asyncio.run(machine.run())

    assert state == Result("fixd txt", "Fixed text.", "Fix Grammar")
    assert gateway.calls == [("openai", "sk-test", "Fix Grammar prompt", "fixd txt")]
    entries = log_store.load()
    assert len(entries) == 1
    entry = entries[0]
    assert entry.success is True
    assert entry.action_id == action.id
    assert entry.prompt_snapshot == "Fix Grammar prompt"
    assert entry.backend_id == "openai"
    assert entry.model_id == "fake-model"
    assert entry.input_length == len("fixd txt")
    assert entry.output_length == len("Fixed text.")
    assert entry.duration_ms == 250.0
    assert entry.error_message is None
    assert events.types() == ["capture_received", "run_started", "run_succeeded"]


def test_run_uses_requested_action() -> None:
    gateway = FakeGateway(["short"])
    machine, registry, _, _, _ = _machine(gateway)
    config = registry.load()
    assert config is not None
    shorten = config.actions[1]

    machine.capture("a long sentence")
    state = asyncio.run(machine.run(shorten.id))

    assert isinstance(state, Result)
    assert state.action_name == "Shorten"
    assert gateway.calls[0][2] == "Shorten prompt"


def test_successful_run_marks_action_used() -> None:
    machine, registry, _, _, _ = _machine(FakeGateway(["ok"]))
    action = registry.default_action()
    assert action is not None and action.last_used_at is None

    machine.capture("text")
    asyncio.run(machine.run())

    refreshed = registry.get(action.id)
    assert refreshed is not None
    assert refreshed.last_used_at is not None


def test_failed_run_shows_error_and_logs_failure() -> None:
    gateway = FakeGateway([TransportError("Network error: refused")])
    machine, _, log_store, _, events = _machine(gateway)

    machine.capture("input")
    state = asyncio.run(machine.run())

    assert state == Error("input", "Network error: refused")
    entries = log_store.load()
    assert len(entries) == 1
    assert entries[0].success is False
    assert entries[0].error_message == "Network error: refused"
    assert entries[0].output_length == 0
    assert entries[0].model_id == "fake-model"
    assert events.types()[-1] == "run_failed"


@pytest.mark.parametrize("text", ["", "   \n\t"])
def test_blank_input_is_logged_without_dispatch(text: str) -> None:
    gateway = FakeGateway()
    machine, _, log_store, _, _ = _machine(gateway)

    machine.capture(text)
    state = asyncio.run(machine.run())

    assert state == Error(text, NO_TEXT_MESSAGE)
    assert gateway.calls == []
    entries = log_store.load()
    assert len(entries) == 1
    assert entries[0].success is False
    assert entries[0].duration_ms == 0.0
    assert entries[0].error_message == NO_TEXT_MESSAGE


def test_run_from_idle_is_an_empty_input_failure() -> None:
    machine, _, log_store, _, _ = _machine(FakeGateway())

    state = asyncio.run(machine.run())

    assert isinstance(state, Error)
    assert state.message == NO_TEXT_MESSAGE
    assert len(log_store.load()) == 1


def test_retry_reuses_original_invocation() -> None:
    gateway = FakeGateway([TransportError("Request timeout after 30s"), "recovered"])
    machine, _, log_store, _, _ = _machine(gateway)

    machine.capture("input")
    first = asyncio.run(machine.run())
    assert isinstance(first, Error)

    second = asyncio.run(machine.retry())

    assert second == Result("input", "recovered", "Fix Grammar")
    assert gateway.calls[0] == gateway.calls[1]
    assert [entry.success for entry in log_store.load()] == [False, True]


def test_retry_only_after_failure() -> None:
    machine, _, _, _, _ = _machine(FakeGateway(["ok"]))
    with pytest.raises(RunStateError):
        asyncio.run(machine.retry())

    machine.capture("input")
    asyncio.run(machine.run())
    with pytest.raises(RunStateError):
        asyncio.run(machine.retry())


def test_run_rejected_outside_captured_or_idle() -> None:
    machine, _, _, _, _ = _machine(FakeGateway(["ok"]))
    machine.capture("input")
    asyncio.run(machine.run())
    assert isinstance(machine.state, Result)

    with pytest.raises(RunStateError):
        asyncio.run(machine.run())


def test_unknown_action_id_is_configuration_error() -> None:
    machine, _, log_store, _, _ = _machine(FakeGateway())
    machine.capture("input")

    with pytest.raises(ConfigurationError):
        asyncio.run(machine.run("missing"))

    assert isinstance(machine.state, Captured)
    assert log_store.load() == []


def test_run_without_setup_is_configuration_error() -> None:
    machine = RunStateMachine(ActionRegistry(InMemoryStore()), FakeGateway(), ExecutionLogStore(InMemoryStore()))
    machine.capture("input")

    with pytest.raises(ConfigurationError):
        asyncio.run(machine.run())


def test_apply_hides_window_before_pasting() -> None:
    machine, _, _, host_calls, events = _machine(FakeGateway(["Better."]))
    machine.capture("worse")
    asyncio.run(machine.run())

    state = machine.apply()

    assert state == Idle()
    assert host_calls == ["hide", "paste:Better."]
    assert "result_applied" in events.types()


def test_copy_keeps_result_visible() -> None:
    machine, _, _, host_calls, _ = _machine(FakeGateway(["Better."]))
    machine.capture("worse")
    asyncio.run(machine.run())

    machine.copy()

    assert machine.clipboard.read_text() == "Better."
    assert isinstance(machine.state, Result)
    assert host_calls == []


def test_apply_and_copy_require_result() -> None:
    machine, _, _, _, _ = _machine(FakeGateway())
    machine.capture("input")
    with pytest.raises(RunStateError):
        machine.apply()
    with pytest.raises(RunStateError):
        machine.copy()


def test_close_returns_to_idle() -> None:
    machine, _, _, _, _ = _machine(FakeGateway([TransportError("boom")]))
    machine.capture("input")
    asyncio.run(machine.run())

    assert machine.close() == Idle()
    with pytest.raises(RunStateError):
        asyncio.run(machine.retry())


def test_capture_from_clipboard() -> None:
    machine, _, _, _, _ = _machine(FakeGateway())
    machine.clipboard.write_text("from clipboard")

    assert machine.capture_from_clipboard() == Captured("from clipboard")


def test_controls_disabled_while_running_and_second_run_rejected() -> None:
    gateway = FakeGateway(["ok"], blocking=True)
    machine, _, _, _, _ = _machine(gateway)
    machine.capture("input")

    async def scenario() -> None:
        task = asyncio.create_task(machine.run())
        await asyncio.to_thread(gateway.started.wait, 1)
        assert isinstance(machine.state, Running)
        assert machine.controls_enabled is False
        with pytest.raises(RunStateError):
            await machine.run()
        gateway.release.set()
        await task

    asyncio.run(scenario())

    assert machine.controls_enabled is True
    assert isinstance(machine.state, Result)


def test_new_capture_detaches_in_flight_run() -> None:
    gateway = FakeGateway(["stale output"], blocking=True)
    machine, _, log_store, _, events = _machine(gateway)
    machine.capture("first")

    async def scenario() -> None:
        task = asyncio.create_task(machine.run())
        await asyncio.to_thread(gateway.started.wait, 1)
        machine.capture("second")
        gateway.release.set()
        await task

    asyncio.run(scenario())

    assert machine.state == Captured("second")
    entries = log_store.load()
    assert len(entries) == 1
    assert entries[0].success is True
    assert entries[0].input_length == len("first")
    assert "run_detached" in events.types()


def test_log_keeps_prompt_snapshot_after_concurrent_edit() -> None:
    gateway = FakeGateway(["ok"], blocking=True)
    machine, registry, log_store, _, _ = _machine(gateway)
    action = registry.default_action()
    assert action is not None
    machine.capture("input")

    async def scenario() -> None:
        task = asyncio.create_task(machine.run())
        await asyncio.to_thread(gateway.started.wait, 1)
        registry.edit(action.id, "Renamed", "A different prompt")
        gateway.release.set()
        await task

    asyncio.run(scenario())

    entry = log_store.load()[0]
    assert entry.prompt_snapshot == "Fix Grammar prompt"
    assert entry.action_name == "Fix Grammar"
    assert registry.get(action.id).prompt == "A different prompt"


class EchoGateway:
    """Upper-cases each input once that input's release event is set."""

    def __init__(self, *texts: str) -> None:
        self.started = {text: threading.Event() for text in texts}
        self.release = {text: threading.Event() for text in texts}

    def dispatch(self, backend_id, credential, instruction, text, *, model=None) -> DispatchResult:
        self.started[text].set()
        self.release[text].wait(2)
        return DispatchResult(text=text.upper(), backend_id=backend_id, model_id="fake-model")

    def resolve_model(self, backend_id, requested=None) -> str:
        return "fake-model"


def test_overlapping_runs_keep_newest_result() -> None:
    gateway = EchoGateway("first", "second")
    machine, _, log_store, _, events = _machine(gateway)
    machine.capture("first")

    async def scenario() -> None:
        stale = asyncio.create_task(machine.run())
        await asyncio.to_thread(gateway.started["first"].wait, 1)
        machine.capture("second")
        current = asyncio.create_task(machine.run())
        await asyncio.to_thread(gateway.started["second"].wait, 1)
        gateway.release["second"].set()
        await current
        assert machine.state == Result("second", "SECOND", "Fix Grammar")
        gateway.release["first"].set()
        await stale

    asyncio.run(scenario())

    assert machine.state == Result("second", "SECOND", "Fix Grammar")
    assert [entry.input_length for entry in log_store.load()] == [len("second"), len("first")]
    assert all(entry.success for entry in log_store.load())
    assert events.types().count("run_detached") == 1


def test_registry_write_failure_still_settles_result(monkeypatch) -> None:
    machine, registry, log_store, _, _ = _machine(FakeGateway(["HELLO"]))

    def _read_only(payload) -> None:
        raise PermissionError("setup.json is read-only")

    monkeypatch.setattr(registry.store, "write", _read_only)
    machine.capture("hello")

    with pytest.raises(PermissionError):
        asyncio.run(machine.run())

    assert machine.state == Result("hello", "HELLO", "Fix Grammar")
    assert machine.controls_enabled is True
    assert [entry.success for entry in log_store.load()] == [True]


def test_log_write_failure_still_settles_error(monkeypatch) -> None:
    machine, _, log_store, _, _ = _machine(FakeGateway([TransportError("Network error: refused")]))

    def _disk_full(payload) -> None:
        raise OSError("disk full")

    monkeypatch.setattr(log_store.store, "write", _disk_full)
    machine.capture("input")

    with pytest.raises(OSError, match="disk full"):
        asyncio.run(machine.run())

    assert machine.state == Error("input", "Network error: refused")
    assert machine.controls_enabled is True


def test_failed_start_event_leaves_capture_in_place() -> None:
    gateway = FakeGateway(["ok"])
    machine, _, log_store, _, events = _machine(gateway)

    def _emit(event_type: str, **payload) -> dict:
        if event_type == "run_started":
            raise OSError("events stream unavailable")
        return {"type": event_type}

    events.emit = _emit
    machine.capture("input")

    with pytest.raises(OSError):
        asyncio.run(machine.run())

    assert machine.state == Captured("input")
    assert gateway.calls == []
    assert log_store.load() == []


def test_configured_model_is_requested() -> None:
    gateway = FakeGateway(["ok"])
    machine, _, _, _, _ = _machine(gateway, model_id="gpt-4o")

    machine.capture("input")
    asyncio.run(machine.run())

    assert gateway.models == ["gpt-4o"]
