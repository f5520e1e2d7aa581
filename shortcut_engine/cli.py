"""Shortcut CLI entrypoints."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from .config.schema import Action, ConfigurationError
from .engine import ShortcutEngine
from .runner.states import Error, Result
from .utils import load_dotenv, round_half_up, truncate


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="shortcut", description="Run text actions through AI backends")
    parser.add_argument("--home", help="Data directory (defaults to $SHORTCUT_HOME or ~/.shortcut)")
    sub = parser.add_subparsers(dest="command")

    setup = sub.add_parser("setup", help="Create the initial configuration")
    setup.add_argument("--backend", required=True)
    setup.add_argument("--credential", default="", help="API key for the backend")
    setup.add_argument("--action-name", dest="action_name")
    setup.add_argument("--prompt")
    setup.add_argument("--model", help="Model id (defaults to the backend default)")

    sub.add_parser("backends", help="List available backends")

    actions = sub.add_parser("actions", help="Manage actions")
    actions_sub = actions.add_subparsers(dest="actions_command")
    actions_sub.add_parser("list")
    add = actions_sub.add_parser("add")
    add.add_argument("--name")
    add.add_argument("--prompt")
    edit = actions_sub.add_parser("edit")
    edit.add_argument("action")
    edit.add_argument("--name")
    edit.add_argument("--prompt")
    delete = actions_sub.add_parser("delete")
    delete.add_argument("action")
    default = actions_sub.add_parser("default")
    default.add_argument("action")

    run = sub.add_parser("run", help="Run an action on text (stdin when --text is omitted)")
    run.add_argument("--action", help="Action id or name (defaults to the default action)")
    run.add_argument("--text")

    stats = sub.add_parser("stats", help="Show reliability stats per action")
    stats.add_argument("--action")

    suggest = sub.add_parser("suggest", help="Suggest a prompt rewrite for an action")
    suggest.add_argument("--action", required=True)
    suggest.add_argument("--apply", action="store_true")

    logs = sub.add_parser("logs", help="Show recent executions")
    logs.add_argument("--limit", type=int, default=20)

    return parser


def _resolve_action(engine: ShortcutEngine, ref: str) -> Action:
    config = engine.registry.load()
    if config is None:
        raise ConfigurationError("Setup has not been completed. Run `shortcut setup` first.")
    found = config.find(ref)
    if found:
        return found
    lowered = ref.strip().lower()
    for action in config.actions:
        if action.name.lower() == lowered:
            return action
    raise ConfigurationError(f"Unknown action '{ref}'.")


def _handle_setup(engine: ShortcutEngine, args: argparse.Namespace) -> int:
    backend = engine.backends.get(args.backend)
    if backend is None:
        print(f"Unknown backend '{args.backend}'. Available: {', '.join(engine.backends.list())}")
        return 1
    actions = None
    if args.action_name or args.prompt:
        if not (args.action_name and args.prompt):
            print("Both --action-name and --prompt are required for a custom first action.")
            return 1
        actions = [Action.create(args.action_name, args.prompt)]
    selection = engine.gateway.model_selector.select(args.model, backend.name)
    if selection.fallback_reason:
        print(f"{selection.fallback_reason} The default for {backend.name} is {selection.model.name}.")
        return 1
    config = engine.registry.complete_setup(backend.name, args.credential, actions, model_id=args.model)
    print(
        f"Setup saved: backend={config.backend_id} model={selection.model.name} actions={len(config.actions)}"
    )
    return 0


def _handle_backends(engine: ShortcutEngine, args: argparse.Namespace) -> int:
    for backend in engine.backends.backends():
        model = engine.gateway.resolve_model(backend.name)
        key_note = "" if backend.requires_credential else " (no API key)"
        print(f"{backend.name}\t{model}{key_note}")
    return 0


def _handle_actions(engine: ShortcutEngine, args: argparse.Namespace) -> int:
    command = args.actions_command or "list"
    if command == "list":
        config = engine.registry.load()
        if config is None:
            print("No setup found. Run `shortcut setup` first.")
            return 1
        for action in config.actions:
            marker = "*" if action.id == config.default_action_id else " "
            print(f"{marker} {action.id}  {action.name}")
        return 0
    if command == "add":
        action = engine.registry.add(args.name, args.prompt)
        print(f"Added {action.id}  {action.name}")
        return 0
    action = _resolve_action(engine, args.action)
    if command == "edit":
        updated = engine.registry.edit(action.id, args.name or action.name, args.prompt or action.prompt)
        print(f"Updated {action.id}  {updated.name if updated else action.name}")
        return 0
    if command == "delete":
        engine.registry.delete(action.id)
        print(f"Deleted {action.id}")
        return 0
    if command == "default":
        engine.registry.set_default(action.id)
        print(f"Default action: {action.name}")
        return 0
    return 1


def _handle_run(engine: ShortcutEngine, args: argparse.Namespace) -> int:
    text = args.text if args.text is not None else sys.stdin.read()
    action_id = _resolve_action(engine, args.action).id if args.action else None
    engine.machine.capture(text)
    state = asyncio.run(engine.machine.run(action_id))
    if isinstance(state, Result):
        print(state.output)
        entry = engine.machine.last_entries[-1] if engine.machine.last_entries else None
        if entry:
            print(f"• {state.action_name} via {entry.backend_id} ({_format_ms(entry.duration_ms)})", file=sys.stderr)
        return 0
    if isinstance(state, Error):
        print(f"Error: {state.message}", file=sys.stderr)
        return 1
    return 1


def _handle_stats(engine: ShortcutEngine, args: argparse.Namespace) -> int:
    config = engine.registry.load()
    if config is None:
        print("No setup found. Run `shortcut setup` first.")
        return 1
    actions = [_resolve_action(engine, args.action)] if args.action else config.actions
    for action in actions:
        stats = engine.stats_for(action.id)
        if stats is None:
            print(f"{action.name}: no runs yet")
            continue
        line = (
            f"{action.name}: success {round_half_up(stats.success_rate * 100)}% • "
            f"avg {_format_ms(stats.average_duration_ms)} • runs {stats.total_runs}"
        )
        print(line)
        if stats.top_failure_reasons:
            print(f"  top failures: {' / '.join(stats.top_failure_reasons)}")
    return 0


def _handle_suggest(engine: ShortcutEngine, args: argparse.Namespace) -> int:
    action = _resolve_action(engine, args.action)
    suggestion = engine.suggestion_for(action.id)
    if suggestion is None:
        print(f"No suggestion for {action.name}.")
        return 0
    print(suggestion.summary)
    if suggestion.suggested_prompt:
        print()
        print(suggestion.suggested_prompt)
    if args.apply:
        engine.apply_suggestion(action.id)
        print()
        print(f"Prompt updated for {action.name}.")
    return 0


def _handle_logs(engine: ShortcutEngine, args: argparse.Namespace) -> int:
    entries = engine.log_store.load()
    limit = max(0, args.limit)
    for entry in entries[-limit:] if limit else []:
        status = "ok  " if entry.success else "fail"
        detail = "" if entry.success else f"  {truncate(entry.error_message or '', 80)}"
        print(f"{entry.timestamp}  {status}  {entry.action_name}  {_format_ms(entry.duration_ms)}{detail}")
    return 0


def _format_ms(value: float) -> str:
    if value >= 1000:
        return f"{value / 1000:.1f}s"
    return f"{round_half_up(value)}ms"


_HANDLERS = {
    "setup": _handle_setup,
    "backends": _handle_backends,
    "actions": _handle_actions,
    "run": _handle_run,
    "stats": _handle_stats,
    "suggest": _handle_suggest,
    "logs": _handle_logs,
}


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    parser = _build_parser()
    args = parser.parse_args(argv)
    handler = _HANDLERS.get(args.command)
    if handler is None:
        parser.print_help()
        raise SystemExit(1)
    engine = ShortcutEngine(Path(args.home).expanduser() if args.home else None)
    try:
        raise SystemExit(handler(engine, args))
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
