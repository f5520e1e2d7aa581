"""Per-action reliability and latency statistics from the execution log."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ..runs.log_store import ExecutionLogEntry


NO_INPUT_REASON = "No input text was selected."
CREDENTIAL_REASON = "API key was missing or invalid."
TIMEOUT_REASON = "The request timed out."
NETWORK_REASON = "Network issue during request."
UNKNOWN_REASON = "Unknown failure"

# Checked in order; the first substring found wins.
_FAILURE_PATTERNS: tuple[tuple[str, str], ...] = (
    ("no text selected", NO_INPUT_REASON),
    ("api key", CREDENTIAL_REASON),
    ("timeout", TIMEOUT_REASON),
    ("network", NETWORK_REASON),
)

TOP_FAILURE_LIMIT = 3


@dataclass(frozen=True)
class ActionExecutionStats:
    total_runs: int
    successful_runs: int
    failed_runs: int
    success_rate: float
    average_duration_ms: float
    top_failure_reasons: tuple[str, ...] = ()


def normalize_failure_reason(message: str | None) -> str:
    if not message:
        return UNKNOWN_REASON
    lowered = message.lower()
    for needle, reason in _FAILURE_PATTERNS:
        if needle in lowered:
            return reason
    return message


def compute_action_stats(entries: Iterable[ExecutionLogEntry], action_id: str) -> ActionExecutionStats | None:
    filtered = [entry for entry in entries if entry.action_id == action_id]
    if not filtered:
        return None
    total = len(filtered)
    successful = sum(1 for entry in filtered if entry.success)
    average_duration = sum(entry.duration_ms for entry in filtered) / total

    buckets: dict[str, int] = {}
    for entry in filtered:
        if entry.success:
            continue
        reason = normalize_failure_reason(entry.error_message)
        buckets[reason] = buckets.get(reason, 0) + 1
    # sorted() is stable, so equal counts keep first-seen order.
    ranked = sorted(buckets.items(), key=lambda item: -item[1])

    return ActionExecutionStats(
        total_runs=total,
        successful_runs=successful,
        failed_runs=total - successful,
        success_rate=successful / total,
        average_duration_ms=average_duration,
        top_failure_reasons=tuple(reason for reason, _ in ranked[:TOP_FAILURE_LIMIT]),
    )
