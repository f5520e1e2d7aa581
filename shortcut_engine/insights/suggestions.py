"""Prompt rewrite suggestions derived from action statistics."""

from __future__ import annotations

from dataclasses import dataclass

from ..utils import round_half_up
from .stats import ActionExecutionStats


MIN_SAMPLE_RUNS = 5
RELIABILITY_THRESHOLD = 0.70
LATENCY_THRESHOLD_MS = 10_000

RELIABILITY_REQUIREMENTS = (
    "Requirements:\n"
    "- Return only the transformed text.\n"
    "- Do not include explanations, markdown, or quotes.\n"
    "- If input is ambiguous, still return a best-effort transformed result.\n"
    "- Preserve original intent and key facts."
)

LATENCY_REQUIREMENTS = (
    "Requirements:\n"
    "- Be concise and direct.\n"
    "- Prefer one clear output with minimal verbosity.\n"
    "- Avoid extra analysis unless explicitly requested."
)


@dataclass(frozen=True)
class PromptAutoSuggestion:
    kind: str
    summary: str
    suggested_prompt: str | None = None


def suggest_prompt(current_prompt: str, stats: ActionExecutionStats | None) -> PromptAutoSuggestion | None:
    if stats is None or stats.total_runs < MIN_SAMPLE_RUNS:
        return None
    if stats.success_rate < RELIABILITY_THRESHOLD:
        percent = round_half_up(stats.success_rate * 100)
        return PromptAutoSuggestion(
            kind="reliability",
            summary=(
                f"Success rate is {percent}% across {stats.total_runs} runs. "
                "Clarify output constraints and fallback behavior."
            ),
            suggested_prompt=build_reliable_prompt(current_prompt, stats.top_failure_reasons),
        )
    if stats.average_duration_ms > LATENCY_THRESHOLD_MS:
        return PromptAutoSuggestion(
            kind="latency",
            summary=(
                f"Average response time is {round_half_up(stats.average_duration_ms)}ms. "
                "Tighten scope for faster responses."
            ),
            suggested_prompt=build_fast_prompt(current_prompt),
        )
    return None


def build_reliable_prompt(prompt: str, failure_reasons: tuple[str, ...] | list[str] = ()) -> str:
    text = f"{prompt}\n\n{RELIABILITY_REQUIREMENTS}"
    if failure_reasons:
        bullets = "\n- ".join(failure_reasons)
        text = f"{text}\nKnown failure patterns to avoid:\n- {bullets}"
    return text


def build_fast_prompt(prompt: str) -> str:
    return f"{prompt}\n\n{LATENCY_REQUIREMENTS}"
