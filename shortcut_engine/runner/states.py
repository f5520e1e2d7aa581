"""Displayed run states."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Captured:
    text: str


@dataclass(frozen=True)
class Running:
    text: str
    action_id: str


@dataclass(frozen=True)
class Result:
    original_text: str
    output: str
    action_name: str


@dataclass(frozen=True)
class Error:
    original_text: str
    message: str


RunState = Union[Idle, Captured, Running, Result, Error]


def state_name(state: RunState) -> str:
    return type(state).__name__.lower()
