"""Host capabilities the run machine calls but does not implement.

Desktop hosts plug in real clipboard, paste-back and window control; the
defaults here keep the engine usable headless and in tests.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import Protocol, TextIO


class Clipboard(Protocol):
    def read_text(self) -> str:
        ...

    def write_text(self, text: str) -> None:
        ...


class PasteTarget(Protocol):
    def paste_text(self, text: str) -> None:
        ...


class WindowControl(Protocol):
    def hide_window(self) -> None:
        ...


@dataclass
class MemoryClipboard:
    text: str = ""

    def read_text(self) -> str:
        return self.text

    def write_text(self, text: str) -> None:
        self.text = text


@dataclass
class StreamPasteTarget:
    stream: TextIO = field(default_factory=lambda: sys.stdout)

    def paste_text(self, text: str) -> None:
        self.stream.write(text)
        if not text.endswith("\n"):
            self.stream.write("\n")
        self.stream.flush()


class NoWindow:
    def hide_window(self) -> None:
        return None
