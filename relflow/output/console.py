"""Terminal output.

Everything relflow reports (step progress, echoed git commands, conflict
instructions, rollback outcomes) goes through ``ConsoleProtocol``.
``RichConsole`` writes to the terminal; ``MockConsole`` keeps the lines for
assertions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from rich.console import Console
from rich.markup import escape

__all__ = [
    "ConsoleProtocol",
    "MockConsole",
    "OutputLine",
    "RichConsole",
    "Style",
]


class Style(Enum):
    """Line styles; the value is the rich style string."""

    DEFAULT = ""
    SUCCESS = "green"
    ERROR = "bold red"
    WARNING = "yellow"
    INFO = "cyan"
    DIM = "dim"  # echoed git commands, hints
    BOLD = "bold"
    HEADER = "bold blue"

    def __str__(self) -> str:
        return self.name.lower()


_PREFIX = {
    Style.SUCCESS: "OK",
    Style.ERROR: "error:",
    Style.WARNING: "warning:",
    Style.INFO: "info:",
}


class ConsoleProtocol(Protocol):
    def print(self, message: str, style: Style = Style.DEFAULT) -> None: ...

    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...

    def header(self, message: str) -> None: ...

    def step(self, number: int, total: int, message: str) -> None:
        """``[number/total] message`` progress line for a workflow step."""
        ...


class RichConsole:
    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console(highlight=False)

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        self._console.print(message, style=style.value or None, markup=False)

    def success(self, message: str) -> None:
        self._tagged(Style.SUCCESS, message)

    def error(self, message: str) -> None:
        self._tagged(Style.ERROR, message)

    def warning(self, message: str) -> None:
        self._tagged(Style.WARNING, message)

    def info(self, message: str) -> None:
        self._tagged(Style.INFO, message)

    def header(self, message: str) -> None:
        self._console.print()
        self.print(message, Style.HEADER)

    def step(self, number: int, total: int, message: str) -> None:
        self._console.print()
        self._console.print(f"[{Style.INFO.value}]\\[{number}/{total}][/] {escape(message)}")

    def _tagged(self, style: Style, message: str) -> None:
        # only the prefix is styled; the message is printed verbatim
        self._console.print(f"[{style.value}]{_PREFIX[style]}[/] {escape(message)}")


@dataclass(frozen=True, slots=True)
class OutputLine:
    message: str
    style: Style


@dataclass
class MockConsole:
    """Records every line instead of printing it."""

    outputs: list[OutputLine] = field(default_factory=list[OutputLine])

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        self.outputs.append(OutputLine(message, style))

    def success(self, message: str) -> None:
        self._tagged(Style.SUCCESS, message)

    def error(self, message: str) -> None:
        self._tagged(Style.ERROR, message)

    def warning(self, message: str) -> None:
        self._tagged(Style.WARNING, message)

    def info(self, message: str) -> None:
        self._tagged(Style.INFO, message)

    def header(self, message: str) -> None:
        self.print(message, Style.HEADER)

    def step(self, number: int, total: int, message: str) -> None:
        self.print(f"[{number}/{total}] {message}", Style.INFO)

    def _tagged(self, style: Style, message: str) -> None:
        self.print(f"{_PREFIX[style]} {message}", style)

    @property
    def messages(self) -> list[str]:
        return [o.message for o in self.outputs]

    @property
    def text(self) -> str:
        return "\n".join(self.messages)

    def has_error(self) -> bool:
        return any(o.style is Style.ERROR for o in self.outputs)

    def has_warning(self) -> bool:
        return any(o.style is Style.WARNING for o in self.outputs)

    def find(self, substring: str) -> list[OutputLine]:
        return [o for o in self.outputs if substring in o.message]

    def count(self, style: Style) -> int:
        return sum(1 for o in self.outputs if o.style is style)
