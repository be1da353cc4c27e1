"""Output rendering abstraction for the webspec CLI.

File: src/webspec/ui/render.py

Purpose
- Provide a thin rendering layer for CLI output.
- Respect the NO_COLOR environment variable and the --no-color CLI flag.

Functional requirements
- Plain-text rendering must always work without external dependencies.
- Diagnostics render as ``CODE: message`` lines, with hint and path when present.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING, TextIO

if TYPE_CHECKING:
    from collections.abc import Sequence

    from webspec.domain.diagnostics import Diagnostic

_RED = "\033[31m"
_YELLOW = "\033[33m"
_GREEN = "\033[32m"
_RESET = "\033[0m"


def _color_allowed(no_color_flag: bool, stream: TextIO) -> bool:
    """Check whether color output should be attempted."""

    if no_color_flag:
        return False
    if os.environ.get("NO_COLOR", ""):
        return False
    return hasattr(stream, "isatty") and stream.isatty()


class CLIRenderer:
    """Thin CLI output renderer.

    Produces clean, deterministic plain-text output.
    Respects ``NO_COLOR`` env var and ``--no-color`` flag.
    """

    def __init__(
        self,
        *,
        no_color: bool = False,
        verbose: bool = False,
        stream: TextIO | None = None,
    ) -> None:
        self.verbose = verbose
        self._stream = stream if stream is not None else sys.stdout
        self._color = _color_allowed(no_color, self._stream)

    def kv(self, key: str, value: object) -> None:
        """Print a key: value pair."""

        self._print(f"{key}: {value}")

    def text(self, line: str) -> None:
        self._print(line)

    def section(self, title: str) -> None:
        """Print a section header with a preceding blank line."""

        self._print(f"\n{title}")

    def items(self, entries: Sequence[str], *, prefix: str = "- ") -> None:
        for entry in entries:
            self._print(f"  {prefix}{entry}")

    def next_steps(self, steps: Sequence[str]) -> None:
        """Print actionable next-step hints."""

        if not steps:
            return
        self.section("Next steps:")
        for step in steps:
            self._print(f"  $ {step}")

    def ok(self, label: str) -> None:
        self._print(f"{self._paint('OK', _GREEN)}  {label}")

    def diagnostics(self, diagnostics: Sequence[Diagnostic]) -> None:
        """Print one ``CODE: message`` line per diagnostic; hints and paths only when verbose."""

        for item in diagnostics:
            color = _RED if item.is_error else _YELLOW
            self._print(f"{self._paint(str(item.code), color)}: {item.message}")
            if self.verbose and item.path is not None:
                self._print(f"    at {item.path}")
            if self.verbose and item.hint is not None:
                self._print(f"    hint: {item.hint}")

    def _paint(self, text: str, color: str) -> str:
        if not self._color:
            return text
        return f"{color}{text}{_RESET}"

    def _print(self, line: str) -> None:
        print(line, file=self._stream)


def create_renderer(*, no_color: bool = False, verbose: bool = False) -> CLIRenderer:
    """Create a CLI renderer with the given settings."""

    return CLIRenderer(no_color=no_color, verbose=verbose)


__all__ = ["CLIRenderer", "create_renderer"]
