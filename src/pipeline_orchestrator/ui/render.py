"""Output rendering abstraction for the pipeline-orchestrator CLI.

File: src/pipeline_orchestrator/ui/render.py

Purpose
- Provide a thin rendering layer for CLI output.
- Respect NO_COLOR environment variable and --no-color CLI flag.

Functional requirements
- Plain-text rendering must always work without external dependencies.
- Output is deterministic so text reports can be diffed between runs.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Sequence

_ANSI_RESET: Final[str] = "\033[0m"
_ANSI_GREEN: Final[str] = "\033[32m"
_ANSI_YELLOW: Final[str] = "\033[33m"
_ANSI_RED: Final[str] = "\033[31m"


def _color_allowed(no_color_flag: bool) -> bool:
    """Check whether color output should be attempted."""

    if no_color_flag:
        return False
    if os.environ.get("NO_COLOR", ""):
        return False
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


class CLIRenderer:
    """Thin CLI output renderer.

    Produces clean, deterministic plain-text output; status markers are
    colored only when stdout is a terminal and color is not disabled.
    """

    def __init__(self, *, no_color: bool = False, verbose: bool = False) -> None:
        self.verbose = verbose
        self._color = _color_allowed(no_color)

    def heading(self, text: str) -> None:
        """Print a heading line."""

        print(text)

    def kv(self, key: str, value: object) -> None:
        """Print a key: value pair."""

        print(f"{key}: {value}")

    def text(self, line: str) -> None:
        """Print a plain text line."""

        print(line)

    def section(self, title: str) -> None:
        """Print a section header with a preceding blank line."""

        print(f"\n{title}")

    def items(self, entries: Sequence[str], *, prefix: str = "- ") -> None:
        """Print a bulleted list."""

        for entry in entries:
            print(f"  {prefix}{entry}")

    def table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[str]],
        *,
        title: str | None = None,
    ) -> None:
        """Print a formatted ASCII table."""

        if not rows:
            return

        col_count = len(headers)
        widths = [len(h) for h in headers]
        for row in rows:
            for i in range(min(len(row), col_count)):
                widths[i] = max(widths[i], len(str(row[i])))

        def _pad(cells: Sequence[str]) -> str:
            parts: list[str] = []
            for i in range(col_count):
                cell = str(cells[i]) if i < len(cells) else ""
                parts.append(cell.ljust(widths[i]))
            return "  ".join(parts).rstrip()

        if title:
            self.section(title)
        print(f"  {_pad(list(headers))}")
        print(f"  {'  '.join('-' * w for w in widths)}")
        for row in rows:
            print(f"  {_pad(list(row))}")

    def next_steps(self, steps: Sequence[str]) -> None:
        """Print actionable next-step hints."""

        if not steps:
            return
        self.section("Next steps:")
        for step in steps:
            print(f"  $ {step}")

    def ok(self, label: str) -> None:
        """Print a passing diagnostic check."""

        print(f"  {self._paint('OK', _ANSI_GREEN)}  {label}")

    def warn(self, label: str) -> None:
        """Print a non-blocking diagnostic failure."""

        print(f"  {self._paint('WARN', _ANSI_YELLOW)}  {label}")

    def fail(self, label: str) -> None:
        """Print a failing diagnostic check."""

        print(f"  {self._paint('FAIL', _ANSI_RED)}  {label}")

    def _paint(self, marker: str, color: str) -> str:
        if not self._color:
            return marker
        return f"{color}{marker}{_ANSI_RESET}"


def create_renderer(*, no_color: bool = False, verbose: bool = False) -> CLIRenderer:
    """Create a CLI renderer with the given settings."""

    return CLIRenderer(no_color=no_color, verbose=verbose)


__all__ = ["CLIRenderer", "create_renderer"]
