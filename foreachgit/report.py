"""Writes one self-contained output block per repository."""

from __future__ import annotations

import threading
from typing import Optional

from rich.console import Console
from rich.text import Text

from foreachgit.errors import ForeachGitError
from foreachgit.walker import RepositoryResult

HEADER_STYLE = "bold cyan"
MUTED = "dim"
ERROR_STYLE = "bold red"
ERROR_PREFIX = "ERROR: "


def printable(text: str) -> str:
    """Replace undecodable filename bytes with backslash escapes."""
    return text.encode("utf-8", "surrogateescape").decode("utf-8", "backslashreplace")


def make_console(**kwargs) -> Console:
    """Console that never wraps or highlights paths."""
    return Console(soft_wrap=True, highlight=False, **kwargs)


class Reporter:
    """Writes repository results and errors to a single console.

    Each block is assembled first and printed in one call under a lock, so
    blocks from concurrently finished repositories never interleave.
    """

    def __init__(
        self,
        console: Optional[Console] = None,
        *,
        verbose: bool = False,
        show_actions: bool = False,
    ) -> None:
        self.console = console or make_console()
        self.verbose = verbose
        self.show_actions = show_actions
        self._lock = threading.Lock()

    def format_result(self, result: RepositoryResult) -> Optional[Text]:
        """Build the block for result, or None when nothing should be printed."""
        if result.error is not None:
            return self._error_text(result.error)

        if not self.show_actions:
            if result.matched:
                return Text(printable(result.root))
            return None

        if not result.matched:
            if not self.verbose:
                return None
            text = Text("Repository root: ", style=HEADER_STYLE)
            text.append(printable(result.root))
            text.append(" (no match)", style=MUTED)
            return text

        text = Text("Repository root: ", style=HEADER_STYLE)
        text.append(printable(result.root))
        for outcome in result.outputs:
            for line in outcome.output.splitlines():
                text.append(f"\n\t{printable(line)}")
            if outcome.error is not None:
                text.append("\n\t")
                text.append(ERROR_PREFIX + printable(outcome.error), style=ERROR_STYLE)
        return text

    def report(self, result: RepositoryResult) -> None:
        block = self.format_result(result)
        if block is not None:
            self._write(block)

    def error(self, error: ForeachGitError) -> None:
        self._write(self._error_text(str(error)))

    def _error_text(self, message: str) -> Text:
        return Text(ERROR_PREFIX + printable(message), style=ERROR_STYLE)

    def _write(self, block: Text) -> None:
        with self._lock:
            self.console.print(block)
