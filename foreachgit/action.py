"""Commands run inside each matching repository."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from foreachgit.errors import ActionExecutionError, ActionSyntaxError
from foreachgit.git import CommandResult, run_in_dir

log = logging.getLogger(__name__)

ACTION_ALIASES: dict[str, tuple[str, str]] = {
    "-status": ("-status", "git status"),
    "-shortstatus": ("-shortStatus", "git status -sb"),
    "-stashes": ("-stashes", "git stash list"),
}

Runner = Callable[[str, Sequence[str]], CommandResult]


@dataclass(frozen=True)
class Action:
    command: str
    args: tuple[str, ...]

    def __str__(self) -> str:
        return self.command


@dataclass
class ActionOutcome:
    command: str
    output: str = ""
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def parse_action(token: str) -> Action:
    """Turn one action token into an Action (alias or whitespace-split command)."""
    alias = ACTION_ALIASES.get(token.strip().lower())
    command = alias[1] if alias else token.strip()
    args = tuple(command.split())
    if not args:
        raise ActionSyntaxError(f"empty action '{token}'")
    return Action(command, args)


def run_action(path: str, action: Action, runner: Runner = run_in_dir) -> str:
    """Run one action in path and return its trimmed stdout.

    Raises ActionExecutionError on a non-zero exit or a failed start.
    """
    try:
        result = runner(path, action.args)
    except OSError as exc:
        raise ActionExecutionError(f"Failed to start '{action}': {exc}") from exc
    if not result.ok:
        detail = result.stderr.strip() or result.stdout.strip()
        message = f"'{action}' exited with status {result.returncode}"
        raise ActionExecutionError(f"{message}: {detail}" if detail else message)
    return result.stdout.strip()


def run_actions(
    path: str,
    actions: Sequence[Action],
    runner: Runner = run_in_dir,
) -> list[ActionOutcome]:
    """Run actions in declared order; a failure is recorded and the next one still runs."""
    outcomes: list[ActionOutcome] = []
    for action in actions:
        try:
            output = run_action(path, action, runner)
        except ActionExecutionError as exc:
            log.debug("action %s failed in %s: %s", action, path, exc)
            outcomes.append(ActionOutcome(action.command, error=str(exc)))
        else:
            outcomes.append(ActionOutcome(action.command, output=output))
    return outcomes
