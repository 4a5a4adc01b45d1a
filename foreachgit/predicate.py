"""Composable boolean tests over a repository path.

A predicate answers ``evaluate(path) -> bool`` and raises PredicateError
when it cannot answer. Combinators short-circuit the same way the shell's
``find`` does, and an error is never turned into an answer: a failed
``-not x`` is still a failure.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from foreachgit.errors import PredicateError
from foreachgit.git import GitInspector

SHELL = "/bin/sh"
SHELL_FAILURES = (126, 127)


class Predicate:
    """Base class for every predicate variant."""

    def evaluate(self, path: str) -> bool:
        raise NotImplementedError


@dataclass(frozen=True)
class Always(Predicate):
    """Identity predicate: matches every repository."""

    def evaluate(self, path: str) -> bool:
        return True

    def __str__(self) -> str:
        return "()"


# ── Leaves ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class IsDirty(Predicate):
    inspector: GitInspector = field(compare=False, repr=False)

    def evaluate(self, path: str) -> bool:
        return self.inspector.is_dirty(path)

    def __str__(self) -> str:
        return "-isDirty"


@dataclass(frozen=True)
class HasStashes(Predicate):
    inspector: GitInspector = field(compare=False, repr=False)

    def evaluate(self, path: str) -> bool:
        return bool(self.inspector.stash_list(path))

    def __str__(self) -> str:
        return "-hasStashes"


@dataclass(frozen=True)
class Custom(Predicate):
    """Runs a shell command in the repository; exit status zero means true.

    The shell's "cannot execute" and "not found" statuses are errors, not
    a false answer.
    """

    command: str
    inspector: GitInspector = field(compare=False, repr=False)

    def evaluate(self, path: str) -> bool:
        if not self.command.strip():
            raise PredicateError(f"-custom: empty command for '{path}'")
        try:
            result = self.inspector.run(path, [SHELL, "-c", self.command])
        except OSError as exc:
            raise PredicateError(f"-custom '{self.command}' in '{path}': {exc}") from exc
        if result.returncode in SHELL_FAILURES:
            raise PredicateError(
                f"-custom '{self.command}' in '{path}' exited {result.returncode}: "
                f"{result.stderr.strip()}"
            )
        return result.ok

    def __str__(self) -> str:
        return f"-custom {self.command!r}"


# ── Combinators ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class And(Predicate):
    left: Predicate
    right: Predicate

    def evaluate(self, path: str) -> bool:
        return self.left.evaluate(path) and self.right.evaluate(path)

    def __str__(self) -> str:
        return f"({self.left} -and {self.right})"


@dataclass(frozen=True)
class Or(Predicate):
    left: Predicate
    right: Predicate

    def evaluate(self, path: str) -> bool:
        return self.left.evaluate(path) or self.right.evaluate(path)

    def __str__(self) -> str:
        return f"({self.left} -or {self.right})"


@dataclass(frozen=True)
class Not(Predicate):
    operand: Predicate

    def evaluate(self, path: str) -> bool:
        return not self.operand.evaluate(path)

    def __str__(self) -> str:
        return f"-not {self.operand}"


class LeafProvider:
    """Builds the leaf predicates the parser asks for.

    The parser never constructs leaves itself, so a different provider can
    hand out stand-ins that never touch git.
    """

    def __init__(self, inspector: GitInspector | None = None) -> None:
        self.inspector = inspector or GitInspector()

    def is_dirty(self) -> Predicate:
        return IsDirty(self.inspector)

    def has_stashes(self) -> Predicate:
        return HasStashes(self.inspector)

    def custom(self, command: str) -> Predicate:
        return Custom(command, self.inspector)
