"""Exception taxonomy for foreach-git-dir."""

from __future__ import annotations


class ForeachGitError(Exception):
    """Base class for every error raised by foreachgit."""


# ── Startup errors (fatal, reported once) ───────────────────────────────


class UsageError(ForeachGitError):
    """The command line could not be understood."""


class PredicateSyntaxError(UsageError):
    """Malformed predicate token stream."""


class ActionSyntaxError(UsageError):
    """Malformed action token."""


# ── Per-directory errors (halt only one branch of the walk) ─────────────


class FilesystemError(ForeachGitError):
    """A directory is missing, unreadable, or not a directory."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(message)
        self.path = path


class RepositoryDetectionError(ForeachGitError):
    """Asking git whether a directory is a repository root failed."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(message)
        self.path = path


class VisitError(ForeachGitError):
    """Anything else that went wrong while visiting one directory."""

    def __init__(self, path: str, cause: BaseException) -> None:
        super().__init__(f"Unexpected error visiting '{path}': {cause!r}")
        self.path = path
        self.cause = cause


# ── Per-repository errors ───────────────────────────────────────────────


class PredicateError(ForeachGitError):
    """A predicate could not be evaluated against a repository."""


class InspectionError(PredicateError):
    """A git inspection command failed."""


class ActionExecutionError(ForeachGitError):
    """An action exited non-zero or could not be started."""
