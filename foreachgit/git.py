"""Repository inspection — subprocess-based git queries run inside a directory."""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import Optional, Sequence

from foreachgit.errors import InspectionError, RepositoryDetectionError

log = logging.getLogger(__name__)

NOT_A_REPOSITORY = "not a git repository"

# git messages are localized; detection matches on the English text.
GIT_ENV = {"LC_ALL": "C"}


@dataclass(frozen=True)
class CommandResult:
    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def run_in_dir(
    directory: str,
    args: Sequence[str],
    env: Optional[dict[str, str]] = None,
    errors: str = "replace",
) -> CommandResult:
    """Run a command with directory as its working directory.

    Waits for the process to exit and returns its fully drained output.
    Raises OSError when the command cannot be started. Output that is not
    valid UTF-8 is decoded with the given error handler.
    """
    log.debug("running %s in %s", " ".join(args), directory)
    full_env = None
    if env:
        full_env = {**os.environ, **env}
    result = subprocess.run(
        list(args),
        cwd=directory,
        capture_output=True,
        text=True,
        encoding="utf-8",
        errors=errors,
        env=full_env,
    )
    return CommandResult(
        args=tuple(args),
        returncode=result.returncode,
        stdout=result.stdout,
        stderr=result.stderr,
    )


class GitInspector:
    """Answers questions about the git repository at a directory."""

    def __init__(self, git: str = "git") -> None:
        self.git = git

    def _run_git(self, directory: str, args: list[str], errors: str = "replace") -> CommandResult:
        return run_in_dir(directory, [self.git] + args, env=GIT_ENV, errors=errors)

    def run(self, directory: str, args: Sequence[str]) -> CommandResult:
        """Run an arbitrary command in directory."""
        return run_in_dir(directory, args)

    def toplevel(self, directory: str) -> Optional[str]:
        """Return the work-tree top level containing directory, or None outside git."""
        try:
            # decoded like os.scandir names so the comparison in is_root holds
            result = self._run_git(
                directory, ["rev-parse", "--show-toplevel"], errors="surrogateescape"
            )
        except OSError as exc:
            raise RepositoryDetectionError(
                directory, f"Failed to run git rev-parse in '{directory}': {exc}"
            ) from exc

        if not result.ok:
            if NOT_A_REPOSITORY in result.stderr:
                return None
            raise RepositoryDetectionError(
                directory,
                f"Failed to run git rev-parse in '{directory}': {result.stderr.strip()}",
            )
        return result.stdout.strip()

    def is_root(self, directory: str) -> bool:
        """True if directory is the top-level working directory of a repository.

        A directory inside a repository but not at its top is an error, not
        a "no": the walk never descends into repositories, so reaching one
        means the paths disagree (symlinks, aliases, a root inside a repo).
        """
        top = self.toplevel(directory)
        if top is None:
            return False
        if os.path.realpath(top) != os.path.realpath(directory):
            raise RepositoryDetectionError(
                directory,
                f"Job directory '{directory}' is not the base git directory '{top}'",
            )
        return True

    def _inspect(self, directory: str, args: list[str]) -> str:
        try:
            result = self._run_git(directory, args)
        except OSError as exc:
            raise InspectionError(f"git {args[0]} in '{directory}': {exc}") from exc
        if not result.ok:
            raise InspectionError(
                f"git {' '.join(args)} in '{directory}' exited {result.returncode}: "
                f"{result.stderr.strip()}"
            )
        return result.stdout

    def is_dirty(self, directory: str) -> bool:
        """True if the working tree has any uncommitted change (untracked included)."""
        return bool(self._inspect(directory, ["status", "--porcelain"]).strip())

    def stash_list(self, directory: str) -> str:
        return self._inspect(directory, ["stash", "list"]).strip()
