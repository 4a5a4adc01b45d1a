"""Repo discovery — concurrent walk that finds repository roots and acts on them.

Each directory visit is one asyncio task. A visit holds one permit of a
global semaphore while it classifies the directory and, for a repository
root, evaluates the predicate and runs the actions. A directory that is not
a root gives its permit back *before* listing and fanning out to its
children, otherwise a directory with more children than free permits would
wait on itself forever.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from foreachgit.action import Action, ActionOutcome, run_actions
from foreachgit.errors import ForeachGitError, PredicateError, VisitError
from foreachgit.filesystem import ensure_directory, list_subdirectories
from foreachgit.git import GitInspector
from foreachgit.predicate import Always, Predicate

log = logging.getLogger(__name__)

DEFAULT_JOBS = 16


@dataclass
class RepositoryResult:
    root: str
    matched: bool
    outputs: list[ActionOutcome] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class WalkSummary:
    results: list[RepositoryResult] = field(default_factory=list)
    errors: list[ForeachGitError] = field(default_factory=list)
    peak: int = 0                   # most directory visits in flight at once

    @property
    def matched(self) -> list[RepositoryResult]:
        return [r for r in self.results if r.matched]


class Visitor:
    """What happens to one directory, independent of how visits are scheduled."""

    def __init__(
        self,
        inspector: GitInspector,
        predicate: Predicate,
        actions: Sequence[Action] = (),
    ) -> None:
        self.inspector = inspector
        self.predicate = predicate
        self.actions = tuple(actions)

    def classify(self, path: str) -> bool:
        """True if path is a repository root.

        Raises FilesystemError or RepositoryDetectionError.
        """
        ensure_directory(path)
        return self.inspector.is_root(path)

    def process(self, path: str) -> RepositoryResult:
        """Evaluate the predicate on a repository root and run actions on a match."""
        try:
            matched = self.predicate.evaluate(path)
        except PredicateError as exc:
            return RepositoryResult(
                path,
                matched=False,
                error=f"Could not evaluate predicate for repository '{path}': {exc}",
            )
        outputs: list[ActionOutcome] = []
        if matched:
            outputs = run_actions(path, self.actions, self.inspector.run)
        return RepositoryResult(path, matched, outputs)


class BaseWalker:
    """Result collection shared by the schedulers.

    Callbacks run on a worker thread, one at a time, and never while the
    bookkeeping lock is held. A callback that raises is logged and the
    walk goes on.
    """

    def __init__(
        self,
        inspector: GitInspector,
        predicate: Optional[Predicate] = None,
        actions: Sequence[Action] = (),
        *,
        limit: int = DEFAULT_JOBS,
        on_result: Optional[Callable[[RepositoryResult], None]] = None,
        on_error: Optional[Callable[[ForeachGitError], None]] = None,
    ) -> None:
        if limit < 1:
            raise ValueError(f"concurrency limit must be at least 1, got {limit}")
        self.visitor = Visitor(inspector, predicate or Always(), actions)
        self.limit = limit
        self.on_result = on_result
        self.on_error = on_error
        self._lock = threading.Lock()
        self._callback_lock = threading.Lock()
        self._in_flight = 0
        self.summary = WalkSummary()

    def _reset(self) -> None:
        self._in_flight = 0
        self.summary = WalkSummary()

    def _enter(self) -> None:
        with self._lock:
            self._in_flight += 1
            self.summary.peak = max(self.summary.peak, self._in_flight)

    def _leave(self) -> None:
        with self._lock:
            self._in_flight -= 1

    def _report(self, result: RepositoryResult) -> None:
        with self._lock:
            self.summary.results.append(result)
        self._notify(self.on_result, result)

    def _fail(self, error: ForeachGitError) -> None:
        log.debug("branch stopped: %s", error)
        with self._lock:
            self.summary.errors.append(error)
        self._notify(self.on_error, error)

    def _notify(self, callback, item) -> None:
        if callback is None:
            return
        with self._callback_lock:
            try:
                callback(item)
            except Exception:
                log.exception("could not report %r", item)


class Walker(BaseWalker):
    """Task-per-directory walker with fan-out/fan-in at every level."""

    async def walk(self, root: str) -> WalkSummary:
        self._reset()
        self._permits = asyncio.Semaphore(self.limit)
        with ThreadPoolExecutor(max_workers=self.limit, thread_name_prefix="foreachgit") as executor:
            self._executor = executor
            await self._visit(root)
        return self.summary

    def run(self, root: str) -> WalkSummary:
        """Walk root to completion from synchronous code."""
        return asyncio.run(self.walk(root))

    async def _offload(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func, *args)

    async def _visit(self, path: str) -> None:
        try:
            subdirs = await self._expand(path)
        except ForeachGitError as exc:
            await self._offload(self._fail, exc)
            return
        except Exception as exc:
            log.debug("unexpected error in %s", path, exc_info=True)
            await self._offload(self._fail, VisitError(path, exc))
            return

        if subdirs:
            async with asyncio.TaskGroup() as group:
                for subdir in subdirs:
                    group.create_task(self._visit(subdir))

    async def _expand(self, path: str) -> list[str]:
        """Visit path and return the subdirectories still to walk."""
        async with self._permits:
            self._enter()
            try:
                log.debug("visiting %s", path)
                if await self._offload(self.visitor.classify, path):
                    result = await self._offload(self.visitor.process, path)
                    await self._offload(self._report, result)
                    return []
            finally:
                self._leave()

        return await self._offload(list_subdirectories, path)
