"""Worker-pool scheduler: a fixed set of threads sharing a LIFO job stack.

An alternative to the task-per-directory Walker for very wide or deep
trees: the number of threads never grows with the tree, and the
subdirectories found in one directory are pushed as a single batch.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from foreachgit.errors import ForeachGitError, VisitError
from foreachgit.filesystem import list_subdirectories
from foreachgit.walker import BaseWalker, WalkSummary

log = logging.getLogger(__name__)


class JobStack:
    """Last-in-first-out job buffer that knows when all work is finished.

    A job counts as pending from push() until the matching done(); once
    nothing is pending the stack closes and pop() returns None to every
    waiting worker.
    """

    def __init__(self) -> None:
        self._jobs: list[str] = []
        self._pending = 0
        self._closed = False
        self._cond = threading.Condition()

    def push(self, *paths: str) -> None:
        if not paths:
            return
        with self._cond:
            self._jobs.extend(paths)
            self._pending += len(paths)
            self._cond.notify(len(paths))

    def pop(self) -> Optional[str]:
        with self._cond:
            while not self._jobs and not self._closed:
                self._cond.wait()
            if not self._jobs:
                return None
            return self._jobs.pop()

    def done(self) -> None:
        with self._cond:
            self._pending -= 1
            if self._pending == 0:
                self._closed = True
                self._cond.notify_all()

    def __len__(self) -> int:
        with self._cond:
            return len(self._jobs)


class PoolWalker(BaseWalker):
    """Walks with `limit` worker threads instead of one task per directory."""

    def run(self, root: str) -> WalkSummary:
        self._reset()
        stack = JobStack()
        stack.push(root)
        workers = [
            threading.Thread(target=self._work, args=(stack,), name=f"foreachgit-{i}")
            for i in range(self.limit)
        ]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join()
        return self.summary

    def _work(self, stack: JobStack) -> None:
        while True:
            path = stack.pop()
            if path is None:
                return
            try:
                self._handle(stack, path)
            except Exception as exc:
                log.debug("unexpected error in %s", path, exc_info=True)
                self._fail(VisitError(path, exc))
            finally:
                stack.done()

    def _handle(self, stack: JobStack, path: str) -> None:
        self._enter()
        try:
            log.debug("visiting %s", path)
            if self.visitor.classify(path):
                self._report(self.visitor.process(path))
                return
        except ForeachGitError as exc:
            self._fail(exc)
            return
        finally:
            self._leave()

        try:
            subdirs = list_subdirectories(path)
        except ForeachGitError as exc:
            self._fail(exc)
            return
        stack.push(*subdirs)
