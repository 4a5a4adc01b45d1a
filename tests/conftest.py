"""Shared test doubles: a marker-file inspector and a table-driven leaf provider."""

from __future__ import annotations

import io
import os
import shutil
import subprocess
import threading
import time
from dataclasses import dataclass, field

import pytest

from foreachgit.errors import InspectionError, RepositoryDetectionError
from foreachgit.git import GitInspector
from foreachgit.parsing import parse_predicates
from foreachgit.predicate import LeafProvider, Predicate
from foreachgit.report import make_console

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


class FakeInspector(GitInspector):
    """Treats a directory containing `.git` as a repository root.

    A `.dirty` file marks a dirty working tree and a `.stash` file a stash
    entry. Directory names listed in `broken` fail detection. Every root
    query is recorded, and the number of overlapping queries is tracked.
    """

    def __init__(self, delay: float = 0.0, broken: tuple[str, ...] = ()) -> None:
        super().__init__()
        self.delay = delay
        self.broken = set(broken)
        self.visited: list[str] = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def is_root(self, directory: str) -> bool:
        with self._lock:
            self.visited.append(directory)
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                time.sleep(self.delay)
            if os.path.basename(directory) in self.broken:
                raise RepositoryDetectionError(directory, f"cannot inspect '{directory}'")
            return os.path.isdir(os.path.join(directory, ".git"))
        finally:
            with self._lock:
                self.active -= 1

    def is_dirty(self, directory: str) -> bool:
        if os.path.exists(os.path.join(directory, ".broken")):
            raise InspectionError(f"git status failed in '{directory}'")
        return os.path.exists(os.path.join(directory, ".dirty"))

    def stash_list(self, directory: str) -> str:
        if os.path.exists(os.path.join(directory, ".stash")):
            return "stash@{0}: WIP on main: 0000000 test"
        return ""


@dataclass(frozen=True)
class Var(Predicate):
    """Leaf whose value comes from a shared table; records every evaluation."""

    name: str
    table: dict = field(compare=False, repr=False, hash=False)
    calls: list = field(compare=False, repr=False, hash=False)

    def evaluate(self, path: str) -> bool:
        self.calls.append(self.name)
        value = self.table[self.name]
        if isinstance(value, Exception):
            raise value
        return value

    def __str__(self) -> str:
        return self.name


class TableProvider(LeafProvider):
    """`-custom NAME` yields Var(NAME); `-isDirty` and `-hasStashes` yield Vars too."""

    def __init__(self, table: dict | None = None) -> None:
        super().__init__(FakeInspector())
        self.table = {} if table is None else table
        self.calls: list[str] = []

    def is_dirty(self) -> Predicate:
        return Var("dirty", self.table, self.calls)

    def has_stashes(self) -> Predicate:
        return Var("stashes", self.table, self.calls)

    def custom(self, command: str) -> Predicate:
        return Var(command, self.table, self.calls)


def compile_expr(expr: str, provider: LeafProvider) -> Predicate:
    """Parse a whitespace-separated predicate expression."""
    pred, _ = parse_predicates(expr.split() + ["--"], 0, provider)
    return pred


def make_tree(root: str, *paths: str) -> None:
    """Create directories under root; marker names (.dirty, .stash, .broken, README) become files."""
    for rel in paths:
        full = os.path.join(root, rel)
        if os.path.basename(rel) in (".dirty", ".stash", ".broken", "README"):
            os.makedirs(os.path.dirname(full), exist_ok=True)
            with open(full, "w") as f:
                f.write("x\n")
        else:
            os.makedirs(full, exist_ok=True)


def string_console():
    buf = io.StringIO()
    return make_console(file=buf, width=200, color_system=None), buf


def git(path: str, *args: str) -> None:
    subprocess.run(
        ["git", "-C", path, *args],
        capture_output=True,
        check=True,
    )


def create_repo(path: str) -> str:
    """Create a real git repo with one commit."""
    subprocess.run(["git", "init", path], capture_output=True, check=True)
    git(path, "config", "user.email", "test@test.com")
    git(path, "config", "user.name", "Test User")
    with open(os.path.join(path, "main.py"), "w") as f:
        f.write("print('hello world')\n")
    git(path, "add", ".")
    git(path, "commit", "-m", "Initial commit")
    return path


def make_dirty_with_stash(path: str) -> None:
    """Leave one stash entry and an uncommitted change in the repo at path."""
    with open(os.path.join(path, "main.py"), "a") as f:
        f.write("print('stashed')\n")
    git(path, "stash")
    with open(os.path.join(path, "main.py"), "a") as f:
        f.write("print('dirty')\n")


def strict_utf8_console():
    """Console writing to a UTF-8 stream that fails on unencodable text."""
    raw = io.BytesIO()
    stream = io.TextIOWrapper(raw, encoding="utf-8", errors="strict", write_through=True)
    return make_console(file=stream, width=200, color_system=None), raw


def odd_name(name: bytes) -> str:
    """A directory name as os.scandir returns it for non-UTF-8 bytes."""
    return os.fsdecode(name)
