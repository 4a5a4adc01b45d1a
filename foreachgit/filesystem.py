"""Root resolution and directory enumeration."""

from __future__ import annotations

import os
import stat

from foreachgit.errors import FilesystemError


def resolve_root(root: str) -> str:
    """Return root as an absolute path, raising FilesystemError unless it is a directory."""
    root = os.path.abspath(os.path.expanduser(root))
    try:
        st = os.stat(root)
    except FileNotFoundError as exc:
        raise FilesystemError(root, f"error finding root dir - does not exist ({root})") from exc
    except OSError as exc:
        raise FilesystemError(root, f"error accessing root dir ({root}): {exc}") from exc
    if not stat.S_ISDIR(st.st_mode):
        raise FilesystemError(root, f"root dir '{root}' is not a directory")
    return root


def ensure_directory(path: str) -> None:
    """Raise FilesystemError unless path is a readable directory."""
    try:
        st = os.stat(path)
    except OSError as exc:
        raise FilesystemError(path, f"Could not read directory '{path}': {exc}") from exc
    if not stat.S_ISDIR(st.st_mode):
        raise FilesystemError(path, f"'{path}' is not a directory")


def list_subdirectories(path: str) -> list[str]:
    """Absolute paths of the immediate subdirectories of path.

    Files and symbolic links are skipped, so no directory is reachable
    twice through a link. The result is sorted for reproducible walks.
    """
    subdirs: list[str] = []
    try:
        with os.scandir(path) as entries:
            for entry in entries:
                try:
                    if entry.is_dir(follow_symlinks=False):
                        subdirs.append(entry.path)
                except OSError:
                    continue
    except OSError as exc:
        raise FilesystemError(path, f"Reading directory '{path}': {exc}") from exc
    subdirs.sort()
    return subdirs
