"""Tests for git repository inspection."""

import os
import tempfile

import pytest

from conftest import create_repo, make_dirty_with_stash, requires_git
from foreachgit.errors import InspectionError, RepositoryDetectionError
from foreachgit.git import GitInspector, run_in_dir

pytestmark = requires_git


def test_run_in_dir_captures_output():
    with tempfile.TemporaryDirectory() as tmp:
        result = run_in_dir(tmp, ["pwd"])
        assert result.ok
        assert os.path.realpath(result.stdout.strip()) == os.path.realpath(tmp)


def test_run_in_dir_nonzero_exit():
    with tempfile.TemporaryDirectory() as tmp:
        result = run_in_dir(tmp, ["false"])
        assert not result.ok
        assert result.returncode != 0


def test_run_in_dir_missing_command():
    with tempfile.TemporaryDirectory() as tmp:
        with pytest.raises(OSError):
            run_in_dir(tmp, ["no-such-command-xyz"])


def test_is_root_for_repository():
    with tempfile.TemporaryDirectory() as tmp:
        repo = create_repo(os.path.join(tmp, "test-repo"))
        assert GitInspector().is_root(repo) is True


def test_is_root_outside_git():
    with tempfile.TemporaryDirectory() as tmp:
        inspector = GitInspector()
        if inspector.toplevel(tmp) is not None:
            pytest.skip("temporary directory lives inside a git work tree")
        assert inspector.is_root(tmp) is False


def test_subdirectory_of_repository_is_detection_error():
    with tempfile.TemporaryDirectory() as tmp:
        repo = create_repo(os.path.join(tmp, "test-repo"))
        sub = os.path.join(repo, "pkg")
        os.makedirs(sub)
        with pytest.raises(RepositoryDetectionError, match="not the base git directory"):
            GitInspector().is_root(sub)


def test_symlinked_repository_is_root():
    with tempfile.TemporaryDirectory() as tmp:
        repo = create_repo(os.path.join(tmp, "test-repo"))
        link = os.path.join(tmp, "link")
        os.symlink(repo, link)
        assert GitInspector().is_root(link) is True


def test_missing_git_binary_is_detection_error():
    with tempfile.TemporaryDirectory() as tmp:
        with pytest.raises(RepositoryDetectionError):
            GitInspector(git="no-such-git-xyz").is_root(tmp)


def test_clean_repository():
    with tempfile.TemporaryDirectory() as tmp:
        repo = create_repo(os.path.join(tmp, "test-repo"))
        inspector = GitInspector()
        assert inspector.is_dirty(repo) is False
        assert inspector.stash_list(repo) == ""


def test_untracked_file_is_dirty():
    with tempfile.TemporaryDirectory() as tmp:
        repo = create_repo(os.path.join(tmp, "test-repo"))
        with open(os.path.join(repo, "dirty.txt"), "w") as f:
            f.write("uncommitted\n")
        assert GitInspector().is_dirty(repo) is True


def test_dirty_repository_with_stash():
    with tempfile.TemporaryDirectory() as tmp:
        repo = create_repo(os.path.join(tmp, "test-repo"))
        make_dirty_with_stash(repo)
        inspector = GitInspector()
        assert inspector.is_dirty(repo) is True
        stashes = inspector.stash_list(repo).splitlines()
        assert len(stashes) == 1
        assert stashes[0].startswith("stash@{0}")


def test_is_dirty_outside_repository_raises():
    with tempfile.TemporaryDirectory() as tmp:
        inspector = GitInspector()
        if inspector.toplevel(tmp) is not None:
            pytest.skip("temporary directory lives inside a git work tree")
        with pytest.raises(InspectionError):
            inspector.is_dirty(tmp)
