"""foreach-git-dir — run commands in every git repository matching a predicate."""

__version__ = "0.1.0"
