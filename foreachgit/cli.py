"""CLI entry point for foreach-git-dir."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Optional, Sequence

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from foreachgit import __version__
from foreachgit.action import ACTION_ALIASES
from foreachgit.errors import FilesystemError, UsageError
from foreachgit.git import GitInspector
from foreachgit.parsing import PREDICATE_FLAGS, SEPARATOR, parse_command_line
from foreachgit.pool import PoolWalker
from foreachgit.predicate import LeafProvider
from foreachgit.report import Reporter, make_console, printable
from foreachgit.walker import DEFAULT_JOBS, Walker

JOBS_ENV = "FOREACH_GIT_JOBS"
SCHEDULERS = {"tasks": Walker, "pool": PoolWalker}

EXIT_OK = 0
EXIT_BAD_ROOT = 1
EXIT_USAGE = 2


def positive_int(value: str) -> int:
    """argparse type: an integer >= 1."""
    try:
        num = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"must be an integer: {value}")
    if num < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer: {value}")
    return num


def default_jobs() -> int:
    """Concurrency limit from the environment, falling back to DEFAULT_JOBS."""
    raw = os.environ.get(JOBS_ENV)
    if not raw:
        return DEFAULT_JOBS
    try:
        return positive_int(raw)
    except argparse.ArgumentTypeError:
        logging.getLogger(__name__).warning(
            "ignoring %s=%r: not a positive integer", JOBS_ENV, raw
        )
        return DEFAULT_JOBS


OPTIONS_WITH_VALUE = ("-j", "--jobs", "--scheduler")


def split_command_line(argv: Sequence[str]) -> tuple[list[str], list[str]]:
    """Split argv after the root directory.

    The options and the root go to argparse; everything after the root is
    the find-style expression and is passed on untouched, `--` included.
    """
    argv = list(argv)
    i = 0
    while i < len(argv):
        arg = argv[i]
        if arg == SEPARATOR:
            return argv[: i + 2], argv[i + 2 :]
        if arg in OPTIONS_WITH_VALUE:
            i += 2
        elif arg.startswith("-") and arg != "-":
            i += 1
        else:
            return argv[: i + 1], argv[i + 1 :]
    return argv, []


def _epilog() -> str:
    lines = ["predicates:"]
    for info in PREDICATE_FLAGS.values():
        name = f"{info.name} CMD" if info.name == "-custom" else info.name
        lines.append(f"  {name:<14} {info.description}")
    lines.append("")
    lines.append("actions (after '--'; any other token is run as a command):")
    for name, command in ACTION_ALIASES.values():
        lines.append(f"  {name:<14} {command}")
    lines.append("")
    lines.append("examples:")
    lines.append(f"  %(prog)s ~/code -isDirty {SEPARATOR}")
    lines.append(f"  %(prog)s ~/code -v -not -isDirty -or -hasStashes {SEPARATOR} -shortStatus")
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="foreach-git-dir",
        usage=f"%(prog)s [options] root-dir [-v] [PREDICATE...] [{SEPARATOR} ACTION...]",
        description="Find every git repository under a directory and run commands in the ones matching a predicate.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=_epilog(),
        allow_abbrev=False,
    )
    parser.add_argument(
        "-j", "--jobs",
        type=positive_int,
        default=None,
        metavar="N",
        help=f"Directories visited concurrently (default: ${JOBS_ENV} or {DEFAULT_JOBS})",
    )
    parser.add_argument(
        "--scheduler",
        choices=sorted(SCHEDULERS),
        default="tasks",
        help="tasks: one task per directory; pool: fixed worker threads (default: tasks)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="With actions, also list repositories that did not match",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Log every visit and subprocess to stderr",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"foreach-git-dir {__version__}",
    )
    parser.add_argument(
        "root",
        metavar="root-dir",
        help="Directory to search for git repositories",
    )
    return parser


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def main(argv: Optional[Sequence[str]] = None, console: Optional[Console] = None) -> int:
    """Entry point for the foreach-git-dir CLI."""
    head, expression = split_command_line(sys.argv[1:] if argv is None else argv)
    args = build_parser().parse_args(head)
    configure_logging(args.debug)
    errors = Console(stderr=True, highlight=False)

    inspector = GitInspector()
    try:
        invocation = parse_command_line(
            [args.root, *expression], LeafProvider(inspector)
        )
    except FilesystemError as exc:
        errors.print(f"[bold red]Error:[/bold red] {escape(printable(str(exc)))}")
        return EXIT_BAD_ROOT
    except UsageError as exc:
        errors.print(f"[bold red]Error:[/bold red] {escape(printable(str(exc)))}")
        return EXIT_USAGE

    reporter = Reporter(
        console or make_console(),
        verbose=args.verbose or invocation.verbose,
        show_actions=bool(invocation.actions),
    )
    walker_cls = SCHEDULERS[args.scheduler]
    walker = walker_cls(
        inspector,
        invocation.predicate,
        invocation.actions,
        limit=args.jobs or default_jobs(),
        on_result=reporter.report,
        on_error=reporter.error,
    )
    logging.getLogger(__name__).debug(
        "walking %s with predicate %s", invocation.root, invocation.predicate
    )
    walker.run(invocation.root)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
