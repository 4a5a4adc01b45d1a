"""Command-line expression parsing — predicate tokenizer, parser, and actions.

The predicate language follows ``find``::

    Expr    := SubExpr (BinOp Expr)?
    SubExpr := Flag | '-not' SubExpr | '(' Expr ')' | '(' ')'
    BinOp   := '-and' | '-or'

``-not`` binds tightest, then ``-and`` (folded to the left), then ``-or``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional, Sequence

from foreachgit.action import Action, parse_action
from foreachgit.errors import PredicateSyntaxError, UsageError
from foreachgit.filesystem import resolve_root
from foreachgit.predicate import And, Always, LeafProvider, Not, Or, Predicate

SEPARATOR = "--"
VERBOSE_FLAGS = frozenset({"--verbose", "-v"})


class TokenKind(enum.Enum):
    FLAG = "flag"
    OPEN_PAREN = "("
    CLOSE_PAREN = ")"
    AND = "-and"
    OR = "-or"
    NOT = "-not"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    flag: str = ""
    text: str = ""

    def __str__(self) -> str:
        if self.kind is TokenKind.FLAG:
            return self.flag
        return self.kind.value


@dataclass(frozen=True)
class FlagInfo:
    name: str
    description: str
    kind: TokenKind


PREDICATE_FLAGS: dict[str, FlagInfo] = {
    "-and": FlagInfo("-and", "Both surrounding predicates must be true", TokenKind.AND),
    "-or": FlagInfo("-or", "Either surrounding predicate must be true", TokenKind.OR),
    "-not": FlagInfo("-not", "Negate the following predicate", TokenKind.NOT),
    "-isdirty": FlagInfo("-isDirty", "The working tree has uncommitted changes", TokenKind.FLAG),
    "-hasstashes": FlagInfo("-hasStashes", "The repository has stash entries", TokenKind.FLAG),
    "-custom": FlagInfo("-custom", "CMD exits with status 0 in the repository", TokenKind.FLAG),
}

OPEN = Token(TokenKind.OPEN_PAREN)
CLOSE = Token(TokenKind.CLOSE_PAREN)


# ── Tokenizer ───────────────────────────────────────────────────────────


def tokenize_predicates(
    args: Sequence[str],
    index: int = 0,
    *,
    require_separator: bool = True,
) -> tuple[tuple[Token, ...], int]:
    """Tokenize predicate arguments starting at args[index].

    Stops after the ``--`` separator and returns the tokens together with
    the index of the first argument after it. Parentheses glued to an
    argument by shell quoting (``"(-isDirty)"``) become tokens of their own.
    The argument following ``-custom`` is taken verbatim as its command;
    only trailing ``)`` are split off it.
    """
    tokens: list[Token] = []
    while index < len(args):
        arg = args[index].strip(" \t").lower()
        if arg == SEPARATOR:
            return tuple(tokens), index + 1

        while arg.startswith("("):
            tokens.append(OPEN)
            arg = arg[1:]

        closing = len(arg) - len(arg.rstrip(")"))
        arg = arg.rstrip(")")

        if arg:
            info = PREDICATE_FLAGS.get(arg)
            if info is None:
                raise PredicateSyntaxError(
                    f"could not find predicate '{args[index]}' "
                    f"(did you forget to include '{SEPARATOR}' to separate predicates and actions?)"
                )
            if arg == "-custom":
                if closing:
                    raise PredicateSyntaxError(
                        "can't have end parentheses immediately after -custom; argument required"
                    )
                index += 1
                if index >= len(args):
                    raise PredicateSyntaxError("-custom requires a command argument")
                command = args[index].rstrip(")")
                closing = len(args[index]) - len(command)
                if not command:
                    raise PredicateSyntaxError(
                        "can't have end parentheses immediately after -custom; argument required"
                    )
                tokens.append(Token(TokenKind.FLAG, flag="-custom", text=command))
            else:
                tokens.append(Token(info.kind, flag=arg))

        tokens.extend([CLOSE] * closing)
        index += 1

    if require_separator:
        raise PredicateSyntaxError(
            f"missing '{SEPARATOR}' after the predicates"
        )
    return tuple(tokens), index


# ── Parser ──────────────────────────────────────────────────────────────


class Parser:
    """Recursive-descent parser over a fixed token sequence.

    Only the cursor moves; the tokens are never modified.
    """

    def __init__(self, tokens: Sequence[Token], provider: LeafProvider) -> None:
        self.tokens = tuple(tokens)
        self.position = 0
        self.provider = provider

    def parse(self) -> Predicate:
        """Parse the whole token sequence or raise PredicateSyntaxError."""
        if not self.tokens:
            return Always()
        pred = self.parse_expression()
        if not self.at_end():
            raise PredicateSyntaxError(
                f"unexpected '{self.peek()}' "
                f"(did not consume all tokens ({self.position}/{len(self.tokens)}))"
            )
        return pred

    def at_end(self) -> bool:
        return self.position == len(self.tokens)

    def peek(self) -> Optional[Token]:
        if self.at_end():
            return None
        return self.tokens[self.position]

    def advance(self) -> Token:
        token = self.tokens[self.position]
        self.position += 1
        return token

    def parse_expression(self) -> Predicate:
        left = self.parse_subexpression()
        return self.parse_binary(left)

    def parse_binary(self, left: Predicate) -> Predicate:
        """Parse the operator tail of an expression whose left operand is known.

        ``-and`` folds its right operand into ``left`` and keeps going, so
        an ``-and`` chain is complete before any ``-or`` sees it.
        """
        while True:
            token = self.peek()
            if token is None or token.kind is TokenKind.CLOSE_PAREN:
                return left
            if token.kind is TokenKind.AND:
                self.advance()
                left = And(left, self.parse_subexpression())
            elif token.kind is TokenKind.OR:
                self.advance()
                return Or(left, self.parse_expression())
            else:
                raise PredicateSyntaxError(f"unexpected '{token}', expected -and or -or")

    def parse_subexpression(self) -> Predicate:
        token = self.peek()
        if token is None:
            raise PredicateSyntaxError("unexpected end of predicate")

        if token.kind is TokenKind.FLAG:
            return self.parse_flag()
        if token.kind is TokenKind.NOT:
            self.advance()
            return Not(self.parse_subexpression())
        if token.kind is TokenKind.OPEN_PAREN:
            self.advance()
            nxt = self.peek()
            if nxt is not None and nxt.kind is TokenKind.CLOSE_PAREN:
                # `()` usually comes from shell glob expansion; accept it.
                self.advance()
                return Always()
            pred = self.parse_expression()
            if self.at_end():
                raise PredicateSyntaxError("missing close paren")
            self.advance()
            return pred

        raise PredicateSyntaxError(
            f"unexpected '{token}', was expecting a flag, '-not', or '('"
        )

    def parse_flag(self) -> Predicate:
        token = self.advance()
        if token.flag == "-isdirty":
            return self.provider.is_dirty()
        if token.flag == "-hasstashes":
            return self.provider.has_stashes()
        if token.flag == "-custom":
            return self.provider.custom(token.text)
        raise PredicateSyntaxError(f"unknown flag '{token}'")


def parse_predicates(
    args: Sequence[str],
    index: int = 0,
    provider: Optional[LeafProvider] = None,
    *,
    require_separator: bool = True,
) -> tuple[Predicate, int]:
    """Tokenize and parse predicates; return the predicate and the next index."""
    tokens, index = tokenize_predicates(args, index, require_separator=require_separator)
    parser = Parser(tokens, provider or LeafProvider())
    return parser.parse(), index


def parse_actions(args: Sequence[str], index: int = 0) -> tuple[Action, ...]:
    """Every remaining argument is one action."""
    return tuple(parse_action(arg) for arg in args[index:])


# ── Command line ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Invocation:
    root: str
    verbose: bool
    predicate: Predicate
    actions: tuple[Action, ...]


def parse_command_line(
    args: Sequence[str],
    provider: Optional[LeafProvider] = None,
) -> Invocation:
    """Parse ``<root-dir> [--verbose|-v] [predicates...] [-- actions...]``.

    Raises FilesystemError for a bad root, PredicateSyntaxError or
    ActionSyntaxError for a malformed expression.
    """
    if not args:
        raise UsageError("no arguments provided")

    root = resolve_root(args[0])
    index = 1

    verbose = index < len(args) and args[index].strip().lower() in VERBOSE_FLAGS
    if verbose:
        index += 1

    if index == len(args):
        return Invocation(root, verbose, Always(), ())

    predicate, index = parse_predicates(args, index, provider)
    actions = parse_actions(args, index)
    return Invocation(root, verbose, predicate, actions)
