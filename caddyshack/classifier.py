"""Classify top-level positions of a token stream.

A single forward pass tracks whether a site address or snippet name has been
seen since the last top-level block closed. A lone ``{`` is the global options
block only when nothing of the sort is pending.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import re

from .directives import DEFAULT_DIRECTIVES, MATCHER_PREFIX, DirectiveTable
from .logging import get_logger
from .tokenizer import Token, TokenKind

logger = get_logger("classifier")

_SNIPPET_NAME = re.compile(r"^\(([^()\s]+)\)$")


class BlockKind(Enum):
    GLOBAL = "global"
    SNIPPET = "snippet"
    SITE = "site"
    NONE = "none"


@dataclass(slots=True)
class TopLevelSpan:
    """A top-level construct found by :meth:`Classifier.scan`.

    ``start``/``end`` are token indices (``end`` exclusive). ``open_index`` is the
    index of the block's ``{``; ``None`` for stray tokens.
    """

    kind: BlockKind
    start: int
    end: int
    open_index: int | None = None
    labels: list[str] = field(default_factory=list)
    comments: list[str] = field(default_factory=list)
    reason: str | None = None
    body_end: int | None = None

    @property
    def body(self) -> tuple[int, int]:
        """Token range strictly inside the braces."""
        if self.open_index is None or self.body_end is None:
            return self.end, self.end
        return self.open_index + 1, self.body_end


def block_range(tokens: list[Token], start: int, depth: int = 1) -> tuple[int, int]:
    """Find the end of the block whose body begins at ``start``.

    ``start`` is the index just after an opening ``{`` and ``depth`` the nesting
    level that brace opened. Returns ``(body_end, next_index)``: the body is
    ``tokens[start:body_end]`` and ``next_index`` follows the matching ``}``.
    An unbalanced block runs to the end of the tokens.
    """
    target = depth - 1
    index = start
    while index < len(tokens):
        kind = tokens[index].kind
        if kind is TokenKind.OPEN:
            depth += 1
        elif kind is TokenKind.CLOSE:
            depth -= 1
            if depth == target:
                return index, index + 1
        index += 1
    return len(tokens), len(tokens)


class Classifier:
    """Decide what a top-level token starts."""

    def __init__(self, directives: DirectiveTable = DEFAULT_DIRECTIVES) -> None:
        self.directives = directives

    def is_directive_name(self, text: str) -> bool:
        return text in self.directives

    def is_snippet_name(self, text: str) -> bool:
        return _SNIPPET_NAME.match(text) is not None

    def is_site_address(self, text: str) -> bool:
        value = text.rstrip(",")
        if not value or value in ("{", "}"):
            return False
        if value.startswith(("#", "(", MATCHER_PREFIX)):
            return False
        if value in self.directives.names:
            return False
        return (
            "." in value
            or value.startswith(":")
            or value.startswith(("http://", "https://"))
            or value == "localhost"
            or value.startswith("localhost:")
        )

    def scan(self, tokens: list[Token]) -> list[TopLevelSpan]:
        """Walk the top level once and return every construct in order."""
        spans: list[TopLevelSpan] = []
        comments: list[str] = []
        marker_pending = False
        index = 0
        count = len(tokens)

        while index < count:
            token = tokens[index]
            if token.kind is TokenKind.COMMENT:
                comments.append(token.text)
                index += 1
                continue

            if token.kind is TokenKind.OPEN:
                body_end, end = block_range(tokens, index + 1)
                if marker_pending:
                    span = TopLevelSpan(BlockKind.NONE, index, end, open_index=index, reason="block without a usable header")
                else:
                    span = TopLevelSpan(BlockKind.GLOBAL, index, end, open_index=index, comments=comments, body_end=body_end)
                spans.append(span)
                comments = []
                marker_pending = False
                index = end
                continue

            if token.kind is TokenKind.CLOSE:
                spans.append(TopLevelSpan(BlockKind.NONE, index, index + 1, reason="unmatched closing brace"))
                marker_pending = False
                index += 1
                continue

            if self.is_snippet_name(token.text):
                open_index = self._next_significant(tokens, index + 1)
                if open_index < count and tokens[open_index].kind is TokenKind.OPEN:
                    body_end, end = block_range(tokens, open_index + 1)
                    name = token.text[1:-1]
                    spans.append(TopLevelSpan(BlockKind.SNIPPET, index, end, open_index, [name], comments, body_end=body_end))
                    comments = []
                    marker_pending = False
                    index = end
                    continue
                spans.append(TopLevelSpan(BlockKind.NONE, index, index + 1, reason="snippet name without a block"))
                marker_pending = True
                index += 1
                continue

            if self.is_site_address(token.text):
                labels, cursor = self._collect_addresses(tokens, index)
                if cursor < count and tokens[cursor].kind is TokenKind.OPEN:
                    body_end, end = block_range(tokens, cursor + 1)
                    spans.append(TopLevelSpan(BlockKind.SITE, index, end, cursor, labels, comments, body_end=body_end))
                    comments = []
                    marker_pending = False
                    index = end
                    continue
                spans.append(TopLevelSpan(BlockKind.NONE, index, cursor, labels=labels, reason="site address without a block"))
                marker_pending = True
                index = cursor
                continue

            spans.append(TopLevelSpan(BlockKind.NONE, index, index + 1, reason="unrecognised top-level token"))
            index += 1

        for span in spans:
            if span.kind is BlockKind.NONE:
                logger.debug("Skipping tokens %d-%d: %s", span.start, span.end, span.reason)
        return spans

    def classify(self, tokens: list[Token], index: int) -> BlockKind:
        """Return what the token at ``index`` starts.

        Positions that do not begin a global options block, snippet or site
        block (including positions inside blocks) are ``BlockKind.NONE``.
        """
        for span in self.scan(tokens):
            if span.start == index:
                return span.kind
            if span.start > index:
                break
        return BlockKind.NONE

    def _collect_addresses(self, tokens: list[Token], index: int) -> tuple[list[str], int]:
        labels: list[str] = []
        count = len(tokens)
        while index < count and tokens[index].kind is not TokenKind.OPEN:
            token = tokens[index]
            if token.kind is TokenKind.COMMENT or token.text == ",":
                index += 1
                continue
            if not self.is_site_address(token.text):
                break
            labels.append(token.text.rstrip(","))
            index += 1
        return labels, index

    @staticmethod
    def _next_significant(tokens: list[Token], index: int) -> int:
        while index < len(tokens) and tokens[index].kind is TokenKind.COMMENT:
            index += 1
        return index
