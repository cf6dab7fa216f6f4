"""Structural parser that recovers global options, snippets and sites."""
from __future__ import annotations

from dataclasses import dataclass

from .classifier import BlockKind, Classifier, TopLevelSpan, block_range
from .directives import DEFAULT_DIRECTIVES, DirectiveTable
from .document import (
    Directive,
    Document,
    GlobalOptions,
    LogConfig,
    OrderHint,
    ParseResult,
    Site,
    SkippedRange,
    Snippet,
)
from .logging import get_logger
from .tokenizer import Token, TokenKind, tokenize

logger = get_logger("parser")

_LOG_FIELDS = {"output", "format", "level"}
_ROLL_FIELDS = {"roll_size", "roll_keep"}
_NO_DIRECTIVES = DirectiveTable(frozenset())


@dataclass(slots=True)
class ParsedBlock:
    directives: list[Directive]
    imports: list[str]
    next_index: int


def parse_directives(
    tokens: list[Token],
    directives: DirectiveTable = DEFAULT_DIRECTIVES,
    *,
    depth: int = 1,
    split_lines: bool = True,
) -> tuple[list[Directive], list[str]]:
    """Parse the tokens of one block body into directives.

    A statement ends at a brace, a comment, a line break (when ``split_lines``)
    or a known directive name once the current statement has an argument.
    ``import`` targets are returned separately as well as kept as directives.
    """
    parsed: list[Directive] = []
    imports: list[str] = []
    index = 0
    count = len(tokens)

    while index < count:
        token = tokens[index]
        if token.is_brace or token.is_comment:
            index += 1
            continue

        directive = Directive(name=token.text, args=[], raw_line=token.text)
        last_line = token.end_line
        index += 1

        while index < count:
            current = tokens[index]
            if current.is_brace or current.is_comment:
                break
            if split_lines and current.line > last_line:
                break
            if directive.args and current.text in directives:
                break
            directive.args.append(current.text)
            directive.raw_line += " " + current.text
            last_line = current.end_line
            index += 1

        if index < count and tokens[index].kind is TokenKind.OPEN:
            body_end, next_index = block_range(tokens, index + 1, depth + 1)
            directive.block, _ = parse_directives(
                tokens[index + 1 : body_end],
                directives,
                depth=depth + 1,
                split_lines=split_lines,
            )
            index = next_index

        if directive.name == "import" and directive.args:
            imports.append(directive.args[0])
        parsed.append(directive)

    return parsed, imports


def parse_block(
    tokens: list[Token],
    start: int,
    depth: int = 1,
    directives: DirectiveTable = DEFAULT_DIRECTIVES,
    *,
    split_lines: bool = True,
) -> ParsedBlock:
    """Parse the block whose body starts at ``start`` (just after its ``{``)."""
    body_end, next_index = block_range(tokens, start, depth)
    parsed, imports = parse_directives(tokens[start:body_end], directives, depth=depth, split_lines=split_lines)
    return ParsedBlock(directives=parsed, imports=imports, next_index=next_index)


class CaddyfileParser:
    """Parse Caddyfile text into a :class:`Document`.

    Each ``parse_*`` method is an independent scan over the whole token list
    that jumps over the block kinds it does not care about. Nothing raises on
    malformed input: tokens that cannot be placed are reported through
    :meth:`parse` as skipped ranges.
    """

    def __init__(
        self,
        text: str,
        *,
        directives: DirectiveTable = DEFAULT_DIRECTIVES,
        split_lines: bool = True,
    ) -> None:
        self.text = text
        self.directives = directives
        self.split_lines = split_lines
        self.classifier = Classifier(directives)
        self.tokens = tokenize(text)

    def parse_global_options(self) -> GlobalOptions | None:
        for span in self._spans(BlockKind.GLOBAL):
            return self._global_options_from(span)
        return None

    def parse_snippets(self) -> list[Snippet]:
        snippets: list[Snippet] = []
        for span in self._spans(BlockKind.SNIPPET):
            body = self._parse_body(span)
            snippets.append(Snippet(name=span.labels[0], directives=body.directives, comments=span.comments))
        return snippets

    def parse_sites(self) -> list[Site]:
        sites: list[Site] = []
        for span in self._spans(BlockKind.SITE):
            if not span.labels:
                continue
            body = self._parse_body(span)
            sites.append(
                Site(
                    addresses=list(span.labels),
                    directives=body.directives,
                    imports=body.imports,
                    comments=span.comments,
                )
            )
        return sites

    def parse_all(self) -> Document:
        return Document(
            global_options=self.parse_global_options(),
            snippets=self.parse_snippets(),
            sites=self.parse_sites(),
        )

    def parse(self) -> ParseResult:
        """Parse everything and report the token ranges that were dropped."""
        document = self.parse_all()
        skipped: list[SkippedRange] = []
        seen_global = False
        for span in self.classifier.scan(self.tokens):
            if span.kind is BlockKind.GLOBAL:
                if seen_global:
                    skipped.append(self._skipped(span, "additional global options block"))
                seen_global = True
            elif span.kind is BlockKind.NONE:
                skipped.append(self._skipped(span, span.reason or "unrecognised tokens"))
        if skipped:
            logger.debug("Parse skipped %d token range(s)", len(skipped))
        return ParseResult(document=document, skipped=skipped)

    def _spans(self, kind: BlockKind) -> list[TopLevelSpan]:
        return [span for span in self.classifier.scan(self.tokens) if span.kind is kind]

    def _parse_body(self, span: TopLevelSpan) -> ParsedBlock:
        assert span.open_index is not None
        return parse_block(self.tokens, span.open_index + 1, 1, self.directives, split_lines=self.split_lines)

    def _skipped(self, span: TopLevelSpan, reason: str) -> SkippedRange:
        chunk = self.tokens[span.start : span.end]
        line = chunk[0].line if chunk else 0
        return SkippedRange(
            start=span.start,
            end=span.end,
            line=line,
            reason=reason,
            text=" ".join(token.text for token in chunk),
        )

    def _global_options_from(self, span: TopLevelSpan) -> GlobalOptions:
        # Option values may name directives (`order x before basicauth`).
        table = _NO_DIRECTIVES if self.split_lines else self.directives
        assert span.open_index is not None
        body = parse_block(self.tokens, span.open_index + 1, 1, table, split_lines=self.split_lines)
        options = GlobalOptions(comments=span.comments)
        for directive in body.directives:
            _apply_global_option(options, directive)
        return options


def _apply_global_option(options: GlobalOptions, directive: Directive) -> None:
    name = directive.name
    value = " ".join(directive.args)
    if directive.block is None and name == "email" and value and options.email is None:
        options.email = value
    elif directive.block is None and name == "acme_ca" and value and options.acme_ca is None:
        options.acme_ca = value
    elif directive.block is None and name == "admin" and value and options.admin is None:
        options.admin = value
    elif directive.block is None and name == "debug" and not directive.args:
        options.debug = True
    elif name == "order" and directive.block is None and len(directive.args) == 3 and directive.args[1] in ("before", "after"):
        hint = OrderHint(directive=directive.args[0], anchor=directive.args[2])
        if directive.args[1] == "before":
            options.order_before.append(hint)
        else:
            options.order_after.append(hint)
    elif name == "log" and not directive.args and options.log is None and _is_simple_log(directive):
        options.log = _log_config_from(directive)
    elif name == "servers" and not directive.args and directive.block is not None and not options.servers:
        options.servers = list(directive.block)
    else:
        options.extra.append(directive)


def _is_simple_log(directive: Directive) -> bool:
    if not directive.block:
        return False
    names = [child.name for child in directive.block]
    if len(names) != len(set(names)) or not set(names) <= _LOG_FIELDS:
        return False
    for child in directive.block:
        if not child.args:
            return False
        if child.block is None:
            continue
        if child.name != "output":
            return False
        rolls = [roll.name for roll in child.block]
        if len(rolls) != len(set(rolls)) or not set(rolls) <= _ROLL_FIELDS:
            return False
        if any(roll.block is not None or len(roll.args) != 1 for roll in child.block):
            return False
    return True


def _log_config_from(directive: Directive) -> LogConfig:
    config = LogConfig()
    for child in directive.block or ():
        value = " ".join(child.args)
        if child.name == "output":
            config.output = value
            for roll in child.block or ():
                if roll.name == "roll_size":
                    config.roll_size = roll.args[0]
                elif roll.name == "roll_keep":
                    config.roll_keep = roll.args[0]
        elif child.name == "format":
            config.format = value
        elif child.name == "level":
            config.level = value
    return config


def parse_caddyfile_text(text: str, *, directives: DirectiveTable = DEFAULT_DIRECTIVES) -> Document:
    """Parse ``text`` into a document, silently dropping unplaceable tokens."""
    return CaddyfileParser(text, directives=directives).parse_all()


def parse_caddyfile(text: str, *, directives: DirectiveTable = DEFAULT_DIRECTIVES) -> ParseResult:
    """Parse ``text`` and return the document with the skipped token ranges."""
    return CaddyfileParser(text, directives=directives).parse()
