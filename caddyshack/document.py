"""In-memory model of a parsed Caddyfile."""
from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class Directive:
    """One statement: a name, its arguments and an optional nested block.

    ``block`` is ``None`` when the directive has no braces at all and a list
    (possibly empty) when it does.
    """

    name: str
    args: list[str] = field(default_factory=list)
    block: list[Directive] | None = None
    raw_line: str = ""

    @property
    def has_block(self) -> bool:
        return self.block is not None

    def find(self, name: str) -> Directive | None:
        for child in self.block or ():
            if child.name == name:
                return child
        return None


@dataclass(slots=True)
class Snippet:
    name: str
    directives: list[Directive] = field(default_factory=list)
    comments: list[str] = field(default_factory=list)


@dataclass(slots=True)
class Site:
    addresses: list[str]
    directives: list[Directive] = field(default_factory=list)
    imports: list[str] = field(default_factory=list)
    comments: list[str] = field(default_factory=list)

    @property
    def label(self) -> str:
        return ", ".join(self.addresses)


@dataclass(slots=True)
class LogConfig:
    output: str | None = None
    format: str | None = None
    level: str | None = None
    roll_size: str | None = None
    roll_keep: str | None = None

    def is_empty(self) -> bool:
        return not any((self.output, self.format, self.level, self.roll_size, self.roll_keep))


@dataclass(slots=True)
class OrderHint:
    """``order <directive> before|after <anchor>``."""

    directive: str
    anchor: str


@dataclass(slots=True)
class GlobalOptions:
    email: str | None = None
    acme_ca: str | None = None
    admin: str | None = None
    debug: bool = False
    order_before: list[OrderHint] = field(default_factory=list)
    order_after: list[OrderHint] = field(default_factory=list)
    log: LogConfig | None = None
    servers: list[Directive] = field(default_factory=list)
    # options without a dedicated field, rewritten after the known ones
    extra: list[Directive] = field(default_factory=list)
    comments: list[str] = field(default_factory=list)


@dataclass(slots=True)
class Document:
    global_options: GlobalOptions | None = None
    snippets: list[Snippet] = field(default_factory=list)
    sites: list[Site] = field(default_factory=list)

    def snippet(self, name: str) -> Snippet | None:
        return next((snippet for snippet in self.snippets if snippet.name == name), None)

    def site(self, address: str) -> Site | None:
        return next((site for site in self.sites if address in site.addresses), None)

    def unresolved_imports(self) -> list[str]:
        """Import targets used by sites that no snippet in the document defines."""
        known = {snippet.name for snippet in self.snippets}
        missing: list[str] = []
        for site in self.sites:
            for name in site.imports:
                if name not in known and name not in missing:
                    missing.append(name)
        return missing


@dataclass(slots=True)
class SkippedRange:
    """Tokens the parser could not place in the document."""

    start: int
    end: int
    line: int
    reason: str
    text: str


@dataclass(slots=True)
class ParseResult:
    document: Document
    skipped: list[SkippedRange] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.skipped
