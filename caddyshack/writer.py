"""Generate canonical Caddyfile text from a :class:`Document`."""
from __future__ import annotations

from collections import Counter
from typing import Iterable

from .document import Directive, Document, GlobalOptions, LogConfig, Site, Snippet

_NEEDS_QUOTES = (" ", "\t", "\n", "{", "}", '"', "#")


class DocumentError(ValueError):
    """Raised when a document cannot be written as a Caddyfile."""


class MissingAddressError(DocumentError):
    """Raised when a site has no addresses and would be read back as global options."""

    def __init__(self, site: Site) -> None:
        self.site = site
        names = ", ".join(directive.name for directive in site.directives) or "no directives"
        super().__init__(f"site block has no addresses ({names})")


class DuplicateNameError(DocumentError):
    """Raised when a document defines a snippet name or site address twice."""

    def __init__(self, snippets: list[str], addresses: list[str]) -> None:
        self.snippets = snippets
        self.addresses = addresses
        parts = []
        if snippets:
            parts.append("duplicate snippet names: " + ", ".join(snippets))
        if addresses:
            parts.append("duplicate site addresses: " + ", ".join(addresses))
        super().__init__("; ".join(parts))


def quote_if_needed(value: str) -> str:
    """Wrap ``value`` in double quotes when it would not survive as one token.

    Values already wrapped in matching quotes are returned unchanged.
    """
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value
    if any(ch in value for ch in _NEEDS_QUOTES):
        return '"' + value.replace('"', '\\"') + '"'
    return value


def _scalar(value: str) -> str:
    if "{" not in value and "}" not in value:
        return value
    return " ".join(quote_if_needed(part) if ("{" in part or "}" in part) else part for part in value.split())


def ensure_unique_names(document: Document) -> None:
    """Reject documents that reuse a snippet name or a site address."""
    snippet_counts = Counter(snippet.name for snippet in document.snippets)
    address_counts = Counter(address for site in document.sites for address in site.addresses)
    snippets = [name for name, count in snippet_counts.items() if count > 1]
    addresses = [address for address, count in address_counts.items() if count > 1]
    if snippets or addresses:
        raise DuplicateNameError(snippets, addresses)


class Writer:
    """Serialise documents with one statement per line and tab indentation."""

    def __init__(self, indent: str = "\t") -> None:
        self.indent = indent

    def write_directive(self, directive: Directive, depth: int = 1) -> str:
        lines: list[str] = []
        self._directive_lines(lines, directive, depth)
        return "".join(lines)

    def write_site(self, site: Site) -> str:
        if not any(address.strip() for address in site.addresses):
            raise MissingAddressError(site)
        header = " ".join(quote_if_needed(address) for address in site.addresses)
        return self._block(header, site.directives)

    def write_sites(self, sites: Iterable[Site]) -> str:
        return "\n".join(self.write_site(site) for site in sites)

    def write_snippet(self, snippet: Snippet) -> str:
        return self._block(f"({snippet.name})", snippet.directives)

    def write_snippets(self, snippets: Iterable[Snippet]) -> str:
        return "\n".join(self.write_snippet(snippet) for snippet in snippets)

    def write_global_options(self, options: GlobalOptions | None) -> str:
        if options is None:
            return ""
        lines = ["{\n"]
        indent = self.indent
        if options.email:
            lines.append(f"{indent}email {_scalar(options.email)}\n")
        if options.acme_ca:
            lines.append(f"{indent}acme_ca {_scalar(options.acme_ca)}\n")
        if options.admin:
            lines.append(f"{indent}admin {_scalar(options.admin)}\n")
        if options.debug:
            lines.append(f"{indent}debug\n")
        for hint in options.order_before:
            lines.append(f"{indent}order {hint.directive} before {hint.anchor}\n")
        for hint in options.order_after:
            lines.append(f"{indent}order {hint.directive} after {hint.anchor}\n")
        if options.log is not None and not options.log.is_empty():
            self._log_lines(lines, options.log)
        if options.servers:
            lines.append(f"{indent}servers {{\n")
            for directive in options.servers:
                self._directive_lines(lines, directive, 2)
            lines.append(f"{indent}}}\n")
        for directive in options.extra:
            self._directive_lines(lines, directive, 1)
        lines.append("}\n")
        return "".join(lines)

    def write_document(self, document: Document | None) -> str:
        """Global options, then snippets, then sites, one blank line between groups."""
        if document is None:
            return ""
        groups = [
            self.write_global_options(document.global_options),
            self.write_snippets(document.snippets),
            self.write_sites(document.sites),
        ]
        return "\n".join(group for group in groups if group)

    def _block(self, header: str, directives: list[Directive]) -> str:
        lines = [f"{header} {{\n"]
        for directive in directives:
            self._directive_lines(lines, directive, 1)
        lines.append("}\n")
        return "".join(lines)

    def _directive_lines(self, lines: list[str], directive: Directive, depth: int) -> None:
        indent = self.indent * depth
        parts = [quote_if_needed(directive.name), *(quote_if_needed(arg) for arg in directive.args)]
        head = " ".join(part for part in parts if part)
        if directive.block is None:
            lines.append(f"{indent}{head}\n")
            return
        lines.append(f"{indent}{head} {{\n")
        for child in directive.block:
            self._directive_lines(lines, child, depth + 1)
        lines.append(f"{indent}}}\n")

    def _log_lines(self, lines: list[str], config: LogConfig) -> None:
        indent = self.indent
        inner = indent * 2
        innermost = indent * 3
        lines.append(f"{indent}log {{\n")
        if config.output:
            if config.roll_size or config.roll_keep:
                lines.append(f"{inner}output {_scalar(config.output)} {{\n")
                if config.roll_size:
                    lines.append(f"{innermost}roll_size {config.roll_size}\n")
                if config.roll_keep:
                    lines.append(f"{innermost}roll_keep {config.roll_keep}\n")
                lines.append(f"{inner}}}\n")
            else:
                lines.append(f"{inner}output {_scalar(config.output)}\n")
        if config.format:
            lines.append(f"{inner}format {_scalar(config.format)}\n")
        if config.level:
            lines.append(f"{inner}level {_scalar(config.level)}\n")
        lines.append(f"{indent}}}\n")


def write_document(document: Document | None, *, indent: str = "\t") -> str:
    return Writer(indent=indent).write_document(document)
