"""Table of directive names the parser treats as statement starters."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

KNOWN_DIRECTIVE_NAMES: frozenset[str] = frozenset(
    {
        "abort",
        "basicauth",
        "basic_auth",
        "copy_response",
        "copy_response_headers",
        "encode",
        "error",
        "file_server",
        "handle",
        "handle_errors",
        "handle_path",
        "header",
        "import",
        "invoke",
        "log",
        "map",
        "method",
        "php_fastcgi",
        "push",
        "redir",
        "request_body",
        "request_header",
        "respond",
        "reverse_proxy",
        "rewrite",
        "root",
        "route",
        "skip_log",
        "templates",
        "tls",
        "try_files",
        "uri",
        "vars",
    }
)

MATCHER_PREFIX = "@"


@dataclass(frozen=True, slots=True)
class DirectiveTable:
    """Directive names known to start a new statement.

    Tokens starting with ``@`` (named matchers) always count as directive
    names. A custom directive that is missing from the table and contains a dot
    is classified as a site address at the top level; add it here to avoid
    that.
    """

    names: frozenset[str] = KNOWN_DIRECTIVE_NAMES

    def __contains__(self, token: object) -> bool:
        if not isinstance(token, str) or not token:
            return False
        return token in self.names or token.startswith(MATCHER_PREFIX)

    def with_names(self, extra: Iterable[str]) -> DirectiveTable:
        return DirectiveTable(self.names | frozenset(extra))

    def without_names(self, removed: Iterable[str]) -> DirectiveTable:
        return DirectiveTable(self.names - frozenset(removed))


DEFAULT_DIRECTIVES = DirectiveTable()
