"""Split Caddyfile text into a flat list of tokens."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TokenKind(Enum):
    WORD = "word"
    QUOTED = "quoted"
    OPEN = "open"
    CLOSE = "close"
    COMMENT = "comment"


@dataclass(frozen=True, slots=True)
class Token:
    kind: TokenKind
    text: str
    line: int = 0

    @property
    def end_line(self) -> int:
        return self.line + self.text.count("\n")

    @property
    def is_comment(self) -> bool:
        return self.kind is TokenKind.COMMENT

    @property
    def is_brace(self) -> bool:
        return self.kind is TokenKind.OPEN or self.kind is TokenKind.CLOSE


_QUOTES = "\"'"
_WHITESPACE = " \t\r\n\f\v"


def tokenize(text: str) -> list[Token]:
    """Tokenize ``text``.

    Quoted spans keep their quote characters and may contain whitespace and
    braces; a backslash-escaped quote does not close the span. Braces outside
    quotes are always tokens of their own. ``#`` outside quotes starts a comment
    token running to the end of the line. An unterminated quote consumes the
    rest of the input. Never returns an empty token.
    """
    tokens: list[Token] = []
    current: list[str] = []
    current_line = 1
    line = 1
    pos = 0
    length = len(text)

    def flush() -> None:
        if current:
            value = "".join(current)
            kind = TokenKind.QUOTED if value[0] in _QUOTES else TokenKind.WORD
            tokens.append(Token(kind, value, current_line))
            current.clear()

    while pos < length:
        ch = text[pos]
        if ch in _QUOTES:
            if not current:
                current_line = line
            quote = ch
            current.append(ch)
            pos += 1
            while pos < length:
                ch = text[pos]
                current.append(ch)
                pos += 1
                if ch == "\n":
                    line += 1
                elif ch == "\\" and pos < length and text[pos] == quote:
                    current.append(quote)
                    pos += 1
                elif ch == quote:
                    break
            flush()
            continue
        if ch == "{" or ch == "}":
            flush()
            tokens.append(Token(TokenKind.OPEN if ch == "{" else TokenKind.CLOSE, ch, line))
        elif ch == "#":
            flush()
            end = text.find("\n", pos)
            if end == -1:
                end = length
            comment = text[pos:end].rstrip()
            tokens.append(Token(TokenKind.COMMENT, comment, line))
            pos = end
            continue
        elif ch in _WHITESPACE:
            flush()
            if ch == "\n":
                line += 1
        else:
            if not current:
                current_line = line
            current.append(ch)
        pos += 1

    flush()
    return tokens


def token_texts(tokens: list[Token]) -> list[str]:
    return [token.text for token in tokens]
