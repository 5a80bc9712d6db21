"""Tokenizing SQL text and splitting it into top-level statements."""

from __future__ import annotations

import re
import string
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

__all__ = ["TokenKind", "Token", "SqlSyntaxError", "tokenize", "split_statements"]


class TokenKind(Enum):
    """The lexical class of a token."""

    IDENTIFIER = "identifier"
    QUOTED_IDENTIFIER = "quoted identifier"
    STRING = "string"
    BIT_STRING = "bit string"
    NUMBER = "number"
    PARAMETER = "parameter"
    OPERATOR = "operator"
    PUNCTUATION = "punctuation"
    SEMICOLON = "semicolon"


@dataclass(frozen=True)
class Token:
    """A token: its kind, source text, decoded value and span in the input.

    ``value`` is the identifier folded to lower case, the unquoted and
    unescaped content of a quoted identifier or string, the digits of a
    parameter, or the text itself for everything else.
    """

    kind: TokenKind
    text: str
    value: str
    start: int
    end: int


class SqlSyntaxError(ValueError):
    """The input is not lexically valid SQL."""

    def __init__(self, message: str, position: int) -> None:
        super().__init__(f"{message} at position {position}")
        self.message = message
        self.position = position


_WHITESPACE = " \t\n\r\f\v"
_OPERATOR_CHARS = frozenset("+-*/<>=~!@#%^&|`?")
_NON_MATH_OPERATOR_CHARS = frozenset("~!@#%^&|`?")
_ASCII_LOWER = str.maketrans(string.ascii_uppercase, string.ascii_lowercase)
_SIMPLE_ESCAPES = {"b": "\b", "f": "\f", "n": "\n", "r": "\r", "t": "\t"}

_IDENTIFIER = re.compile(
    r"[A-Za-z_\u0080-\U0010ffff][A-Za-z0-9_$\u0080-\U0010ffff]*"
)
_DOLLAR_TAG = re.compile(
    r"\$(?:[A-Za-z_\u0080-\U0010ffff][A-Za-z0-9_\u0080-\U0010ffff]*)?\$"
)
_PARAMETER = re.compile(r"\$(\d+)")
_NUMBER = re.compile(
    r"""
      0[xX](?:_?[0-9A-Fa-f])+
    | 0[oO](?:_?[0-7])+
    | 0[bB](?:_?[01])+
    | (?: \d(?:_?\d)* (?:\.(?!\.)(?:\d(?:_?\d)*)?)?
        | \.\d(?:_?\d)*
      )
      (?:[eE][+-]?\d(?:_?\d)*)?
    """,
    re.VERBOSE,
)
_COMMENT_MARK = re.compile(r"/\*|\*/")
_CONTINUATION = re.compile(r"[ \t\f]*[\n\r](?:[ \t\n\r\f\v]|--[^\n\r]*)*'")
_PLAIN_RUN = re.compile(r"[^']+")
_ESCAPED_RUN = re.compile(r"[^'\\]+")
_OCTAL = re.compile(r"[0-7]{1,3}")
_HEX_BYTE = re.compile(r"[0-9A-Fa-f]{1,2}")
_HEX_DIGITS = frozenset(string.hexdigits)

_ROUTINE_HEADS = (
    ("create", "function"),
    ("create", "procedure"),
    ("create", "or", "replace", "function"),
    ("create", "or", "replace", "procedure"),
)


def _code_point(value: int, position: int) -> str:
    if value == 0 or value > 0x10FFFF:
        raise SqlSyntaxError("invalid character code", position)
    return chr(value)


def _join_surrogates(text: str, position: int) -> str:
    """Combine UTF-16 surrogate pairs; reject lone surrogates."""
    try:
        return text.encode("utf-16-le", "surrogatepass").decode("utf-16-le")
    except UnicodeDecodeError:
        raise SqlSyntaxError("invalid Unicode surrogate pair", position) from None


def _decode_unicode(body: str, escape: str, position: int) -> str:
    mark = re.escape(escape)
    pattern = re.compile(
        rf"{mark}(?:\+([0-9A-Fa-f]{{6}})|([0-9A-Fa-f]{{4}})|({mark}))|{mark}"
    )

    def replace(match: re.Match[str]) -> str:
        if match.group(3):
            return escape
        digits = match.group(1) or match.group(2)
        if digits is None:
            raise SqlSyntaxError("invalid Unicode escape", position)
        return _code_point(int(digits, 16), position)

    return _join_surrogates(pattern.sub(replace, body), position)


class _Scanner:
    def __init__(self, sql: str) -> None:
        self.sql = sql
        self.pos = 0

    def tokens(self) -> Iterator[Token]:
        while self._skip_blank():
            yield self._token()

    # -- blanks -------------------------------------------------------------

    def _skip_blank(self) -> bool:
        """Skip whitespace and comments; return whether input remains."""
        sql = self.sql
        while self.pos < len(sql):
            if sql[self.pos] in _WHITESPACE:
                self.pos += 1
            elif sql.startswith("--", self.pos):
                end = sql.find("\n", self.pos)
                self.pos = len(sql) if end < 0 else end + 1
            elif sql.startswith("/*", self.pos):
                self._skip_block_comment()
            else:
                return True
        return False

    def _skip_block_comment(self) -> None:
        opening = self.pos
        depth = 0
        while True:
            match = _COMMENT_MARK.search(self.sql, self.pos)
            if match is None:
                raise SqlSyntaxError("unterminated /* comment", opening)
            self.pos = match.end()
            depth += 1 if match.group() == "/*" else -1
            if depth == 0:
                return

    # -- tokens -------------------------------------------------------------

    def _make(self, kind: TokenKind, start: int, value: str) -> Token:
        return Token(kind, self.sql[start : self.pos], value, start, self.pos)

    def _fixed(self, kind: TokenKind, start: int, text: str, value: str | None = None) -> Token:
        self.pos = start + len(text)
        return Token(kind, text, text if value is None else value, start, self.pos)

    def _token(self) -> Token:
        sql, start = self.sql, self.pos
        ch, nxt = sql[start], sql[start + 1 : start + 2]

        if ch == "'":
            return self._make(TokenKind.STRING, start, self._string_body(False))
        if nxt == "'" and ch in "eE":
            self.pos += 1
            return self._make(TokenKind.STRING, start, self._string_body(True))
        if nxt == "'" and ch in "nN":
            self.pos += 1
            return self._make(TokenKind.STRING, start, self._string_body(False))
        if nxt == "'" and ch in "bBxX":
            self.pos += 1
            return self._make(TokenKind.BIT_STRING, start, self._string_body(False))
        if ch in "uU" and nxt == "&" and sql[start + 2 : start + 3] in ("'", '"'):
            self.pos += 2
            return self._unicode_literal(start)
        if ch == '"':
            return self._make(
                TokenKind.QUOTED_IDENTIFIER, start, self._identifier_body()
            )
        if ch == "$":
            return self._dollar(start)

        if match := _NUMBER.match(sql, start):
            return self._fixed(TokenKind.NUMBER, start, match.group())
        if match := _IDENTIFIER.match(sql, start):
            text = match.group()
            return self._fixed(
                TokenKind.IDENTIFIER, start, text, text.translate(_ASCII_LOWER)
            )

        if ch == ";":
            return self._fixed(TokenKind.SEMICOLON, start, ch)
        if ch in "()[],":
            return self._fixed(TokenKind.PUNCTUATION, start, ch)
        if sql.startswith("::", start):
            return self._fixed(TokenKind.PUNCTUATION, start, "::")
        if sql.startswith(":=", start):
            return self._fixed(TokenKind.OPERATOR, start, ":=")
        if ch == ":":
            return self._fixed(TokenKind.PUNCTUATION, start, ch)
        if sql.startswith("..", start):
            return self._fixed(TokenKind.PUNCTUATION, start, "..")
        if ch == ".":
            return self._fixed(TokenKind.PUNCTUATION, start, ch)
        if ch in _OPERATOR_CHARS:
            return self._operator(start)
        raise SqlSyntaxError(f"unexpected character {ch!r}", start)

    def _operator(self, start: int) -> Token:
        sql = self.sql
        end = start
        while end < len(sql) and sql[end] in _OPERATOR_CHARS:
            if end > start and (
                sql.startswith("--", end) or sql.startswith("/*", end)
            ):
                break
            end += 1
        text = sql[start:end]
        # A multi-character operator ends in + or - only if it also holds
        # one of the non-arithmetic operator characters.
        if not _NON_MATH_OPERATOR_CHARS.intersection(text):
            while len(text) > 1 and text[-1] in "+-":
                text = text[:-1]
        return self._fixed(
            TokenKind.OPERATOR, start, text, "<>" if text == "!=" else None
        )

    def _dollar(self, start: int) -> Token:
        sql = self.sql
        if match := _PARAMETER.match(sql, start):
            self.pos = match.end()
            return self._make(TokenKind.PARAMETER, start, match.group(1))
        if match := _DOLLAR_TAG.match(sql, start):
            tag = match.group()
            close = sql.find(tag, match.end())
            if close < 0:
                raise SqlSyntaxError("unterminated dollar-quoted string", start)
            self.pos = close + len(tag)
            return self._make(TokenKind.STRING, start, sql[match.end() : close])
        raise SqlSyntaxError("unexpected character '$'", start)

    # -- quoted text --------------------------------------------------------

    def _string_body(self, escapes: bool) -> str:
        """Read a single-quoted literal starting at the current quote."""
        sql = self.sql
        opening = self.pos
        self.pos += 1
        run = _ESCAPED_RUN if escapes else _PLAIN_RUN
        parts: list[str] = []
        while True:
            if self.pos >= len(sql):
                raise SqlSyntaxError("unterminated quoted string", opening)
            if match := run.match(sql, self.pos):
                parts.append(match.group())
                self.pos = match.end()
                continue
            if sql.startswith("''", self.pos):
                parts.append("'")
                self.pos += 2
            elif sql[self.pos] == "'":
                self.pos += 1
                if not self._continue_string():
                    value = "".join(parts)
                    return _join_surrogates(value, opening) if escapes else value
            else:
                parts.append(self._backslash(opening))

    def _continue_string(self) -> bool:
        """Step into a literal that continues after a newline, if one does."""
        match = _CONTINUATION.match(self.sql, self.pos)
        if match is None:
            return False
        self.pos = match.end()
        return True

    def _backslash(self, opening: int) -> str:
        sql = self.sql
        escape_at = self.pos
        at = self.pos + 1
        if at >= len(sql):
            raise SqlSyntaxError("unterminated quoted string", opening)
        ch = sql[at]
        if ch in _SIMPLE_ESCAPES:
            self.pos = at + 1
            return _SIMPLE_ESCAPES[ch]
        if match := _OCTAL.match(sql, at):
            self.pos = match.end()
            return _code_point(int(match.group(), 8), escape_at)
        if ch == "x" and (match := _HEX_BYTE.match(sql, at + 1)):
            self.pos = match.end()
            return _code_point(int(match.group(), 16), escape_at)
        if ch in "uU":
            width = 4 if ch == "u" else 8
            digits = sql[at + 1 : at + 1 + width]
            if len(digits) != width or not _HEX_DIGITS.issuperset(digits):
                raise SqlSyntaxError("invalid Unicode escape", escape_at)
            self.pos = at + 1 + width
            return _code_point(int(digits, 16), escape_at)
        self.pos = at + 1
        return ch

    def _identifier_body(self) -> str:
        """Read a double-quoted identifier starting at the current quote."""
        sql = self.sql
        opening = self.pos
        self.pos += 1
        parts: list[str] = []
        while True:
            end = sql.find('"', self.pos)
            if end < 0:
                raise SqlSyntaxError("unterminated quoted identifier", opening)
            parts.append(sql[self.pos : end])
            if sql.startswith('""', end):
                parts.append('"')
                self.pos = end + 2
            else:
                self.pos = end + 1
                break
        name = "".join(parts)
        if not name:
            raise SqlSyntaxError("zero-length delimited identifier", opening)
        return name

    def _unicode_literal(self, start: int) -> Token:
        if self.sql[self.pos] == "'":
            kind, body = TokenKind.STRING, self._string_body(False)
        else:
            kind, body = TokenKind.QUOTED_IDENTIFIER, self._identifier_body()
        escape = self._uescape()
        return self._make(kind, start, _decode_unicode(body, escape, start))

    def _uescape(self) -> str:
        """Read an optional UESCAPE clause; return the escape character."""
        resume = self.pos
        if self._skip_blank():
            match = _IDENTIFIER.match(self.sql, self.pos)
            if match and match.group().translate(_ASCII_LOWER) == "uescape":
                self.pos = match.end()
                if self._skip_blank() and self.sql[self.pos] == "'":
                    at = self.pos
                    char = self._string_body(False)
                    if (
                        len(char) == 1
                        and char not in _HEX_DIGITS
                        and char not in "+'\""
                        and char not in _WHITESPACE
                    ):
                        return char
                    raise SqlSyntaxError("invalid Unicode escape character", at)
                raise SqlSyntaxError(
                    "UESCAPE must be followed by a simple string literal", self.pos
                )
        self.pos = resume
        return "\\"


def tokenize(sql: str) -> list[Token]:
    """Split ``sql`` into tokens, dropping whitespace and comments."""
    return list(_Scanner(sql).tokens())


class _StatementTracker:
    """Follows BEGIN ... END bodies of routines so inner semicolons are kept."""

    def __init__(self) -> None:
        self.head: list[str] = []
        self.paren_depth = 0
        self.begin_depth = 0

    def feed(self, token: Token) -> None:
        if token.kind is TokenKind.PUNCTUATION:
            if token.text == "(":
                self.paren_depth += 1
            elif token.text == ")" and self.paren_depth > 0:
                self.paren_depth -= 1
            return
        if token.kind is not TokenKind.IDENTIFIER:
            return
        word = token.value
        if len(self.head) < 4:
            self.head.append(word)
        if self.paren_depth or not self._defines_routine():
            return
        if word == "begin":
            self.begin_depth += 1
        elif word == "case" and self.begin_depth >= 1:
            self.begin_depth += 1
        elif word == "end" and self.begin_depth > 0:
            self.begin_depth -= 1

    def _defines_routine(self) -> bool:
        return any(tuple(self.head[: len(head)]) == head for head in _ROUTINE_HEADS)


def split_statements(sql: str) -> list[str]:
    """Split ``sql`` into its top-level statements.

    Each statement runs from its first token to its last, without the
    terminating semicolon; comments and blanks around it are dropped and
    empty statements are skipped.
    """
    statements: list[str] = []
    current: list[Token] = []
    tracker = _StatementTracker()
    for token in tokenize(sql):
        if token.kind is TokenKind.SEMICOLON and tracker.begin_depth == 0:
            if current:
                statements.append(sql[current[0].start : current[-1].end])
            current = []
            tracker = _StatementTracker()
            continue
        current.append(token)
        tracker.feed(token)
    if current:
        statements.append(sql[current[0].start : current[-1].end])
    return statements