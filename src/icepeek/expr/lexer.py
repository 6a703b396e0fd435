"""Tokenizer for the filter language (see filter.ebnf)."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..core.errors import FilterSyntaxError
from .grammar import KEYWORDS, OPERATOR_ALIASES

__all__ = ["TokenKind", "Token", "tokenize"]


class TokenKind(Enum):
    IDENT = "ident"
    NUMBER = "number"
    STRING = "string"
    KEYWORD = "keyword"
    OP = "op"
    LPAREN = "("
    RPAREN = ")"
    COMMA = ","
    EOF = "eof"


@dataclass(frozen=True, slots=True)
class Token:
    """
    One lexed token.

    Attributes:
        kind (TokenKind): Token class.
        text (str): Source text of the token, as written.
        value (str): Normalised payload: identifier name (back-quotes removed),
            string content (quotes consumed, doubled quotes collapsed), upper-cased
            keyword, canonical operator symbol, or number text.
        position (int): 0-based offset of the token's first character.
    """

    kind: TokenKind
    text: str
    value: str
    position: int


_OPERATOR_CHARS = "=!<>"
_TWO_CHAR_OPS = ("!=", "<>", "<=", ">=")


def _is_digit(ch: str) -> bool:
    # str.isdigit() also accepts superscripts and other scripts' digits.
    return "0" <= ch <= "9"


def tokenize(text: str) -> list[Token]:
    """
    Split ``text`` into tokens, ending with an EOF token.

    Raises:
        FilterSyntaxError: On an unterminated string or identifier, a stray
            character, or a malformed number.
    """
    tokens: list[Token] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch.isspace():
            i += 1
            continue
        start = i
        if ch == "(":
            tokens.append(Token(TokenKind.LPAREN, ch, ch, start))
            i += 1
        elif ch == ")":
            tokens.append(Token(TokenKind.RPAREN, ch, ch, start))
            i += 1
        elif ch == ",":
            tokens.append(Token(TokenKind.COMMA, ch, ch, start))
            i += 1
        elif ch in ("'", '"'):
            value, i = _read_string(text, i)
            tokens.append(Token(TokenKind.STRING, text[start:i], value, start))
        elif ch == "`":
            end = text.find("`", i + 1)
            if end < 0:
                raise FilterSyntaxError("unterminated quoted identifier", start, text[start:])
            name = text[i + 1 : end]
            if not name:
                raise FilterSyntaxError("empty quoted identifier", start, "``")
            i = end + 1
            tokens.append(Token(TokenKind.IDENT, text[start:i], name, start))
        elif _is_digit(ch) or (ch in "+-" and i + 1 < n and _is_digit(text[i + 1])):
            i = _read_number(text, i)
            tokens.append(Token(TokenKind.NUMBER, text[start:i], text[start:i], start))
        elif ch.isalpha() or ch == "_":
            i += 1
            while i < n and (text[i].isalnum() or text[i] in "_."):
                i += 1
            word = text[start:i]
            if word.upper() in KEYWORDS:
                tokens.append(Token(TokenKind.KEYWORD, word, word.upper(), start))
            else:
                if word.endswith(".") or ".." in word:
                    raise FilterSyntaxError("malformed dotted identifier", start, word)
                tokens.append(Token(TokenKind.IDENT, word, word, start))
        elif ch in _OPERATOR_CHARS:
            pair = text[i : i + 2]
            if pair in _TWO_CHAR_OPS:
                i += 2
                tokens.append(Token(TokenKind.OP, pair, OPERATOR_ALIASES.get(pair, pair), start))
            elif ch == "!":
                raise FilterSyntaxError("unexpected character", start, ch)
            else:
                i += 1
                tokens.append(Token(TokenKind.OP, ch, ch, start))
        else:
            raise FilterSyntaxError("unexpected character", start, ch)
    tokens.append(Token(TokenKind.EOF, "", "", n))
    return tokens


def _read_string(text: str, i: int) -> tuple[str, int]:
    quote = text[i]
    start = i
    i += 1
    out: list[str] = []
    while i < len(text):
        ch = text[i]
        if ch == quote:
            if i + 1 < len(text) and text[i + 1] == quote:
                out.append(quote)
                i += 2
                continue
            return "".join(out), i + 1
        out.append(ch)
        i += 1
    raise FilterSyntaxError("unterminated string literal", start, text[start:])


def _read_number(text: str, i: int) -> int:
    start = i
    n = len(text)
    if text[i] in "+-":
        i += 1
    while i < n and _is_digit(text[i]):
        i += 1
    if i < n and text[i] == ".":
        i += 1
        if i >= n or not _is_digit(text[i]):
            raise FilterSyntaxError("malformed number", start, text[start:i])
        while i < n and _is_digit(text[i]):
            i += 1
    if i < n and (text[i].isalpha() or text[i] == "_"):
        raise FilterSyntaxError("malformed number", start, text[start : i + 1])
    return i
