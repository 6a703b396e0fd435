"""
Recursive-descent parser for the filter language.

One method per EBNF production (or_expr, and_expr, not_expr, primary, predicate).
The parser produces unbound nodes; icepeek.expr.binder resolves names and literal
types against a schema afterwards.

Examples
--------
>>> str(parse_filter("age > 30 and city in ('NYC', 'LA')"))
"age > 30 AND city IN ('NYC', 'LA')"
>>> str(parse_filter("30 < age"))
'age > 30'
"""

from __future__ import annotations

from ..core.errors import EmptyInList, FilterSyntaxError
from .ast import And, Column, Comparison, Expr, InList, IsNull, Literal, LiteralKind, Not, Or
from .grammar import CompareOp
from .lexer import Token, TokenKind, tokenize

__all__ = ["parse_filter"]


def parse_filter(text: str) -> Expr:
    """
    Parse filter source text into an unbound expression.

    Args:
        text (str): Filter source.

    Returns:
        Expr: Parsed expression tree.

    Raises:
        FilterSyntaxError: On malformed input, including empty or blank text.
        EmptyInList: On ``IN ()``.
    """
    if not text.strip():
        raise FilterSyntaxError("empty filter expression", 0)
    return _Parser(tokenize(text)).parse()


class _Parser:
    def __init__(self, tokens: list[Token]) -> None:
        self._tokens = tokens
        self._i = 0

    # ---- token helpers ---------------------------------------------------

    @property
    def _tok(self) -> Token:
        return self._tokens[self._i]

    def _advance(self) -> Token:
        tok = self._tokens[self._i]
        if tok.kind is not TokenKind.EOF:
            self._i += 1
        return tok

    def _is_keyword(self, word: str) -> bool:
        return self._tok.kind is TokenKind.KEYWORD and self._tok.value == word

    def _accept_keyword(self, word: str) -> bool:
        if self._is_keyword(word):
            self._advance()
            return True
        return False

    def _expect(self, kind: TokenKind, what: str) -> Token:
        if self._tok.kind is not kind:
            raise self._error(f"expected {what}")
        return self._advance()

    def _expect_keyword(self, word: str) -> Token:
        if not self._is_keyword(word):
            raise self._error(f"expected {word}")
        return self._advance()

    def _error(self, message: str) -> FilterSyntaxError:
        tok = self._tok
        if tok.kind is TokenKind.EOF:
            return FilterSyntaxError(f"{message}, found end of input", tok.position)
        return FilterSyntaxError(message, tok.position, tok.text)

    # ---- productions -----------------------------------------------------

    def parse(self) -> Expr:
        expr = self._or_expr()
        if self._tok.kind is not TokenKind.EOF:
            raise self._error("unexpected token")
        return expr

    def _or_expr(self) -> Expr:
        left = self._and_expr()
        while self._accept_keyword("OR"):
            left = Or(left, self._and_expr())
        return left

    def _and_expr(self) -> Expr:
        left = self._not_expr()
        while self._accept_keyword("AND"):
            left = And(left, self._not_expr())
        return left

    def _not_expr(self) -> Expr:
        if self._accept_keyword("NOT"):
            return Not(self._not_expr())
        return self._primary()

    def _primary(self) -> Expr:
        if self._tok.kind is TokenKind.LPAREN:
            self._advance()
            inner = self._or_expr()
            self._expect(TokenKind.RPAREN, "')'")
            return inner
        return self._predicate()

    def _predicate(self) -> Expr:
        tok = self._tok
        if tok.kind is TokenKind.IDENT:
            column = Column(tok.value, tok.position)
            self._advance()
            return self._after_column(column)
        if self._at_literal():
            literal = self._literal()
            op = self._comparison_op()
            if self._tok.kind is not TokenKind.IDENT:
                raise self._error("expected column name")
            ident = self._advance()
            return Comparison(Column(ident.value, ident.position), op.flipped(), literal)
        raise self._error("expected column name or '('")

    def _after_column(self, column: Column) -> Expr:
        if self._tok.kind is TokenKind.OP:
            op = self._comparison_op()
            if not self._at_literal():
                raise self._error("expected literal")
            return Comparison(column, op, self._literal())
        if self._accept_keyword("IS"):
            negated = self._accept_keyword("NOT")
            self._expect_keyword("NULL")
            return IsNull(column, negated)
        if self._is_keyword("NOT"):
            self._advance()
            if not self._is_keyword("IN"):
                raise self._error("expected IN")
            return Not(self._in_list(column))
        if self._is_keyword("IN"):
            return self._in_list(column)
        raise self._error("expected comparison operator, IS or IN")

    def _in_list(self, column: Column) -> InList:
        self._expect_keyword("IN")
        lparen = self._expect(TokenKind.LPAREN, "'('")
        if self._tok.kind is TokenKind.RPAREN:
            raise EmptyInList("IN list must not be empty", lparen.position)
        literals = [self._in_literal()]
        while self._tok.kind is TokenKind.COMMA:
            self._advance()
            literals.append(self._in_literal())
        self._expect(TokenKind.RPAREN, "',' or ')'")
        return InList(column, tuple(literals))

    def _in_literal(self) -> Literal:
        if not self._at_literal():
            raise self._error("expected literal")
        return self._literal()

    def _comparison_op(self) -> CompareOp:
        tok = self._expect(TokenKind.OP, "comparison operator")
        return CompareOp.from_symbol(tok.value)

    def _at_literal(self) -> bool:
        tok = self._tok
        return tok.kind in (TokenKind.NUMBER, TokenKind.STRING) or (
            tok.kind is TokenKind.KEYWORD and tok.value in ("TRUE", "FALSE")
        )

    def _literal(self) -> Literal:
        tok = self._advance()
        if tok.kind is TokenKind.NUMBER:
            return Literal(LiteralKind.NUMBER, tok.value, tok.position)
        if tok.kind is TokenKind.STRING:
            return Literal(LiteralKind.STRING, tok.value, tok.position)
        return Literal(LiteralKind.BOOLEAN, tok.value == "TRUE", tok.position)
