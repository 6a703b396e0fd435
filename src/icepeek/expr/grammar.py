"""
Filter language grammar: EBNF text, operator and keyword enums, and helpers.

The EBNF in ``filter.ebnf`` next to this module is authoritative. At import time the
grammar is read into rules and the ``comp_op`` and ``keyword`` rules are
checked against CompareOp and KEYWORDS, so the lexer/parser cannot drift from the
documented language.

Design principles
-----------------
1) Keywords are case-insensitive and reserved; a column named like a keyword must
   be back-quoted.
2) Comparisons are always normalised to ``identifier OP literal``; a literal on the
   left flips the operator (``30 < age`` is ``age > 30``).
3) ``<>`` is an input synonym of ``!=`` and never appears in canonical output.

Examples
--------
>>> CompareOp.from_symbol("<>") is CompareOp.NE
True
>>> CompareOp.LT.flipped() is CompareOp.GT
True
>>> is_bare_identifier("order.total")
True
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Final

__all__ = [
    "EBNF_GRAMMAR",
    "GrammarRule",
    "FilterGrammar",
    "GRAMMAR",
    "CompareOp",
    "KEYWORDS",
    "OPERATOR_ALIASES",
    "is_bare_identifier",
    "quote_identifier",
]

# Canonical grammar file next to this module
_EBNF_PATH = Path(__file__).with_name("filter.ebnf")


def _load_ebnf_text() -> str:
    return _EBNF_PATH.read_text(encoding="utf-8")


EBNF_GRAMMAR: Final[str] = _load_ebnf_text()


_COMMENT_RE = re.compile(r"\(\*[\s\S]*?\*\)")
# One rule per match: ``name = body ;`` where the body may span lines.
_RULE_RE = re.compile(r"^[ \t]*([a-z_]+)\s*=\s*(.+?)\s*;[ \t]*$", re.MULTILINE | re.DOTALL)
_TOKEN_RE = re.compile(r"\"[^\"]*\"|'[^']*'|[|(){}\[\],]|[^\s|(){}\[\],\"']+")


@dataclass(slots=True, frozen=True)
class GrammarRule:
    """
    One EBNF rule.

    Attributes:
        name (str): Rule name.
        body (str): Right-hand side, whitespace preserved.
        leading_terminals (tuple[str, ...]): Quoted terminals that open a top-level
            alternative, in order of first appearance.
    """

    name: str
    body: str
    leading_terminals: tuple[str, ...]


def _leading_terminals(body: str) -> tuple[str, ...]:
    found: dict[str, None] = {}
    depth = 0
    at_start = True
    for tok in _TOKEN_RE.findall(body):
        if tok in "([{":
            depth += 1
        elif tok in ")]}":
            depth -= 1
        elif tok == "|" and depth == 0:
            at_start = True
            continue
        if at_start and depth == 0 and tok[0] in "\"'":
            found.setdefault(tok[1:-1])
        at_start = False
    return tuple(found)


@dataclass(slots=True, frozen=True)
class FilterGrammar:
    """Rules of the filter EBNF, keyed by name."""

    rules: dict[str, GrammarRule]

    @classmethod
    def parse(cls, text: str) -> FilterGrammar:
        rules = {
            m.group(1): GrammarRule(m.group(1), m.group(2), _leading_terminals(m.group(2)))
            for m in _RULE_RE.finditer(_COMMENT_RE.sub(" ", text))
        }
        return cls(rules)

    def rule(self, name: str) -> GrammarRule:
        if name not in self.rules:
            raise KeyError(f"no grammar rule named {name!r}")
        return self.rules[name]

    def terminals(self, name: str) -> tuple[str, ...]:
        return self.rule(name).leading_terminals


# ============================================================================
# Operators and keywords
# ============================================================================


class CompareOp(Enum):
    """Comparison operators; values are the canonical symbols."""

    EQ = "="
    NE = "!="
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="

    @classmethod
    def from_symbol(cls, symbol: str) -> CompareOp:
        return cls(OPERATOR_ALIASES.get(symbol, symbol))

    def flipped(self) -> CompareOp:
        """Operator with operands swapped (``a < b`` is ``b > a``)."""
        return _FLIPPED[self]


_FLIPPED: Final[dict[CompareOp, CompareOp]] = {
    CompareOp.EQ: CompareOp.EQ,
    CompareOp.NE: CompareOp.NE,
    CompareOp.LT: CompareOp.GT,
    CompareOp.LE: CompareOp.GE,
    CompareOp.GT: CompareOp.LT,
    CompareOp.GE: CompareOp.LE,
}

OPERATOR_ALIASES: Final[dict[str, str]] = {"<>": "!="}

KEYWORDS: Final[frozenset[str]] = frozenset(
    {"AND", "OR", "NOT", "IS", "NULL", "IN", "TRUE", "FALSE"}
)

_BARE_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_.]*$")


def is_bare_identifier(name: str) -> bool:
    """True when ``name`` can be written without back-quotes."""
    return bool(_BARE_IDENT_RE.match(name)) and name.upper() not in KEYWORDS


def quote_identifier(name: str) -> str:
    return name if is_bare_identifier(name) else f"`{name}`"


def _assert_terminals(grammar: FilterGrammar, rule_name: str, expected: Iterable[str]) -> None:
    documented = set(grammar.terminals(rule_name))
    known = set(expected)
    if documented != known:
        raise ValueError(
            f"filter.ebnf rule {rule_name!r} lists {sorted(documented)}, "
            f"the lexer knows {sorted(known)}"
        )


GRAMMAR: Final[FilterGrammar] = FilterGrammar.parse(EBNF_GRAMMAR)
_assert_terminals(
    GRAMMAR, "comp_op", [op.value for op in CompareOp] + list(OPERATOR_ALIASES)
)
_assert_terminals(GRAMMAR, "keyword", KEYWORDS)
