"""
icepeek.expr: filter language for scan rows.

## Public API
- parse_filter: text to unbound expression (FilterSyntaxError / EmptyInList).
- bind: resolve names and coerce literals against a schema (UnknownColumn / TypeMismatch).
- compile_filter: parse + bind into a Predicate; blank text means no filter.
- Predicate: evaluate / matches / mask over rows, plus the columns it reads.
- Truth: three-valued result type.

## Import DAG discipline
- Depends only on stdlib and icepeek.core; zero-IO.
"""

from __future__ import annotations

from .binder import bind
from .evaluator import Predicate, compile_filter, evaluate
from .parser import parse_filter
from .truth import Truth

__all__ = [
    "parse_filter",
    "bind",
    "compile_filter",
    "evaluate",
    "Predicate",
    "Truth",
]
