import itertools

import pytest

from icepeek.expr.truth import Truth

T, F, U = Truth.TRUE, Truth.FALSE, Truth.UNKNOWN


@pytest.mark.parametrize(
    "a, b, expected",
    [(T, T, T), (T, F, F), (T, U, U), (F, F, F), (F, U, F), (U, U, U)],
)
def test_and_table(a: Truth, b: Truth, expected: Truth) -> None:
    assert a.and_(b) is expected
    assert b.and_(a) is expected


@pytest.mark.parametrize(
    "a, b, expected",
    [(T, T, T), (T, F, T), (T, U, T), (F, F, F), (F, U, U), (U, U, U)],
)
def test_or_table(a: Truth, b: Truth, expected: Truth) -> None:
    assert a.or_(b) is expected
    assert b.or_(a) is expected


def test_not_table() -> None:
    assert [v.not_() for v in (T, F, U)] == [F, T, U]


def test_de_morgan_holds_for_every_pair() -> None:
    for a, b in itertools.product(Truth, repeat=2):
        assert a.and_(b).not_() is a.not_().or_(b.not_())


def test_only_true_is_truthy() -> None:
    assert [bool(v) for v in (T, F, U)] == [True, False, False]
    assert Truth.of(True) is T and Truth.of(False) is F
