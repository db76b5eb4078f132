import pytest

from kas_data.numbers import coerce_number, tidy_number


@pytest.mark.parametrize("token", ["", ".", "..", "...", "-", "  ..  "])
def test_missing_tokens_become_none(token):
    assert coerce_number(token) is None
    assert tidy_number(token) is None


def test_thousands_separator_is_stripped():
    assert coerce_number("1,234") == 1234
    assert tidy_number("1,234") == 1234
    assert isinstance(tidy_number("1,234"), int)


def test_non_breaking_space_is_stripped():
    assert coerce_number("1\u00a0234.5") == 1234.5


def test_lenient_keeps_float_but_tidy_snaps_to_int():
    assert coerce_number(5.0) == 5.0
    assert isinstance(coerce_number(5.0), float)
    assert tidy_number(5.0) == 5
    assert isinstance(tidy_number(5.0), int)
    assert tidy_number("2.5") == 2.5


@pytest.mark.parametrize("value", [None, True, False, "abc", "1_000", "nan", "inf", float("nan"), [1]])
def test_unusable_values_become_none(value):
    assert coerce_number(value) is None


def test_ints_pass_through():
    assert coerce_number(7) == 7
    assert isinstance(coerce_number(7), int)
