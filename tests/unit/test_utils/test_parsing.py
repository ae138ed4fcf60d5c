"""Tests for lenient request parsing."""

import math
import pytest

from src.utils.parsing import (
    is_coordinate_pair,
    nest_bracket_params,
    parse_bounds,
    parse_int,
    parse_number,
)


@pytest.mark.unit
@pytest.mark.parametrize("value,expected", [
    ("12abc", 12),
    ("2.7", 2),
    (" 7 ", 7),
    ("-3", -3),
    (3.9, 3),
    (8, 8),
    ("abc", 99),
    ("", 99),
    (None, 99),
    (True, 99),
    (float("nan"), 99),
])
def test_parse_int(value, expected):
    assert parse_int(value, 99) == expected


@pytest.mark.unit
@pytest.mark.parametrize("value,expected", [
    ("100", 100),
    ("150.5", 150.5),
    ("-2", -2),
    ("1e3", 1000.0),
    ("12abc", None),
    ("", None),
    (12, None),
])
def test_parse_number(value, expected):
    assert parse_number(value) == expected


@pytest.mark.unit
def test_parse_number_keeps_int_type_for_integers():
    assert isinstance(parse_number("100"), int)
    assert isinstance(parse_number("100.0"), float)


@pytest.mark.unit
def test_is_coordinate_pair():
    assert is_coordinate_pair([-12.08, 10.38])
    assert is_coordinate_pair((0, 0))
    assert not is_coordinate_pair([1, 2, 3])
    assert not is_coordinate_pair([False, 1])
    assert not is_coordinate_pair([math.inf, 1])
    assert not is_coordinate_pair("1,2")


@pytest.mark.unit
def test_parse_bounds():
    assert parse_bounds("-7.6,12.7") == [-7.6, 12.7]
    assert parse_bounds(None) is None
    assert parse_bounds([1, 2]) == [1, 2]

    broken = parse_bounds("x,12.7")
    assert math.isnan(broken[0])
    assert not is_coordinate_pair(broken)


@pytest.mark.unit
def test_nest_bracket_params():
    nested = nest_bracket_params({
        "price[gte]": "100",
        "price[lte]": "900",
        "rooms": "3",
        "sortBy": "-price",
    })

    assert nested == {
        "price": {"gte": "100", "lte": "900"},
        "rooms": "3",
        "sortBy": "-price",
    }


@pytest.mark.unit
def test_nest_bracket_params_plain_key_wins():
    assert nest_bracket_params({"price": "5", "price[gte]": "1"}) == {"price": "5"}
    assert nest_bracket_params({"price[gte]": "1", "price": "5"}) == {"price": "5"}
