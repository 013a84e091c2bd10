"""Tests for filters and search pattern handling."""

import pytest

from dbmeta.metadata import Filter, escape_like, matches_like, parse_pattern, qualified_identifier


def test_parse_pattern_without_schema():
    assert parse_pattern("orders") == ("", "orders")
    assert parse_pattern("") == ("", "")


def test_parse_pattern_with_schema_and_wildcards():
    assert parse_pattern("tut*.h*") == ("tut%", "h%")


def test_parse_pattern_splits_on_first_dot_only():
    assert parse_pattern("public.a.b") == ("public", "a.b")


def test_parse_pattern_keeps_like_wildcards():
    assert parse_pattern("sales.ord_r%") == ("sales", "ord_r%")


@pytest.mark.parametrize(
    "pattern, value, expected",
    [
        ("", "anything", True),
        ("orders", "orders", True),
        ("orders", "orders2", False),
        ("ord%", "orders", True),
        ("%ers", "orders", True),
        ("o_ders", "orders", True),
        ("o_ders", "oders", False),
        ("a.b", "axb", False),
        ("Orders", "orders", False),
    ],
)
def test_matches_like(pattern, value, expected):
    assert matches_like(pattern, value) is expected


def test_filter_defaults_mean_no_restriction():
    f = Filter()
    assert f.catalog == ""
    assert f.schema == ""
    assert f.name == ""
    assert f.types == ()
    assert f.with_system is False


def test_filter_types_are_frozen_into_a_tuple():
    f = Filter(types=["BASE TABLE", "VIEW"])
    assert f.types == ("BASE TABLE", "VIEW")
    with pytest.raises(AttributeError):
        f.name = "x"


def test_qualified_identifier():
    assert qualified_identifier("public", "orders") == '"public.orders"'
    assert qualified_identifier("", "orders") == '"orders"'


def test_escape_like():
    assert escape_like("orders") == "orders"
    assert escape_like("t_1") == "t\\_1"
    assert escape_like("100%") == "100\\%"
    assert escape_like("a\\b") == "a\\\\b"


@pytest.mark.parametrize(
    "value, expected",
    [("t_1", True), ("tx1", False), ("t%1", False)],
)
def test_escaped_pattern_matches_only_the_literal_name(value, expected):
    assert matches_like(escape_like("t_1"), value) is expected


def test_escaped_percent_is_literal():
    assert matches_like("50\\%%", "50% off")
    assert not matches_like("50\\%%", "500 off")
