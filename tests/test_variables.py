"""Tests for variable parsing and merging."""

import logging
from datetime import date, datetime

from queryflow.core.variables import (
    merge_variables,
    month_range_variables,
    parse_variables,
    strip_comments,
)


class TestParseVariables:
    def test_empty(self):
        assert parse_variables(None) == {}
        assert parse_variables("   ") == {}

    def test_plain_json(self):
        assert parse_variables('{"a": 1, "b": [1, 2]}') == {"a": 1, "b": [1, 2]}

    def test_comments_and_trailing_commas(self):
        text = """
        {
            // line comment
            "a": 1, /* block
            comment */
            "url": "http://example.com/x",
            "list": [1, 2,],
        }
        """
        assert parse_variables(text) == {"a": 1, "url": "http://example.com/x", "list": [1, 2]}

    def test_invalid_degrades_to_empty(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert parse_variables("{not json") == {}
        assert "Failed to parse GraphQL variables" in caplog.text

    def test_non_object_degrades_to_empty(self):
        assert parse_variables("[1, 2]") == {}

    def test_strip_comments_keeps_strings(self):
        assert strip_comments('{"a": "// not a comment"} // gone') == '{"a": "// not a comment"} '


class TestMonthRange:
    def test_single_month(self):
        assert month_range_variables((date(2024, 1, 15), date(2024, 1, 3))) == {
            "startDate": "2024-01-01",
            "endDate": "2024-01-31",
        }

    def test_order_independent_and_leap_year(self):
        assert month_range_variables([datetime(2024, 2, 10), datetime(2023, 11, 5)]) == {
            "startDate": "2023-11-01",
            "endDate": "2024-02-29",
        }

    def test_month_strings(self):
        assert month_range_variables(("2024-03", "2023-12")) == {
            "startDate": "2023-12-01",
            "endDate": "2024-03-31",
        }

    def test_missing_or_malformed(self):
        assert month_range_variables(None) == {}
        assert month_range_variables([date(2024, 1, 1)]) == {}
        assert month_range_variables([None, date(2024, 1, 1)]) == {}
        assert month_range_variables(["soon", "later"]) == {}


class TestMergeVariables:
    def test_precedence(self):
        merged = merge_variables(
            {"a": 1, "b": 2},
            {"b": 3, "c": 4},
            (date(2024, 1, 1), date(2024, 1, 31)),
        )
        assert merged == {
            "a": 1,
            "b": 3,
            "c": 4,
            "startDate": "2024-01-01",
            "endDate": "2024-01-31",
        }

    def test_time_range_overrides_caller(self):
        merged = merge_variables({"startDate": "x"}, {"startDate": "y"}, ("2024-05", "2024-05"))
        assert merged["startDate"] == "2024-05-01"
        assert merged["endDate"] == "2024-05-31"

    def test_no_deep_merge(self):
        merged = merge_variables({"filter": {"a": 1, "b": 2}}, {"filter": {"a": 5}})
        assert merged == {"filter": {"a": 5}}
