"""
Tests: display formatting and lenient number coercion.

Run with:
    pytest agreement_assembly/tests/test_formatting.py -v
"""

from datetime import date

import pytest

from agreement_assembly.utils.formatting import (
    add_months,
    format_count,
    format_currency,
    format_date_long,
    format_months,
    format_quantity,
    number_to_words,
    to_number,
)
from agreement_assembly.utils.hashing import reference_number, sha256_hash


class TestToNumber:
    @pytest.mark.parametrize("value,expected", [
        (None, 0.0), ("", 0.0), ("abc", 0.0), ("$1,234.50", 1234.5), (" 12 ", 12.0),
        (float("nan"), 0.0), (float("inf"), 0.0), (True, 0.0), (7, 7.0),
    ])
    def test_lenient(self, value, expected):
        assert to_number(value) == expected


class TestDisplay:
    def test_currency(self):
        assert format_currency(1234.5) == "$1,234.50"
        assert format_currency("oops") == "$0.00"
        assert format_currency(-20) == "-$20.00"

    def test_count_and_quantity(self):
        assert format_count(2.5) == "3"
        assert format_quantity(12.0) == "12"
        assert format_quantity(1.25) == "1.25"
        assert format_quantity(2.50) == "2.5"

    def test_months(self):
        assert format_months(1) == "1 Month"
        assert format_months(6) == "6 Months"

    @pytest.mark.parametrize("n,words", [
        (0, "zero"), (3, "three"), (21, "twenty-one"), (105, "one hundred five"),
        (2300, "two thousand three hundred"),
    ])
    def test_number_to_words(self, n, words):
        assert number_to_words(n) == words


class TestDates:
    def test_add_months_clamps_day(self):
        assert add_months(date(2026, 1, 31), 1) == date(2026, 2, 28)
        assert add_months(date(2026, 11, 15), 3) == date(2027, 2, 15)

    def test_long_date(self):
        assert format_date_long(date(2026, 10, 8)) == "October 8, 2026"


class TestHashing:
    def test_sha256(self):
        assert sha256_hash("abc") == sha256_hash(b"abc")
        assert len(sha256_hash(b"")) == 64

    def test_reference_number(self):
        assert reference_number("AGR", seed="q1") == reference_number("AGR", seed="q1")
        assert reference_number("AGR", seed="q1") != reference_number("AGR", seed="q2")
        assert reference_number("AGR").startswith("AGR-")
