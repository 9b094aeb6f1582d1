"""
Display formatting and lenient number coercion shared by the engine.

Inputs arrive from free-form forms, so ``to_number`` never raises: anything
missing, non-numeric, NaN or infinite becomes ``0.0``.
"""

from __future__ import annotations

import calendar
import math
import re
from datetime import date
from typing import Any

_NUMERIC_NOISE = re.compile(r"[$,\s]")

_ONES = [
    "zero", "one", "two", "three", "four", "five", "six", "seven", "eight",
    "nine", "ten", "eleven", "twelve", "thirteen", "fourteen", "fifteen",
    "sixteen", "seventeen", "eighteen", "nineteen",
]
_TENS = ["", "", "twenty", "thirty", "forty", "fifty", "sixty", "seventy", "eighty", "ninety"]


def to_number(value: Any) -> float:
    """Coerce a loosely-typed value to a finite float (0.0 on failure)."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = _NUMERIC_NOISE.sub("", str(value))
        if not text:
            return 0.0
        try:
            number = float(text)
        except ValueError:
            return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def format_currency(amount: Any) -> str:
    """US-dollar display with thousands separators: ``$1,234.50``."""
    value = to_number(amount)
    if value < 0:
        return f"-${abs(value):,.2f}"
    return f"${value:,.2f}"


def format_count(value: Any) -> str:
    """Whole-number display; fractional input is rounded half up."""
    return str(int(math.floor(to_number(value) + 0.5)))


def format_quantity(value: Any) -> str:
    """Number display that drops a trailing ``.0`` (``12.5`` / ``12``)."""
    number = to_number(value)
    if number == int(number):
        return str(int(number))
    return f"{number:.2f}".rstrip("0").rstrip(".")


def format_months(duration_months: Any) -> str:
    d = to_number(duration_months)
    label = format_quantity(d)
    return f"{label} Month{'' if d == 1 else 's'}"


def number_to_words(value: Any) -> str:
    """Spell out a non-negative integer below one million (``12`` → ``twelve``)."""
    n = int(to_number(value))
    if n < 0:
        return "minus " + number_to_words(-n)
    if n < 20:
        return _ONES[n]
    if n < 100:
        tens, rest = divmod(n, 10)
        return _TENS[tens] + (f"-{_ONES[rest]}" if rest else "")
    if n < 1000:
        hundreds, rest = divmod(n, 100)
        return f"{_ONES[hundreds]} hundred" + (f" {number_to_words(rest)}" if rest else "")
    if n < 1_000_000:
        thousands, rest = divmod(n, 1000)
        return f"{number_to_words(thousands)} thousand" + (f" {number_to_words(rest)}" if rest else "")
    return str(n)


def add_months(start: date, months: int) -> date:
    """Calendar-aware month arithmetic; the day is clamped to the target month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def format_date_short(value: date) -> str:
    """``MM/DD/YY``"""
    return value.strftime("%m/%d/%y")


def format_date_long(value: date) -> str:
    """``October 18, 2026``"""
    return f"{value.strftime('%B')} {value.day}, {value.year}"


def format_date_numeric(value: date) -> str:
    """``MM/DD/YYYY``"""
    return value.strftime("%m/%d/%Y")
