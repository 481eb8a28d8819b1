"""Tests for display formatting of card fields."""

from datetime import date, datetime

import pytest

from idcard.schemas.id_card import Gender
from idcard.utils.formatting import (
    PLACEHOLDER,
    add_months,
    card_validity,
    display_value,
    format_date,
    format_gender,
)


@pytest.mark.parametrize("value, expected", [
    ("1995-06-21T00:00:00Z", "21-06-1995"),
    ("1995-06-21T23:30:00+05:30", "21-06-1995"),
    ("1995-06-21", "21-06-1995"),
    ("21-06-1995", "21-06-1995"),
    (date(2001, 1, 2), "02-01-2001"),
    (datetime(2001, 1, 2, 10, 0), "02-01-2001"),
    ("", PLACEHOLDER),
    ("   ", PLACEHOLDER),
    ("not a date", PLACEHOLDER),
    ("1995-13-45", PLACEHOLDER),
    (None, PLACEHOLDER),
    (12345, PLACEHOLDER),
])
def test_format_date_is_total(value, expected):
    assert format_date(value) == expected


@pytest.mark.parametrize("value", [
    "1995-06-21T00:00:00Z", "2024-02-29", "", "garbage", None,
])
def test_format_date_is_idempotent(value):
    once = format_date(value)
    assert format_date(once) == once


@pytest.mark.parametrize("value, expected", [
    ("male", "Male"),
    ("female", "Female"),
    ("other", "Other"),
    (" Female ", "Female"),
    (Gender.OTHER, "Other"),
    ("unknown", PLACEHOLDER),
    ("", PLACEHOLDER),
    (None, PLACEHOLDER),
])
def test_format_gender_closed_lookup(value, expected):
    assert format_gender(value) == expected


def test_display_value_placeholder_for_missing():
    assert display_value(None) == PLACEHOLDER
    assert display_value("  ") == PLACEHOLDER
    assert display_value(" O+ ") == "O+"


def test_add_months_clamps_to_month_end():
    assert add_months(date(2026, 1, 31), 1) == date(2026, 2, 28)
    assert add_months(date(2026, 11, 30), 3) == date(2027, 2, 28)
    assert add_months(date(2026, 10, 19), 3) == date(2027, 1, 19)


def test_card_validity_uses_display_format():
    assert card_validity(date(2026, 10, 19), 3) == ("19-10-2026", "19-01-2027")
