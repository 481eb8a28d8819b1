"""
Display formatting for ID card fields.
"""

import calendar
from datetime import date, datetime
from enum import Enum
from typing import Optional, Tuple, Union

PLACEHOLDER = "—"

DISPLAY_DATE_FORMAT = "%d-%m-%Y"

GENDER_LABELS = {
    "male": "Male",
    "female": "Female",
    "other": "Other",
}


def display_value(value: Optional[str]) -> str:
    """Return the stripped value, or the placeholder when it is empty"""
    if value is None:
        return PLACEHOLDER
    text = str(value).strip()
    return text or PLACEHOLDER


def parse_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """
    Parse an ISO-8601 date/date-time or an already formatted DD-MM-YYYY date.

    The calendar date is taken as written; no timezone conversion is applied.
    Returns None for anything that cannot be parsed.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    try:
        return datetime.strptime(text, DISPLAY_DATE_FORMAT).date()
    except ValueError:
        return None


def format_date(value: Union[str, date, datetime, None]) -> str:
    """Format a date for display as DD-MM-YYYY, or the placeholder. Never raises."""
    parsed = parse_date(value)
    if parsed is None:
        return PLACEHOLDER
    return format_display_date(parsed)


def format_display_date(value: date) -> str:
    # strftime pads years < 1000 inconsistently across platforms
    return f"{value.day:02d}-{value.month:02d}-{value.year:04d}"


def format_gender(value: Union[str, Enum, None]) -> str:
    if isinstance(value, Enum):
        value = value.value
    if not isinstance(value, str):
        return PLACEHOLDER
    return GENDER_LABELS.get(value.strip().lower(), PLACEHOLDER)


def add_months(value: date, months: int) -> date:
    """Add calendar months, clamping to the last day of the target month"""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def card_validity(today: date, months: int = 3) -> Tuple[str, str]:
    """Joining and expiry display dates for a card issued today"""
    return format_display_date(today), format_display_date(add_months(today, months))
