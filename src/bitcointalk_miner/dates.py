"""
Timestamp resolution for forum pages.

Posts show either an explicit date ("March 01, 2023, 11:59:59 PM") or a
relative one ("Today at 02:30:00 PM"). Relative dates borrow year, month and
day from the page-level reference date shown in the page header.
"""

import re
from datetime import date, datetime
from typing import Optional

MONTHS = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

EXPLICIT_DATE_RE = re.compile(
    r'^([A-Z][a-z]+) (\d{2}), (\d{4}), (\d{2}):(\d{2}):(\d{2}) (AM|PM)$'
)
REFERENCE_DATE_RE = re.compile(r'([A-Z][a-z]+) (\d{2}), (\d{4})')
TIME_OF_DAY_RE = re.compile(r'(\d{2}):(\d{2}):(\d{2}) (AM|PM)$')


def normalize_text(text: str) -> str:
    """Collapse runs of whitespace (including non-breaking spaces) into single spaces."""
    return " ".join((text or "").split())


def month_number(name: str) -> int:
    try:
        return MONTHS.index(name) + 1
    except ValueError:
        raise ValueError(f"Unknown month name: {name!r}") from None


def to_24_hour(hour: int, meridiem: str) -> int:
    """
    Convert a 12-hour clock hour to 24-hour.

    12 AM is midnight (0), 12 PM is noon (12), other PM hours get 12 added.
    """
    if not 1 <= hour <= 12:
        raise ValueError(f"Invalid 12-hour clock hour: {hour}")
    return hour % 12 + (12 if meridiem == "PM" else 0)


def parse_reference_date(text: str) -> date:
    """
    Read the page-level "today" date.

    Example:
        parse_reference_date("April 05, 2024, 03:12:45 PM")  # date(2024, 4, 5)
    """
    match = REFERENCE_DATE_RE.search(normalize_text(text))
    if not match:
        raise ValueError(f"No reference date in {text!r}")
    month, day, year = match.groups()
    return date(int(year), month_number(month), int(day))


def resolve_post_date(text: str, reference: Optional[date] = None) -> datetime:
    """
    Turn a post's date string into a datetime.

    Args:
        text: The date as shown next to the post
        reference: The page's "today" date, used for relative dates

    Returns:
        The resolved timestamp (naive, forum time)

    Raises:
        ValueError: the string matches neither form, or it is relative and
            no reference date is available

    Examples:
        resolve_post_date("March 01, 2023, 11:59:59 PM")
        # datetime(2023, 3, 1, 23, 59, 59)
        resolve_post_date("Today at 02:30:00 PM", date(2024, 4, 5))
        # datetime(2024, 4, 5, 14, 30, 0)
    """
    text = normalize_text(text)

    explicit = EXPLICIT_DATE_RE.match(text)
    if explicit:
        month, day, year, hour, minute, second, meridiem = explicit.groups()
        return datetime(
            int(year), month_number(month), int(day),
            to_24_hour(int(hour), meridiem), int(minute), int(second),
        )

    time_of_day = TIME_OF_DAY_RE.search(text)
    if not time_of_day:
        raise ValueError(f"Unrecognized post date: {text!r}")
    if reference is None:
        raise ValueError(f"Relative post date {text!r} without a reference date")

    hour, minute, second, meridiem = time_of_day.groups()
    return datetime(
        reference.year, reference.month, reference.day,
        to_24_hour(int(hour), meridiem), int(minute), int(second),
    )
