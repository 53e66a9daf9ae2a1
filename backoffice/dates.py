"""
Month normalisation helpers.

Every start_date, end_date and reading month in the back office is stored as
the first day of its calendar month. The month boundary is evaluated in
Indian Standard Time so that callers on servers in other timezones agree on
which month "now" falls in.
"""

from datetime import date, datetime
from typing import Any, Optional

import dateutil.parser
import pytz

from .errors import ValidationError

IST = pytz.timezone("Asia/Kolkata")

INVALID_DATE = "Invalid date format. Use YYYY-MM-DD."

# missing components in partial strings such as "2024-03" default to day 1
_PARSE_DEFAULT = datetime(2000, 1, 1)


def _now() -> datetime:
    return datetime.now(IST)


def _calendar_date(value: Any) -> date:
    """
    Resolve a date-like value to a calendar date in IST.

    Args:
        value: None/empty string (meaning now), date, datetime or string

    Returns:
        date: Calendar date the value falls on in IST

    Raises:
        ValidationError: If the value cannot be parsed as a date
    """
    if value is None or value == "":
        return _now().date()
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(IST)
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValidationError(INVALID_DATE)
    try:
        parsed = dateutil.parser.parse(value, default=_PARSE_DEFAULT)
    except (ValueError, OverflowError):
        raise ValidationError(INVALID_DATE)
    return _calendar_date(parsed)


def month_start_date(value: Optional[Any] = None) -> date:
    d = _calendar_date(value)
    return date(d.year, d.month, 1)


def month_start(value: Optional[Any] = None) -> str:
    """Return the first day of the value's month as ``YYYY-MM-DD``.

    With no value the current month in IST is used.
    """
    return month_start_date(value).isoformat()


def previous_month(value: Any) -> date:
    """First day of the calendar month before the one ``value`` falls in."""
    d = month_start_date(value)
    if d.month == 1:
        return date(d.year - 1, 12, 1)
    return date(d.year, d.month - 1, 1)
