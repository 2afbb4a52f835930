"""Date parsing utilities."""

import re
from datetime import date, timedelta
from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

_BR_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_ISO_DATE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_COMPACT_DATE = re.compile(r"^(\d{4})(\d{2})(\d{2})")


def parse_date(date_str: str) -> date:
    """Parse a user-supplied date string into a date object.

    Supports:
    - Statement formats: "15/03/2024", "2024-03-15", "20240315"
    - Relative dates: "today", "yesterday", "tomorrow"
    - Anything else dateutil understands, read day-first

    Args:
        date_str: Date string

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    cleaned = date_str.strip().lower()
    today = date.today()

    relative_dates = {
        "today": today,
        "yesterday": today - timedelta(days=1),
        "tomorrow": today + timedelta(days=1),
    }
    if cleaned in relative_dates:
        return relative_dates[cleaned]

    try:
        return parse_statement_date(cleaned)
    except ValueError:
        pass

    try:
        return date_parser.parse(cleaned, dayfirst=True).date()
    except (ValueError, TypeError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")


def parse_statement_date(date_str: str) -> date:
    """Parse a bank statement date.

    Only the three formats banks export are accepted, so that a malformed
    row is rejected instead of guessed:
    - "DD/MM/YYYY"
    - ISO "YYYY-MM-DD"
    - compact "YYYYMMDD", optionally followed by a time part as in OFX
      ("20240315120000[-3:BRT]")

    Raises:
        ValueError: If the string matches none of the formats or is not a
            real calendar day
    """
    cleaned = date_str.strip()

    match = _BR_DATE.match(cleaned)
    if match:
        day, month, year = (int(g) for g in match.groups())
        return _build_date(year, month, day, date_str)

    match = _ISO_DATE.match(cleaned)
    if match:
        year, month, day = (int(g) for g in match.groups())
        return _build_date(year, month, day, date_str)

    match = _COMPACT_DATE.match(cleaned)
    if match:
        year, month, day = (int(g) for g in match.groups())
        return _build_date(year, month, day, date_str)

    raise ValueError(f"Could not parse date '{date_str}'")


def _build_date(year: int, month: int, day: int, original: str) -> date:
    try:
        return date(year, month, day)
    except ValueError as e:
        raise ValueError(f"Could not parse date '{original}': {e}")


def parse_month(month_str: str) -> date:
    """Parse "YYYY-MM" (or "this month"/"next month") into the month's first day."""
    cleaned = month_str.strip().lower()
    today = date.today()
    if cleaned in ("this month", "this-month"):
        return today.replace(day=1)
    if cleaned in ("next month", "next-month"):
        return (today + relativedelta(months=1)).replace(day=1)
    if cleaned in ("last month", "last-month"):
        return (today - relativedelta(months=1)).replace(day=1)

    match = re.match(r"^(\d{4})-(\d{1,2})$", cleaned)
    if not match:
        raise ValueError(f"Could not parse month '{month_str}'. Use YYYY-MM")
    return _build_date(int(match.group(1)), int(match.group(2)), 1, month_str)


def month_bounds(month: date) -> tuple[date, date]:
    """Return the first and last day of the month containing `month`."""
    start_date = month.replace(day=1)
    end_date = start_date + relativedelta(months=1) - timedelta(days=1)
    return (start_date, end_date)
