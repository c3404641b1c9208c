"""
Date helpers for UK practice deadlines.
"""

import calendar
from datetime import date, datetime, timedelta
from typing import Optional, Union


def add_months(value: date, months: int) -> date:
    """Add calendar months, clamping the day to the end of the target month."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def advance_by_frequency(value: date, frequency: str) -> date:
    """Next occurrence of a recurring due date."""
    frequency = str(getattr(frequency, "value", frequency)).upper()
    if frequency == "WEEKLY":
        return value + timedelta(days=7)
    if frequency == "MONTHLY":
        return add_months(value, 1)
    if frequency == "QUARTERLY":
        return add_months(value, 3)
    return add_months(value, 12)


def end_of_quarter(value: date) -> date:
    quarter_end_month = ((value.month - 1) // 3 + 1) * 3
    return date(value.year, quarter_end_month, calendar.monthrange(value.year, quarter_end_month)[1])


def end_of_month(value: date) -> date:
    return date(value.year, value.month, calendar.monthrange(value.year, value.month)[1])


def self_assessment_deadline(today: date) -> date:
    """31 January after the end of the current tax year (tax years end 5 April)."""
    tax_year_end = today.year if today < date(today.year, 4, 6) else today.year + 1
    return date(tax_year_end + 1, 1, 31)


def parse_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """ISO date/datetime string (or date object) to a date. Blank gives None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if len(text) >= 10:
        text = text[:10]
    return date.fromisoformat(text)
