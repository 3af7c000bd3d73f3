"""
Whole-year date arithmetic shared by the cleaner and the quality checks.
"""

from datetime import date
from typing import Optional


def years_between(start: Optional[date], end: date) -> Optional[int]:
    """Whole years elapsed from start to end (negative if start is later)."""
    if start is None:
        return None
    if start > end:
        return -years_between(end, start)
    years = end.year - start.year
    if (end.month, end.day) < (start.month, start.day):
        years -= 1
    return years


def subtract_years(day: date, years: int) -> date:
    """Same calendar day `years` earlier; Feb 29 falls back to Feb 28."""
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        return day.replace(year=day.year - years, day=28)
