"""
Cleaner Utilities - date layout discovery and parsing.

The raw export stores dates as text with mixed separators ('/' and '-').
Rather than assume a layout, the separators and the position of year, month
and day are inferred from the values themselves.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, List, Optional, Sequence, Set, Tuple

import pandas as pd

from hr_etl.common.date_math import subtract_years, years_between
from hr_etl.common.exceptions import DateFormatError

logger = logging.getLogger(__name__)

CANDIDATE_SEPARATORS = ("/", "-")

# termdate is exported as a UTC timestamp, only for employees who left
TERMDATE_FORMAT = "%Y-%m-%d %H:%M:%S UTC"

STRPTIME_CODES = {"year": "%Y", "month": "%m", "day": "%d"}


@dataclass(frozen=True)
class DateOrder:
    """Positional order of the three date components, e.g. month-day-year."""
    parts: Tuple[str, str, str]

    def strptime_format(self, separator: str) -> str:
        return separator.join(STRPTIME_CODES[p] for p in self.parts)

    def __str__(self) -> str:
        return "-".join(p[0] * (4 if p == "year" else 2) for p in self.parts)


MONTH_DAY_YEAR = DateOrder(("month", "day", "year"))


def _is_blank(value) -> bool:
    if value is None:
        return True
    try:
        if pd.isna(value):
            return True
    except (TypeError, ValueError):
        pass
    return str(value).strip() == ""


def discover_separators(
    values: Iterable,
    candidates: Sequence[str] = CANDIDATE_SEPARATORS
) -> Set[str]:
    """
    Find which candidate separator characters occur in a column.

    Args:
        values: Raw column values
        candidates: Separator characters to look for

    Returns:
        Set of candidates present in at least one non-blank value
    """
    found = set()
    for value in values:
        if _is_blank(value):
            continue
        found.update(c for c in candidates if c in str(value))
        if len(found) == len(candidates):
            break
    return found


def split_date_components(value, separators: Iterable[str]) -> Optional[List[str]]:
    """Split on the first separator present; None unless exactly three parts result."""
    if _is_blank(value):
        return None
    text = str(value).strip()
    for sep in separators:
        if sep in text:
            parts = text.split(sep)
            return parts if len(parts) == 3 else None
    return None


def _numeric_components(values: Iterable, separators: List[str]) -> List[List[int]]:
    rows = []
    for value in values:
        parts = split_date_components(value, separators)
        if parts is not None and all(p.isdigit() for p in parts):
            rows.append([int(p) for p in parts])
    return rows


def infer_date_order(values: Iterable, separators: Iterable[str]) -> DateOrder:
    """
    Infer year/month/day positions from the values themselves.

    Each value with exactly one component above 31 votes for that position
    as the year, and the position with the most votes wins. Values that
    disagree with the winner (another layout, a day typo) are ignored from
    then on and get nulled at parse time. Of the two remaining positions,
    the one exceeding 12 in more of the agreeing values is the day. If
    neither ever does, the layout is ambiguous and month-first is assumed.

    Raises:
        DateFormatError: if no single position can be identified as the year
    """
    rows = _numeric_components(values, sorted(separators))

    year_votes = [0, 0, 0]
    for numbers in rows:
        above = [i for i, n in enumerate(numbers) if n > 31]
        if len(above) == 1:
            year_votes[above[0]] += 1

    best = max(year_votes)
    if best == 0 or year_votes.count(best) > 1:
        raise DateFormatError(
            "Cannot identify the year component",
            details={"year_votes": year_votes, "parsed_values": len(rows)},
        )
    year_pos = year_votes.index(best)
    others = [i for i in range(3) if i != year_pos]

    agreeing = [n for n in rows if n[year_pos] > 31 and all(n[i] <= 31 for i in others)]
    day_votes = {i: sum(1 for n in agreeing if n[i] > 12) for i in others}
    ignored = len(rows) - len(agreeing)
    if ignored:
        logger.warning(f"{ignored} values disagree with the year position {year_pos}, ignored for inference")

    first, second = others
    if day_votes[first] == day_votes[second] == 0:
        logger.warning(f"Month/day order is ambiguous (year votes {year_votes}), assuming month first")
        month_pos, day_pos = first, second
    elif day_votes[first] == day_votes[second]:
        raise DateFormatError(
            "Cannot tell the day component from the month component",
            details={"year_votes": year_votes, "day_votes": day_votes},
        )
    else:
        day_pos = first if day_votes[first] > day_votes[second] else second
        month_pos = second if day_pos == first else first

    parts = [None, None, None]
    parts[year_pos] = "year"
    parts[month_pos] = "month"
    parts[day_pos] = "day"
    order = DateOrder(tuple(parts))
    logger.info(f"Inferred date order {order} (year votes {year_votes}, day votes {day_votes})")
    return order


def parse_delimited_date(
    value,
    order: DateOrder = MONTH_DAY_YEAR,
    separators: Iterable[str] = CANDIDATE_SEPARATORS
) -> Optional[date]:
    """
    Parse a delimited date string according to the discovered order.

    Returns None for blanks, values with no known separator and impossible
    calendar dates. Never raises.
    """
    if _is_blank(value):
        return None
    text = str(value).strip()
    for sep in separators:
        if sep in text:
            try:
                return datetime.strptime(text, order.strptime_format(sep)).date()
            except ValueError:
                return None
    return None


def parse_termdate(value, fmt: str = TERMDATE_FORMAT) -> Optional[date]:
    """
    Parse a termination timestamp and keep its date component.

    Examples:
        "" -> None
        "2021-03-15 00:00:00 UTC" -> date(2021, 3, 15)
    """
    if _is_blank(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip(), fmt).date()
    except ValueError:
        return None
