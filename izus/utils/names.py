"""
Name, date and number helpers.

Person names on the portal are written "<last name> <first name>", dates
as "D. M. YYYY".
"""

import locale
import math
import re
from datetime import date, datetime
from typing import Iterable, Iterator, List, Optional, Sequence, TypeVar, Union

import pandas as pd

from ..models.lesson import Named


T = TypeVar('T')
N = TypeVar('N', bound=Named)

PORTAL_DATE_PATTERN = re.compile(r'^([0-9]{1,2})\. ([0-9]{1,2})\. ([0-9]{4})$')


def get_name(named: Named) -> str:
    """
    Get full name as shown on the portal.

    Examples:
        >>> get_name(Named(first_name="Jan", last_name="Novák"))
        'Novák Jan'
    """
    return f"{named.last_name} {named.first_name}"


def create_named(whole_name: str) -> Named:
    """
    Split "<last name> <first name>" into a Named.

    Only the first two words are used. A missing first name becomes "".

    Examples:
        >>> create_named("Novák Jan")
        Named(first_name='Jan', last_name='Novák')
    """
    parts = whole_name.split(' ')
    last_name = parts[0]
    first_name = parts[1] if len(parts) > 1 else ""
    return Named(first_name=first_name, last_name=last_name)


def name_sort_key(named: Named):
    """Locale-aware sort key: last name, then first name."""
    return (locale.strxfrm(named.last_name), locale.strxfrm(named.first_name))


def sort_named(items: Iterable[N]) -> List[N]:
    """
    Sort people by last name, then first name, using locale collation.

    Examples:
        >>> people = [Named("Petr", "Svoboda"), Named("Jan", "Novák"), Named("Adam", "Novák")]
        >>> [get_name(p) for p in sort_named(people)]
        ['Novák Adam', 'Novák Jan', 'Svoboda Petr']
    """
    return sorted(items, key=name_sort_key)


def date2sql(value: Union[str, date]) -> str:
    """
    Convert a portal date to YYYY-MM-DD.

    Args:
        value: date/datetime, or string in the exact "D. M. YYYY" pattern

    Returns:
        ISO date string

    Raises:
        ValueError: If the string does not match the pattern

    Examples:
        >>> date2sql("5. 3. 2024")
        '2024-03-05'
        >>> date2sql("15. 11. 2024")
        '2024-11-15'
    """
    if isinstance(value, (date, datetime)):
        day, month, year = value.day, value.month, value.year
    else:
        match = PORTAL_DATE_PATTERN.match(value)
        if not match:
            raise ValueError(f"Cannot parse date: {value!r}")
        day, month, year = (int(part) for part in match.groups())

    return f"{year:04d}-{month:02d}-{day:02d}"


def parse_portal_date(text: str) -> date:
    """
    Parse a date cell scraped from the portal.

    Every whitespace character (including non-breaking spaces) counts as a
    plain space.

    Raises:
        ValueError: If the text is not a valid portal date
    """
    normalized = re.sub(r'\s', ' ', text).strip()
    return date.fromisoformat(date2sql(normalized))


def normalize_whitespace(text: str) -> str:
    """Collapse runs of whitespace into single spaces."""
    return re.sub(r'\s+', ' ', text)


def chunks(items: Sequence[T], n: int) -> Iterator[Sequence[T]]:
    """
    Yield consecutive slices of at most ``n`` items.

    Examples:
        >>> list(chunks([1, 2, 3, 4, 5], 2))
        [[1, 2], [3, 4], [5]]
    """
    for i in range(0, len(items), n):
        yield items[i:i + n]


def average(values: Iterable[float]) -> float:
    """
    Mean of the valid values; NaN when there are none.

    Examples:
        >>> average([1, 2, float("nan"), 3])
        2.0
    """
    return float(pd.Series(list(values), dtype="float64").mean())


def strict_average(values: Iterable[float]) -> float:
    """
    Mean of all values; NaN when any value is NaN or there are none.

    Examples:
        >>> strict_average([1, float("nan"), 3])
        nan
    """
    return float(pd.Series(list(values), dtype="float64").mean(skipna=False))


def is_valid_number(value: Optional[float]) -> bool:
    """Check that a value is a number and not NaN."""
    return value is not None and not math.isnan(value)
