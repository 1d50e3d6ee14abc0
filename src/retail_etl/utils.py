"""Shared utilities for the retail sales ETL.

This module provides small, pure helpers reused across pipeline stages:

- Column name canonicalization for schema drift between extracts
- Month boundary arithmetic for the calendar dimension
- Duration formatting for run logs

Examples:
    >>> import pandas as pd
    >>> normalize_column_names(pd.DataFrame(columns=["Order ID", "Unit-Price"])).columns.tolist()
    ['order_id', 'unit_price']

"""

from __future__ import annotations

import calendar
import re
from datetime import date

import pandas as pd

_SEPARATOR_RE = re.compile(r"[ \-]")


def normalize_column_name(name: object) -> str:
    """Lower-case a column name and replace spaces and hyphens with underscores."""
    return _SEPARATOR_RE.sub("_", str(name).lower())


def normalize_column_names(df: pd.DataFrame) -> pd.DataFrame:
    """Return a copy of ``df`` with canonical column names.

    Row count, row order and cell values are unchanged. Already-normalized
    or empty frames pass through untouched.
    """
    return df.rename(columns=normalize_column_name)


def start_of_month(d: date) -> date:
    """First day of the month containing ``d``."""
    return d.replace(day=1)


def end_of_month(d: date) -> date:
    """Last day of the month containing ``d``.

    Examples:
        >>> end_of_month(date(2024, 2, 10))
        datetime.date(2024, 2, 29)

    """
    return d.replace(day=calendar.monthrange(d.year, d.month)[1])


def format_duration(seconds: float) -> str:
    """Format a duration in seconds as a human-readable string.

    Examples:
        >>> format_duration(90.5)
        '1m 30.5s'
        >>> format_duration(45.2)
        '45.2s'

    """
    mins, secs = divmod(seconds, 60.0)
    if mins >= 1:
        return f"{int(mins)}m {secs:04.1f}s"
    else:
        return f"{secs:.1f}s"
