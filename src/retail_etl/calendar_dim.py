"""Calendar dimension (dim_date) builder with fiscal-calendar attributes.

The calendar holds exactly one row per day from the first day of the month
of the earliest sales date to the last day of the month of the latest one.
When no usable sales dates are available it falls back to fixed bounds, so
the builder always returns a non-empty, gap-free calendar.

Columns:
- date (datetime.date): unique key
- year, month (1-12), month_name (e.g. "Jan"), quarter (1-4)
- week: ISO week number
- day_of_week: ISO weekday, 1=Mon .. 7=Sun
- is_weekend (bool)
- fiscal_year, fiscal_period (1-12), fiscal_quarter (1-4)

Fiscal arithmetic, for fiscal start month ``fsm``::

    fiscal_year   = year              if month >= fsm else year - 1
    fiscal_period = month - fsm + 1   if month >= fsm else month + 12 - fsm + 1
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable

import numpy as np
import pandas as pd

from retail_etl.exceptions import ConfigError
from retail_etl.utils import end_of_month, start_of_month

logger = logging.getLogger(__name__)

DEFAULT_MIN_DATE = date(2024, 1, 1)
DEFAULT_MAX_DATE = date(2026, 12, 31)

# Fixed English abbreviations; strftime("%b") is locale dependent.
MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

CALENDAR_COLUMNS = [
    "date",
    "year",
    "month",
    "month_name",
    "quarter",
    "week",
    "day_of_week",
    "is_weekend",
    "fiscal_year",
    "fiscal_period",
    "fiscal_quarter",
]


def _check_fiscal_start(fiscal_start_month: int) -> None:
    if isinstance(fiscal_start_month, bool) or not isinstance(fiscal_start_month, (int, np.integer)):
        raise ConfigError(f"fiscal_start_month must be an integer, got {fiscal_start_month!r}")
    if not 1 <= fiscal_start_month <= 12:
        raise ConfigError(f"fiscal_start_month must be between 1 and 12, got {fiscal_start_month}")


def fiscal_year_for(year: int, month: int, fiscal_start_month: int) -> int:
    """Fiscal year containing (year, month); fiscal years are named by their start year.

    Examples:
        >>> fiscal_year_for(2025, 1, 7)
        2024
        >>> fiscal_year_for(2025, 7, 7)
        2025

    """
    _check_fiscal_start(fiscal_start_month)
    return year if month >= fiscal_start_month else year - 1


def fiscal_period_for(month: int, fiscal_start_month: int) -> int:
    """Fiscal period (1-12) of a calendar month.

    Examples:
        >>> fiscal_period_for(1, 7)
        7
        >>> fiscal_period_for(7, 7)
        1

    """
    _check_fiscal_start(fiscal_start_month)
    if month >= fiscal_start_month:
        return month - fiscal_start_month + 1
    return month + (12 - fiscal_start_month + 1)


def resolve_bounds(sales_dates: Iterable[object] | None) -> tuple[date, date]:
    """Return (min, max) of the usable sales dates, or the default bounds.

    Unparseable values are ignored; if nothing usable remains, or the input
    cannot be read at all, ``DEFAULT_MIN_DATE`` and ``DEFAULT_MAX_DATE`` are
    returned.
    """
    try:
        values = list(sales_dates) if sales_dates is not None else []
        parsed = pd.to_datetime(pd.Series(values, dtype="object"), errors="coerce")
        parsed = parsed.dropna()
        if parsed.empty:
            raise ValueError("no usable sales dates")
        return parsed.min().date(), parsed.max().date()
    except (TypeError, ValueError, OverflowError) as e:
        logger.warning(
            "Could not derive calendar bounds from sales dates (%s); using %s to %s",
            e,
            DEFAULT_MIN_DATE,
            DEFAULT_MAX_DATE,
        )
        return DEFAULT_MIN_DATE, DEFAULT_MAX_DATE


def build_calendar(sales_dates: Iterable[object] | None, fiscal_start_month: int = 1) -> pd.DataFrame:
    """Build the daily calendar dimension covering the observed sales months.

    Args:
        sales_dates: Sales dates (``date``, ``Timestamp`` or ISO strings).
            May be empty.
        fiscal_start_month: Month (1-12) that opens the fiscal year.

    Returns:
        DataFrame with ``CALENDAR_COLUMNS``, one row per day, ascending.

    Raises:
        ConfigError: If ``fiscal_start_month`` is outside 1-12.

    """
    _check_fiscal_start(fiscal_start_month)
    fsm = int(fiscal_start_month)

    min_date, max_date = resolve_bounds(sales_dates)
    start = start_of_month(min_date)
    end = end_of_month(max_date)

    days = pd.date_range(start, end, freq="D")
    year = days.year.to_numpy()
    month = days.month.to_numpy()

    in_fiscal_year = month >= fsm
    fiscal_year = np.where(in_fiscal_year, year, year - 1)
    fiscal_period = np.where(in_fiscal_year, month - fsm + 1, month + (12 - fsm + 1))
    day_of_week = days.dayofweek.to_numpy() + 1

    calendar = pd.DataFrame(
        {
            "date": days.date,
            "year": pd.array(year, dtype="Int64"),
            "month": pd.array(month, dtype="Int64"),
            "month_name": [MONTH_ABBR[m - 1] for m in month],
            "quarter": pd.array((month - 1) // 3 + 1, dtype="Int64"),
            "week": pd.array(days.isocalendar().week.to_numpy(), dtype="Int64"),
            "day_of_week": pd.array(day_of_week, dtype="Int64"),
            "is_weekend": day_of_week >= 6,
            "fiscal_year": pd.array(fiscal_year, dtype="Int64"),
            "fiscal_period": pd.array(fiscal_period, dtype="Int64"),
            "fiscal_quarter": pd.array((fiscal_period - 1) // 3 + 1, dtype="Int64"),
        }
    )

    # Validations
    if not calendar["date"].is_unique:
        raise AssertionError("Duplicate dates in generated calendar")
    if len(calendar) != (end - start).days + 1:
        raise AssertionError("Gaps detected in generated calendar")

    logger.info(
        "Built calendar %s to %s (%d days, fiscal start month %d)", start, end, len(calendar), fsm
    )
    return calendar[CALENDAR_COLUMNS]
