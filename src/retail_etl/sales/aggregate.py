"""Gold layer: summarize normalized sales by fiscal period, store and SKU.

Output grain: one row per (year, fiscal_year, fiscal_period, month,
month_name, store, sku), sorted by fiscal_year, fiscal_period, store, sku.
"""

from __future__ import annotations

import logging

import pandas as pd

logger = logging.getLogger(__name__)

GROUP_KEYS = ["year", "fiscal_year", "fiscal_period", "month", "month_name", "store", "sku"]
SORT_KEYS = ["fiscal_year", "fiscal_period", "store", "sku"]
METRIC_COLUMNS = ["orders", "units", "sales", "sales_base"]
SUMMARY_COLUMNS = GROUP_KEYS + METRIC_COLUMNS

_CALENDAR_KEYS = ["date", "year", "fiscal_year", "fiscal_period", "month", "month_name"]


def _empty_summary() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "year": pd.Series(dtype="Int64"),
            "fiscal_year": pd.Series(dtype="Int64"),
            "fiscal_period": pd.Series(dtype="Int64"),
            "month": pd.Series(dtype="Int64"),
            "month_name": pd.Series(dtype="object"),
            "store": pd.Series(dtype="object"),
            "sku": pd.Series(dtype="object"),
            "orders": pd.Series(dtype="int64"),
            "units": pd.Series(dtype="int64"),
            "sales": pd.Series(dtype="float64"),
            "sales_base": pd.Series(dtype="float64"),
        }
    )


def aggregate_sales(
    sales: pd.DataFrame,
    calendar: pd.DataFrame,
    *,
    include_unmatched: bool = False,
) -> pd.DataFrame:
    """Join sales to the calendar and aggregate to the summary grain.

    Metrics per group:
    - orders: count of non-null order ids
    - units: sum of qty
    - sales: sum of amount (mixed origin currencies, kept for audit)
    - sales_base: sum of amount_base

    Args:
        sales: Output of ``normalize_currency``.
        calendar: Output of ``build_calendar``.
        include_unmatched: Keep rows whose date is not in the calendar as
            groups with null calendar keys (sorted last). By default they
            are left out of the summary and counted in a warning.

    Returns:
        DataFrame with ``SUMMARY_COLUMNS``.

    """
    joined = sales.merge(
        calendar[_CALENDAR_KEYS], on="date", how="left", validate="many_to_one", sort=False
    )

    unmatched = joined["fiscal_year"].isna()
    if unmatched.any():
        action = "kept with null calendar keys" if include_unmatched else "excluded from summary"
        logger.warning(
            "%d sales row(s) have dates outside the calendar; %s", int(unmatched.sum()), action
        )
        if not include_unmatched:
            joined = joined[~unmatched]

    if joined.empty:
        logger.info("No sales rows to aggregate")
        return _empty_summary()

    summary = (
        joined.groupby(GROUP_KEYS, dropna=False, sort=False)
        .agg(
            orders=("order_id", "count"),
            units=("qty", "sum"),
            sales=("amount", "sum"),
            sales_base=("amount_base", "sum"),
        )
        .reset_index()
    )

    summary = summary.sort_values(SORT_KEYS, na_position="last", kind="mergesort").reset_index(
        drop=True
    )
    logger.info("Aggregated %d sales row(s) into %d summary row(s)", len(joined), len(summary))
    return summary[SUMMARY_COLUMNS]


def label_base_currency(summary: pd.DataFrame, base_currency: str) -> pd.DataFrame:
    """Rename ``sales_base`` to ``sales_<BASE>`` for export, e.g. ``sales_USD``."""
    return summary.rename(columns={"sales_base": f"sales_{base_currency.upper()}"})
