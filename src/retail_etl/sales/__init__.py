"""Sales domain module.

This module provides the sales stages of the pipeline:

- **ingest**: folder of CSV extracts -> typed sales rows
  (``date, order_id, store, sku, qty, unit_price, currency, amount``).
- **normalize**: sales rows + exchange rates -> rows with ``rate_to_base``
  and ``amount_base``.
- **aggregate**: normalized rows + calendar -> summary by fiscal period,
  store and SKU.

Example:
    >>> from retail_etl.sales import ingest, normalize_currency, aggregate_sales
    >>> from retail_etl.calendar_dim import build_calendar
    >>> from retail_etl.rates import resolve_rates
    >>>
    >>> sales = ingest("data/sales")
    >>> calendar = build_calendar(sales["date"], fiscal_start_month=7)
    >>> normalized = normalize_currency(sales, resolve_rates("USD"))
    >>> summary = aggregate_sales(normalized, calendar)
"""

from retail_etl.sales.aggregate import aggregate_sales, label_base_currency
from retail_etl.sales.ingest import (
    ParseResult,
    discover_files,
    ingest,
    load_sales,
    parse_file,
)
from retail_etl.sales.normalize import normalize_currency

__all__ = [
    "ParseResult",
    "aggregate_sales",
    "discover_files",
    "ingest",
    "label_base_currency",
    "load_sales",
    "normalize_currency",
    "parse_file",
]
