"""Silver layer: attach exchange rates and compute base-currency amounts.

Adds ``rate_to_base`` and ``amount_base`` to every sales row. Currencies
with no known rate are treated as already being in the base currency
(rate 1.0); they are reported in a warning but never dropped.
"""

from __future__ import annotations

import logging
from typing import Mapping, Union

import pandas as pd

from retail_etl.rates import RATE_COLUMNS, RateTable

logger = logging.getLogger(__name__)

DEFAULT_RATE = 1.0

RatesInput = Union[RateTable, Mapping[str, float], pd.DataFrame, None]


def rates_frame(rates: RatesInput) -> pd.DataFrame:
    """Coerce any supported rates input into a unique ``currency, rate_to_base`` table.

    Duplicate currency codes keep their first rate so the join never fans
    out sales rows.
    """
    if rates is None:
        df = pd.DataFrame(columns=RATE_COLUMNS)
    elif isinstance(rates, RateTable):
        df = rates.to_frame()
    elif isinstance(rates, pd.DataFrame):
        missing = set(RATE_COLUMNS) - set(rates.columns)
        if missing:
            raise ValueError(f"Rates table is missing columns: {sorted(missing)}")
        df = rates[RATE_COLUMNS].copy()
    else:
        df = pd.DataFrame(list(rates.items()), columns=RATE_COLUMNS)

    df["currency"] = df["currency"].astype("object").map(lambda c: str(c).strip().upper())
    df["rate_to_base"] = df["rate_to_base"].astype("float64")
    return df.drop_duplicates(subset="currency", keep="first").reset_index(drop=True)


def unknown_currencies(sales: pd.DataFrame, rates: RatesInput) -> list[str]:
    """Currencies present in ``sales`` with no rate in ``rates``, sorted."""
    known = set(rates_frame(rates)["currency"])
    return sorted(set(sales["currency"].dropna().unique()) - known)


def normalize_currency(sales: pd.DataFrame, rates: RatesInput) -> pd.DataFrame:
    """Left-join sales to rates on currency and compute ``amount_base``.

    Args:
        sales: Typed sales rows (see ``retail_etl.sales.ingest.SALES_COLUMNS``).
        rates: A RateTable, a mapping, a ``currency, rate_to_base`` DataFrame,
            or None/empty (every row then gets rate 1.0).

    Returns:
        DataFrame with the input columns plus ``rate_to_base`` and
        ``amount_base``; one output row per input row, same order.

    """
    table = rates_frame(rates)

    missing = unknown_currencies(sales, table)
    if missing:
        logger.warning(
            "No exchange rate for currency code(s) %s; treating them as base currency (rate %.1f)",
            ", ".join(missing),
            DEFAULT_RATE,
        )

    merged = sales.merge(table, on="currency", how="left", validate="many_to_one", sort=False)
    merged["rate_to_base"] = merged["rate_to_base"].fillna(DEFAULT_RATE).astype("float64")
    merged["amount_base"] = merged["amount"] * merged["rate_to_base"]

    if len(merged) != len(sales):
        raise AssertionError(
            f"Currency join changed row count from {len(sales)} to {len(merged)}"
        )
    return merged
