"""Tests for currency normalization (sales x exchange rates join)."""

from __future__ import annotations

from datetime import date
from typing import Any

import pandas as pd
import pytest

from retail_etl.rates import FALLBACK_RATES, fallback_rates
from retail_etl.sales.normalize import normalize_currency, rates_frame, unknown_currencies
from tests.test_utils import make_sales


@pytest.fixture
def sales() -> pd.DataFrame:
    return make_sales(
        [
            (date(2025, 1, 15), "O1", "S1", "SKU1", 2, 10.0, "USD"),
            (date(2025, 2, 10), "O2", "S1", "SKU1", 1, 5.0, "EUR"),
            (date(2025, 2, 11), "O3", "S2", "SKU2", 4, 2.5, "XYZ"),
            (date(2025, 2, 12), "O4", "S2", "SKU2", 1, 100.0, "JPY"),
        ]
    )


def test_known_currencies_are_converted(sales: pd.DataFrame) -> None:
    out = normalize_currency(sales, fallback_rates("USD"))
    assert out["rate_to_base"].tolist() == [1.0, 1.08, 1.0, 0.0066]
    assert out["amount_base"].tolist() == pytest.approx([20.0, 5.4, 10.0, 0.66])


def test_unknown_currency_defaults_to_base(sales: pd.DataFrame) -> None:
    """A currency missing from the rate table keeps its amount (rate 1.0); it is not dropped."""
    out = normalize_currency(sales, FALLBACK_RATES)
    xyz = out[out["currency"] == "XYZ"].iloc[0]
    assert xyz["rate_to_base"] == 1.0
    assert xyz["amount_base"] == xyz["amount"]
    assert unknown_currencies(sales, FALLBACK_RATES) == ["XYZ"]


@pytest.mark.parametrize(
    "rates",
    [None, {}, pd.DataFrame(columns=["currency", "rate_to_base"])],
)
def test_empty_rates_keep_every_row(sales: pd.DataFrame, rates: Any) -> None:
    out = normalize_currency(sales, rates)
    assert len(out) == len(sales)
    assert (out["rate_to_base"] == 1.0).all()
    assert out["amount_base"].tolist() == out["amount"].tolist()


def test_duplicate_rates_do_not_duplicate_rows(sales: pd.DataFrame) -> None:
    rates = pd.DataFrame({"currency": ["EUR", "eur", "USD"], "rate_to_base": [1.1, 2.0, 1.0]})
    out = normalize_currency(sales, rates)
    assert len(out) == len(sales)
    assert out.loc[out["currency"] == "EUR", "rate_to_base"].tolist() == [1.1]


def test_row_order_and_columns_preserved(sales: pd.DataFrame) -> None:
    out = normalize_currency(sales, FALLBACK_RATES)
    assert out["order_id"].tolist() == ["O1", "O2", "O3", "O4"]
    assert out.columns.tolist() == sales.columns.tolist() + ["rate_to_base", "amount_base"]


def test_input_not_mutated(sales: pd.DataFrame) -> None:
    before = sales.copy()
    normalize_currency(sales, FALLBACK_RATES)
    pd.testing.assert_frame_equal(sales, before)


def test_rates_frame_rejects_bad_table() -> None:
    with pytest.raises(ValueError, match="missing columns"):
        rates_frame(pd.DataFrame({"code": ["EUR"], "rate": [1.1]}))


def test_empty_sales() -> None:
    out = normalize_currency(make_sales([]), FALLBACK_RATES)
    assert out.empty
    assert "amount_base" in out.columns
