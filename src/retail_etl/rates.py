"""Exchange-rate resolution with a live-then-fallback strategy.

Rates are expressed as ``rate_to_base``: units of the base currency per one
unit of the foreign currency. Resolution is strictly either/or: a fully
parsed live document, or the static fallback table, never a mix of both.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Mapping

import pandas as pd
import requests

from retail_etl.config import DEFAULT_RATES_TIMEOUT, DEFAULT_RATES_URL
from retail_etl.exceptions import ExtractionError

logger = logging.getLogger(__name__)

# Static historical rates, expressed in USD per unit of currency.
FALLBACK_REFERENCE_CURRENCY = "USD"
FALLBACK_RATES: dict[str, float] = {
    "USD": 1.0,
    "EUR": 1.08,
    "GBP": 1.27,
    "JPY": 0.0066,
    "CAD": 0.73,
}

RATE_COLUMNS = ["currency", "rate_to_base"]

SOURCE_LIVE = "live"
SOURCE_FALLBACK = "fallback"


@dataclass(frozen=True)
class RateTable:
    """Resolved exchange rates and where they came from.

    Attributes:
        rates: Mapping currency code -> rate_to_base.
        source: ``"live"`` or ``"fallback"``.
        base_currency: Currency the caller asked to normalize to.
        reference_currency: Currency the rates are actually expressed in.
            Differs from ``base_currency`` only for fallback rates with a
            non-USD base.
        error: Why the live fetch was abandoned, for fallback tables.
    """

    rates: Mapping[str, float]
    source: str
    base_currency: str
    reference_currency: str
    error: str | None = None

    @property
    def is_live(self) -> bool:
        return self.source == SOURCE_LIVE

    @property
    def is_reconciled(self) -> bool:
        """True when the rates are expressed in the requested base currency."""
        return self.reference_currency == self.base_currency

    def to_frame(self) -> pd.DataFrame:
        """Return the rates as a ``currency, rate_to_base`` table sorted by code."""
        items = sorted(self.rates.items())
        return pd.DataFrame(
            {
                "currency": pd.Series([c for c, _ in items], dtype="object"),
                "rate_to_base": pd.Series([r for _, r in items], dtype="float64"),
            }
        )

    def __len__(self) -> int:
        return len(self.rates)


def fallback_rates(base_currency: str = FALLBACK_REFERENCE_CURRENCY, error: str | None = None) -> RateTable:
    """Return the static fallback table, unchanged, for ``base_currency``.

    The values are always USD based. For any other base the returned table
    is flagged as not reconciled and a warning is logged.
    """
    base = base_currency.upper()
    if base != FALLBACK_REFERENCE_CURRENCY:
        logger.warning(
            "Fallback exchange rates are expressed in %s, not the configured base %s; "
            "base-currency amounts will not be reconciled",
            FALLBACK_REFERENCE_CURRENCY,
            base,
        )
    return RateTable(
        rates=dict(FALLBACK_RATES),
        source=SOURCE_FALLBACK,
        base_currency=base,
        reference_currency=FALLBACK_REFERENCE_CURRENCY,
        error=error,
    )


def parse_rates_document(document: object, base_currency: str) -> dict[str, float]:
    """Convert a ``{"base": ..., "rates": {...}}`` document into rate_to_base values.

    The document's rates are foreign units per one base unit, so each value
    is inverted. The base currency is always present with rate 1.0.

    Raises:
        ExtractionError: If the document does not have the expected shape,
            names a different base, or holds a rate that is non-numeric,
            non-positive or outside the float range once inverted.

    """
    base = base_currency.upper()
    if not isinstance(document, dict):
        raise ExtractionError("Rates document is not a JSON object")

    doc_base = document.get("base", document.get("base_code"))
    if doc_base is not None and str(doc_base).upper() != base:
        raise ExtractionError(f"Rates document is based on {doc_base}, expected {base}")

    raw_rates = document.get("rates")
    if not isinstance(raw_rates, dict) or not raw_rates:
        raise ExtractionError("Rates document has no 'rates' object")

    rates: dict[str, float] = {}
    for code, value in raw_rates.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ExtractionError(f"Rate for {code!r} is not numeric: {value!r}")
        try:
            value = float(value)
            if not math.isfinite(value) or value <= 0:
                raise ExtractionError(f"Rate for {code!r} is not positive: {value!r}")
            inverted = 1.0 / value
        except (OverflowError, ValueError, ZeroDivisionError) as e:
            raise ExtractionError(f"Rate for {code!r} is out of range: {e}") from e
        if not math.isfinite(inverted):
            raise ExtractionError(f"Rate for {code!r} cannot be inverted: {value!r}")
        rates[str(code).upper()] = inverted

    rates[base] = 1.0
    return rates


def fetch_live_rates(
    base_currency: str,
    url: str = DEFAULT_RATES_URL,
    timeout: float = DEFAULT_RATES_TIMEOUT,
    session: requests.Session | None = None,
) -> RateTable:
    """Fetch current rates for ``base_currency`` from the rates endpoint.

    Args:
        base_currency: Currency to normalize to.
        url: Endpoint URL; ``{base}`` is replaced with ``base_currency``.
        timeout: Request timeout in seconds.
        session: Optional requests session (a module-level GET is used otherwise).

    Raises:
        ExtractionError: On network failure, timeout, non-2xx status or a
            malformed document.

    """
    base = base_currency.upper()
    url = url.replace("{base}", base)
    getter = session.get if session is not None else requests.get
    try:
        response = getter(url, timeout=timeout)
        response.raise_for_status()
        document = response.json()
    except requests.RequestException as e:
        raise ExtractionError(f"Exchange-rate request to {url} failed: {e}") from e
    except ValueError as e:
        raise ExtractionError(f"Exchange-rate response from {url} is not valid JSON: {e}") from e

    rates = parse_rates_document(document, base)
    logger.info("Fetched %d live exchange rate(s) for base %s", len(rates), base)
    return RateTable(rates=rates, source=SOURCE_LIVE, base_currency=base, reference_currency=base)


def resolve_rates(
    base_currency: str,
    url: str = DEFAULT_RATES_URL,
    timeout: float = DEFAULT_RATES_TIMEOUT,
    *,
    fetch: bool = True,
    session: requests.Session | None = None,
) -> RateTable:
    """Resolve exchange rates: live if possible, otherwise the fallback table.

    Never raises for fetch or parse problems and never returns an empty
    table. There is no retry; one failed attempt switches to the fallback.
    """
    if not fetch:
        logger.info("Live exchange-rate fetch disabled; using fallback rates")
        return fallback_rates(base_currency, error="live fetch disabled")

    try:
        return fetch_live_rates(base_currency, url=url, timeout=timeout, session=session)
    except ExtractionError as e:
        logger.warning("%s. Using fallback exchange rates.", e)
        return fallback_rates(base_currency, error=str(e))
