"""End-to-end retail sales pipeline.

Runs the stages in data-dependency order over immutable intermediate
tables::

    ingest -> calendar -> rates -> currency normalization -> aggregation

Example:
    >>> from retail_etl import PipelineConfig, run_pipeline
    >>> config = PipelineConfig(folder="data/sales", fiscal_start_month=7)
    >>> result = run_pipeline(config)
    >>> result.summary.head()
    >>> result.metadata["rate_source"]
    'live'
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

import pandas as pd
import requests

from retail_etl.calendar_dim import build_calendar
from retail_etl.config import PipelineConfig
from retail_etl.rates import RateTable, resolve_rates
from retail_etl.sales.aggregate import aggregate_sales, label_base_currency
from retail_etl.sales.ingest import load_sales
from retail_etl.sales.normalize import normalize_currency, unknown_currencies
from retail_etl.utils import format_duration

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Result of one pipeline run.

    Attributes:
        summary: Aggregated table (see ``retail_etl.sales.aggregate.SUMMARY_COLUMNS``).
        sales: Normalized sales rows with ``rate_to_base`` and ``amount_base``.
        calendar: Calendar dimension used for the join.
        rates: Resolved exchange rates, including their source.
        metadata: Run diagnostics (file outcomes, rate source, counts, timing).
    """

    summary: pd.DataFrame
    sales: pd.DataFrame
    calendar: pd.DataFrame
    rates: RateTable
    metadata: dict[str, object] = field(default_factory=dict)

    def labeled_summary(self) -> pd.DataFrame:
        """Summary with ``sales_base`` renamed to ``sales_<BASE>``."""
        return label_base_currency(self.summary, self.rates.base_currency)


def run_pipeline(
    config: PipelineConfig,
    *,
    session: requests.Session | None = None,
) -> PipelineResult:
    """Run the full pipeline for ``config``.

    Args:
        config: Run configuration.
        session: Optional requests session used for the exchange-rate fetch.

    Returns:
        PipelineResult with the summary and all intermediate tables.

    Raises:
        ConfigError: If the configured folder does not exist.
        DataQualityError: If a parsed file holds unconvertible values and
            ``config.on_bad_rows == "raise"``.

    """
    started = time.monotonic()
    folder = config.ensure_folder()

    report = load_sales(folder, max_workers=config.max_workers, on_bad_rows=config.on_bad_rows)
    sales = report.sales

    calendar = build_calendar(sales["date"], config.fiscal_start_month)

    rates = resolve_rates(
        config.base_currency,
        url=config.rates_url,
        timeout=config.rates_timeout,
        fetch=config.fetch_rates,
        session=session,
    )
    logger.info("Using %s exchange rates (%d currencies)", rates.source, len(rates))

    missing_rates = unknown_currencies(sales, rates)
    normalized = normalize_currency(sales, rates)

    calendar_dates = set(calendar["date"])
    unmatched_rows = int((~normalized["date"].isin(calendar_dates)).sum())
    summary = aggregate_sales(normalized, calendar)

    elapsed = time.monotonic() - started
    logger.info("Pipeline finished in %s: %d summary row(s)", format_duration(elapsed), len(summary))

    metadata: dict[str, object] = {
        "files_found": len(report.files),
        "files_parsed": len(report.parsed),
        "files_failed": [{"file": r.path.name, "reason": r.reason} for r in report.failed],
        "rows_ingested": len(sales),
        "rows_dropped": report.rows_dropped,
        "rate_source": rates.source,
        "rate_reference_currency": rates.reference_currency,
        "rate_error": rates.error,
        "unknown_currencies": missing_rates,
        "unmatched_rows": unmatched_rows,
        "base_currency": config.base_currency,
        "fiscal_start_month": config.fiscal_start_month,
        "elapsed_seconds": round(elapsed, 3),
    }

    return PipelineResult(
        summary=summary,
        sales=normalized,
        calendar=calendar,
        rates=rates,
        metadata=metadata,
    )
