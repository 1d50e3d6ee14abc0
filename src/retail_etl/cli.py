"""Command-line entry point: ``retail-etl``.

Usage:
    retail-etl --folder ./extracts --fiscal-start-month 7 --base-currency USD -o summary.csv
    retail-etl --config pipeline.json --offline --verbose

Exit codes:
    0 on success
    1 on data-quality errors
    2 on configuration errors
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Any, Sequence

import pandas as pd

from retail_etl.config import PipelineConfig
from retail_etl.exceptions import ConfigError, DataQualityError
from retail_etl.pipeline import run_pipeline

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="retail-etl",
        description=(
            "Ingest per-period retail sales CSV extracts, normalize currencies and "
            "summarize sales by fiscal period, store and SKU."
        ),
    )
    p.add_argument("--config", default=None, help="JSON config file. Flags override its values.")
    p.add_argument("--folder", default=None, help="Folder containing the sales CSV extracts.")
    p.add_argument(
        "--fiscal-start-month",
        type=int,
        default=None,
        help="Month (1-12) that opens the fiscal year (default: 1).",
    )
    p.add_argument("--base-currency", default=None, help="Base currency code (default: USD).")
    p.add_argument("-o", "--output", default=None, help="Write the summary to this CSV path.")
    p.add_argument(
        "--offline",
        action="store_true",
        help="Skip the live exchange-rate fetch and use the fallback table.",
    )
    p.add_argument("--workers", type=int, default=None, help="Threads used to parse files.")
    p.add_argument(
        "--drop-bad-rows",
        action="store_true",
        help="Drop rows with unconvertible values instead of failing the run.",
    )
    p.add_argument(
        "--verbose",
        "--debug",
        action="store_true",
        dest="verbose",
        help="Verbose/debug logging output.",
    )
    return p


def _config_from_args(args: argparse.Namespace) -> PipelineConfig:
    data: dict[str, Any] = {}
    if args.config:
        base = PipelineConfig.from_json(args.config)
        data = {
            "folder": base.folder,
            "fiscal_start_month": base.fiscal_start_month,
            "base_currency": base.base_currency,
            "rates_url": base.rates_url,
            "rates_timeout": base.rates_timeout,
            "fetch_rates": base.fetch_rates,
            "max_workers": base.max_workers,
            "on_bad_rows": base.on_bad_rows,
        }

    overrides = {
        "folder": args.folder,
        "fiscal_start_month": args.fiscal_start_month,
        "base_currency": args.base_currency,
        "max_workers": args.workers,
    }
    data.update({k: v for k, v in overrides.items() if v is not None})
    if args.offline:
        data["fetch_rates"] = False
    if args.drop_bad_rows:
        data["on_bad_rows"] = "drop"
    return PipelineConfig.from_mapping(data)


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(levelname)s: %(message)s",
    )

    try:
        config = _config_from_args(args)
        result = run_pipeline(config)
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2
    except DataQualityError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    summary = result.labeled_summary()
    if args.output:
        summary.to_csv(args.output, index=False, encoding="utf-8")
        print(f"Wrote: {args.output} ({len(summary)} rows)")
    else:
        with pd.option_context("display.float_format", lambda v: f"{v:,.2f}"):
            print(summary.to_string(index=False))

    failed = result.metadata["files_failed"]
    if failed:
        print(f"\nSkipped {len(failed)} unreadable file(s):")
        for item in failed:
            print(f" - {item['file']}: {item['reason']}")
    if not result.rates.is_live:
        print(f"\nExchange rates: fallback table ({result.rates.error})")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
