"""Bronze to silver: read per-period sales extracts into typed sales rows.

Every ``*.csv`` file in the input folder is parsed on its own. A file that
cannot be read (bad encoding, ragged rows, wrong column count, missing
expected headers) is skipped with a warning and never affects the rows
produced from the other files. Values that cannot be typed in a file that
did parse are a data-quality problem and abort the run by default.

Output grain: one row per input record, in file discovery order then
in-file order, with columns::

    date, order_id, store, sku, qty, unit_price, currency, amount
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

import numpy as np
import pandas as pd

from retail_etl.exceptions import ConfigError, DataQualityError
from retail_etl.utils import normalize_column_names

logger = logging.getLogger(__name__)

EXPECTED_COLUMN_COUNT = 7

# normalized header spelling -> SalesRow field
FIELD_MAP = {
    "date": "date",
    "orderid": "order_id",
    "store": "store",
    "sku": "sku",
    "qty": "qty",
    "unitprice": "unit_price",
    "currency": "currency",
}

SALES_COLUMNS = ["date", "order_id", "store", "sku", "qty", "unit_price", "currency", "amount"]

# Reported problems per file are capped in error messages.
_MAX_REPORTED_PROBLEMS = 5

# whole-number quantities at or beyond this magnitude do not fit in int64
_INT64_LIMIT = float(np.iinfo("int64").max)


@dataclass(frozen=True)
class ParseResult:
    """Outcome of reading one input file.

    Exactly one of ``frame`` and ``reason`` is set.

    Attributes:
        path: File that was read.
        frame: Parsed table when the read succeeded.
        reason: Human-readable failure description otherwise.
    """

    path: Path
    frame: pd.DataFrame | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.frame is not None

    @classmethod
    def failure(cls, path: Path, reason: str) -> ParseResult:
        return cls(path=path, reason=reason)


@dataclass
class IngestReport:
    """Typed sales rows plus per-file bookkeeping for one ingestion run."""

    sales: pd.DataFrame
    files: list[ParseResult] = field(default_factory=list)
    rows_dropped: int = 0

    @property
    def failed(self) -> list[ParseResult]:
        return [r for r in self.files if not r.ok]

    @property
    def parsed(self) -> list[ParseResult]:
        return [r for r in self.files if r.ok]


def discover_files(folder: str | Path) -> list[Path]:
    """List the ``.csv`` files (case-insensitive extension) directly in ``folder``.

    Files are returned sorted by name so discovery order is stable across
    platforms. Other entries, including sub-directories, are ignored.

    Raises:
        ConfigError: If ``folder`` does not exist or is not a directory.

    """
    folder = Path(folder)
    if not folder.is_dir():
        raise ConfigError(f"Sales folder not found or not a directory: {folder}")

    files = sorted(
        (p for p in folder.iterdir() if p.is_file() and p.suffix.lower() == ".csv"),
        key=lambda p: p.name,
    )
    logger.debug("Discovered %d CSV file(s) in %s", len(files), folder)
    return files


def parse_file(path: str | Path) -> ParseResult:
    """Read one file as comma-delimited UTF-8 text with exactly seven columns.

    The header row is kept as the first data row; see :func:`promote_headers`.
    Never raises: any read problem is returned as a failed ParseResult.
    """
    path = Path(path)
    try:
        raw = pd.read_csv(
            path,
            header=None,
            sep=",",
            dtype=str,
            encoding="utf-8-sig",
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except (OSError, UnicodeDecodeError, pd.errors.EmptyDataError, pd.errors.ParserError) as e:
        return ParseResult.failure(path, f"{type(e).__name__}: {e}")
    except ValueError as e:
        return ParseResult.failure(path, f"unreadable: {e}")

    if raw.shape[1] != EXPECTED_COLUMN_COUNT:
        return ParseResult.failure(
            path, f"expected {EXPECTED_COLUMN_COUNT} columns, found {raw.shape[1]}"
        )
    if raw.isna().any().any():
        return ParseResult.failure(path, "ragged rows (fewer fields than the header)")

    return ParseResult(path=path, frame=raw)


def promote_headers(result: ParseResult) -> ParseResult:
    """Use the first row as headers and select the expected fields by name.

    Header matching ignores case, spaces, hyphens and underscores, so
    ``Order ID``, ``order-id`` and ``OrderID`` all map to ``order_id``.
    A file missing any expected field is rejected rather than null-filled.
    """
    if not result.ok:
        return result

    raw = result.frame
    table = raw.iloc[1:].reset_index(drop=True)
    table.columns = [str(h).strip() for h in raw.iloc[0].tolist()]
    table = normalize_column_names(table)

    keys = [c.replace("_", "") for c in table.columns]
    if len(set(keys)) != len(keys):
        return ParseResult.failure(result.path, f"duplicate column names: {list(table.columns)}")

    lookup = dict(zip(keys, table.columns))
    missing = [name for name in FIELD_MAP if name not in lookup]
    if missing:
        return ParseResult.failure(result.path, f"missing expected columns: {', '.join(missing)}")

    table = table[[lookup[name] for name in FIELD_MAP]]
    table.columns = list(FIELD_MAP.values())
    return ParseResult(path=result.path, frame=table)


def coerce_types(
    table: pd.DataFrame,
    source: str = "<table>",
    on_bad_rows: str = "raise",
) -> tuple[pd.DataFrame, int]:
    """Type the seven text fields and derive ``amount``.

    Args:
        table: Text table with the SalesRow field names.
        source: Name used in diagnostics (usually the file name).
        on_bad_rows: ``"raise"`` or ``"drop"``.

    Returns:
        Tuple of (typed DataFrame, number of dropped rows).

    Raises:
        DataQualityError: If a value cannot be converted and
            ``on_bad_rows == "raise"``.

    """
    text = pd.DataFrame({c: table[c].astype(str).str.strip() for c in table.columns})

    dates = pd.to_datetime(text["date"], format="ISO8601", errors="coerce")
    qty = pd.to_numeric(text["qty"], errors="coerce")
    price = pd.to_numeric(text["unit_price"], errors="coerce")

    bad = pd.DataFrame(
        {
            "date": dates.isna(),
            "qty": qty.isna() | (qty % 1 != 0) | (qty.abs() >= _INT64_LIMIT),
            "unit_price": price.isna(),
        }
    )
    bad_rows = bad.any(axis=1)

    dropped = 0
    if bad_rows.any():
        problems = [
            (int(idx) + 2, column, text.at[idx, column])  # +2: header line, 1-based
            for idx in bad.index[bad_rows]
            for column in bad.columns
            if bad.at[idx, column]
        ]
        shown = "; ".join(
            f"line {line} {column}={value!r}" for line, column, value in problems[:_MAX_REPORTED_PROBLEMS]
        )
        if on_bad_rows == "raise":
            raise DataQualityError(
                f"{source}: {len(problems)} value(s) could not be converted ({shown})",
                source=source,
                problems=problems,
            )
        dropped = int(bad_rows.sum())
        logger.warning("%s: dropping %d row(s) with unconvertible values (%s)", source, dropped, shown)
        keep = ~bad_rows
        text, dates, qty, price = text[keep], dates[keep], qty[keep], price[keep]

    out = pd.DataFrame(
        {
            "date": dates.dt.date,
            "order_id": text["order_id"].replace("", pd.NA),
            "store": text["store"],
            "sku": text["sku"],
            "qty": qty.astype("int64"),
            "unit_price": price.astype("float64"),
            "currency": text["currency"].str.upper(),
        }
    )
    out["amount"] = out["qty"] * out["unit_price"]
    return out.reset_index(drop=True), dropped


def _empty_sales() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "date": pd.Series(dtype="object"),
            "order_id": pd.Series(dtype="object"),
            "store": pd.Series(dtype="object"),
            "sku": pd.Series(dtype="object"),
            "qty": pd.Series(dtype="int64"),
            "unit_price": pd.Series(dtype="float64"),
            "currency": pd.Series(dtype="object"),
            "amount": pd.Series(dtype="float64"),
        }
    )


def parse_files(files: Sequence[Path], max_workers: int = 1) -> list[ParseResult]:
    """Parse and header-promote ``files``, preserving their order.

    With ``max_workers > 1`` files are read on a thread pool; results are
    still returned in the order of ``files``.
    """
    if max_workers > 1 and len(files) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            parsed = list(pool.map(parse_file, files))
    else:
        parsed = [parse_file(f) for f in files]
    return [promote_headers(r) for r in parsed]


def load_sales(
    folder: str | Path,
    *,
    max_workers: int = 1,
    on_bad_rows: str = "raise",
) -> IngestReport:
    """Ingest every CSV extract in ``folder`` and report per-file outcomes.

    Raises:
        ConfigError: If the folder is missing.
        DataQualityError: If a parsed file holds unconvertible values and
            ``on_bad_rows == "raise"``.

    """
    files = discover_files(folder)
    logger.info("Ingesting %d CSV file(s) from %s", len(files), folder)

    results = parse_files(files, max_workers=max_workers)

    frames: list[pd.DataFrame] = []
    dropped = 0
    for result in results:
        if not result.ok:
            logger.warning("Skipping %s: %s", result.path.name, result.reason)
            continue
        typed, n_dropped = coerce_types(result.frame, result.path.name, on_bad_rows)
        dropped += n_dropped
        logger.debug("Parsed %s (%d rows)", result.path.name, len(typed))
        frames.append(typed)

    sales = pd.concat(frames, ignore_index=True) if frames else _empty_sales()
    logger.info(
        "Ingested %d row(s) from %d of %d file(s)",
        len(sales),
        len(frames),
        len(files),
    )
    return IngestReport(sales=sales[SALES_COLUMNS], files=results, rows_dropped=dropped)


def ingest(
    folder: str | Path,
    *,
    max_workers: int = 1,
    on_bad_rows: str = "raise",
) -> pd.DataFrame:
    """Return typed sales rows from all readable extracts in ``folder``."""
    return load_sales(folder, max_workers=max_workers, on_bad_rows=on_bad_rows).sales
