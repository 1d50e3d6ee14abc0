"""Unit tests for sales ingestion.

Tests file discovery, per-file failure isolation, header normalization,
type coercion and the bad-row policy.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path
from tempfile import TemporaryDirectory
from typing import Generator

import pandas as pd
import pytest

from retail_etl.exceptions import ConfigError, DataQualityError
from retail_etl.sales.ingest import (
    SALES_COLUMNS,
    discover_files,
    ingest,
    load_sales,
    parse_file,
    promote_headers,
)
from tests.test_utils import write_garbage, write_sales_csv, write_scenario


@pytest.fixture
def folder() -> Generator[Path, None, None]:
    """Create a temporary input folder."""
    with TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


class TestDiscovery:
    def test_filters_csv_case_insensitively(self, folder: Path) -> None:
        """Only files with a .csv extension (any case) are discovered, sorted by name."""
        write_sales_csv(folder, "b_sales.CSV", [])
        write_sales_csv(folder, "a_sales.csv", [])
        (folder / "notes.txt").write_text("not sales")
        (folder / "sales.csv.bak").write_text("old")
        (folder / "archive.csv").mkdir()

        names = [p.name for p in discover_files(folder)]
        assert names == ["a_sales.csv", "b_sales.CSV"]

    def test_missing_folder_is_config_error(self, folder: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            discover_files(folder / "missing")


class TestParseFile:
    def test_valid_file_keeps_header_row(self, folder: Path) -> None:
        path = write_sales_csv(folder, "ok.csv", ["2025-01-15,O1,S1,SKU1,2,10.00,USD"])
        result = parse_file(path)
        assert result.ok
        assert result.reason is None
        assert result.frame.shape == (2, 7)
        assert result.frame.iloc[0, 0] == "Date"

    def test_quoted_fields(self, folder: Path) -> None:
        path = write_sales_csv(folder, "quoted.csv", ['2025-01-15,"O,1","Main St, 5",SKU1,2,10.00,USD'])
        result = promote_headers(parse_file(path))
        assert result.ok
        assert result.frame.loc[0, "order_id"] == "O,1"
        assert result.frame.loc[0, "store"] == "Main St, 5"

    def test_wrong_column_count_fails(self, folder: Path) -> None:
        path = write_sales_csv(folder, "six.csv", ["2025-01-15,O1,S1,SKU1,2,10.00"], header="a,b,c,d,e,f")
        result = parse_file(path)
        assert not result.ok
        assert result.frame is None
        assert "expected 7 columns" in result.reason

    def test_extra_field_fails(self, folder: Path) -> None:
        path = write_sales_csv(folder, "extra.csv", ["2025-01-15,O1,S1,SKU1,2,10.00,USD,oops"])
        assert not parse_file(path).ok

    def test_binary_file_fails(self, folder: Path) -> None:
        assert not parse_file(write_garbage(folder)).ok

    def test_empty_file_fails(self, folder: Path) -> None:
        path = folder / "empty.csv"
        path.write_text("")
        assert not parse_file(path).ok

    def test_missing_file_fails(self, folder: Path) -> None:
        result = parse_file(folder / "gone.csv")
        assert not result.ok

    def test_parsing_is_repeatable(self, folder: Path) -> None:
        """Parsing the same file twice yields identical tables."""
        path = write_sales_csv(folder, "ok.csv", ["2025-01-15,O1,S1,SKU1,2,10.00,USD"])
        pd.testing.assert_frame_equal(parse_file(path).frame, parse_file(path).frame)


class TestPromoteHeaders:
    def test_header_variants_are_matched(self, folder: Path) -> None:
        """Spaces, hyphens, underscores and case in headers are reconciled."""
        path = write_sales_csv(
            folder,
            "drift.csv",
            ["2025-01-15,O1,S1,SKU1,2,10.00,usd"],
            header="DATE,Order ID,store,Sku,QTY,unit-price,Currency",
        )
        result = promote_headers(parse_file(path))
        assert result.ok
        assert result.frame.columns.tolist() == SALES_COLUMNS[:-1]

    def test_columns_selected_by_name_not_position(self, folder: Path) -> None:
        path = write_sales_csv(
            folder,
            "shuffled.csv",
            ["USD,2,2025-01-15,O1,S1,SKU1,10.00"],
            header="Currency,Qty,Date,OrderID,Store,SKU,UnitPrice",
        )
        frame = promote_headers(parse_file(path)).frame
        assert frame.loc[0, "date"] == "2025-01-15"
        assert frame.loc[0, "currency"] == "USD"

    def test_missing_expected_column_rejects_file(self, folder: Path) -> None:
        path = write_sales_csv(
            folder,
            "renamed.csv",
            ["2025-01-15,O1,S1,SKU1,2,10.00,USD"],
            header="Date,OrderID,Store,SKU,Qty,Price,Currency",
        )
        result = promote_headers(parse_file(path))
        assert not result.ok
        assert "unitprice" in result.reason


class TestIngest:
    def test_types_and_amount(self, folder: Path) -> None:
        write_sales_csv(
            folder,
            "jan.csv",
            ["2025-01-15,O1,S1,SKU1,2,10.50,usd", "2025-01-16,,S2,SKU2,3,1.00,eur"],
        )
        sales = ingest(folder)

        assert sales.columns.tolist() == SALES_COLUMNS
        assert sales["date"].tolist() == [date(2025, 1, 15), date(2025, 1, 16)]
        assert sales["qty"].tolist() == [2, 3]
        assert sales["qty"].dtype == "int64"
        assert sales["amount"].tolist() == pytest.approx([21.0, 3.0])
        assert sales["currency"].tolist() == ["USD", "EUR"]
        assert sales.loc[0, "order_id"] == "O1"
        assert pd.isna(sales.loc[1, "order_id"])

    def test_order_follows_discovery_then_file(self, folder: Path) -> None:
        write_scenario(folder)
        write_sales_csv(folder, "sales_jan.csv", ["2025-01-15,O1,S1,SKU1,2,10.00,USD", "2025-01-20,O3,S2,SKU1,1,1.00,USD"])
        sales = ingest(folder)
        # sales_feb.csv sorts before sales_jan.csv
        assert sales["order_id"].tolist() == ["O2", "O1", "O3"]

    def test_bad_file_does_not_affect_others(self, folder: Path) -> None:
        """A corrupted file never changes the rows derived from valid files."""
        write_scenario(folder)
        clean = ingest(folder)

        write_garbage(folder)
        write_sales_csv(folder, "sales_short.csv", ["x,y"], header="only,two")
        report = load_sales(folder)

        pd.testing.assert_frame_equal(report.sales, clean)
        assert len(report.files) == 4
        assert sorted(r.path.name for r in report.failed) == ["sales_bad.csv", "sales_short.csv"]

    def test_header_only_and_empty_folder(self, folder: Path) -> None:
        write_sales_csv(folder, "header_only.csv", [])
        sales = ingest(folder)
        assert sales.empty
        assert sales.columns.tolist() == SALES_COLUMNS

    def test_parallel_matches_sequential(self, folder: Path) -> None:
        for month in range(1, 10):
            write_sales_csv(folder, f"sales_{month:02d}.csv", [f"2025-{month:02d}-01,O{month},S1,SKU1,{month},1.00,USD"])
        pd.testing.assert_frame_equal(ingest(folder, max_workers=4), ingest(folder))

    def test_uncoercible_value_fails_run(self, folder: Path) -> None:
        """Type-coercion problems in a parsed file are fatal by default."""
        write_scenario(folder)
        write_sales_csv(folder, "sales_mar.csv", ["2025-03-01,O9,S1,SKU1,two,1.00,USD"])

        with pytest.raises(DataQualityError) as excinfo:
            ingest(folder)
        assert excinfo.value.source == "sales_mar.csv"
        assert excinfo.value.problems == [(2, "qty", "two")]

    @pytest.mark.parametrize(
        "row",
        [
            "not-a-date,O9,S1,SKU1,1,1.00,USD",
            "2025-03-01,O9,S1,SKU1,1.5,1.00,USD",
            "2025-03-01,O9,S1,SKU1,1,free,USD",
            "2025-03-01,O9,S1,SKU1,1e20,10.00,USD",
            "2025-03-01,O9,S1,SKU1,-1e20,10.00,USD",
        ],
    )
    def test_each_typed_column_is_checked(self, folder: Path, row: str) -> None:
        write_sales_csv(folder, "sales_mar.csv", [row])
        with pytest.raises(DataQualityError):
            ingest(folder)

    def test_drop_policy_discards_bad_rows(self, folder: Path) -> None:
        write_sales_csv(
            folder,
            "sales_mar.csv",
            ["2025-03-01,O8,S1,SKU1,1,1.00,USD", "2025-03-02,O9,S1,SKU1,two,1.00,USD"],
        )
        report = load_sales(folder, on_bad_rows="drop")
        assert report.rows_dropped == 1
        assert report.sales["order_id"].tolist() == ["O8"]


def test_duplicate_headers_reject_file() -> None:
    with TemporaryDirectory() as tmpdir:
        path = write_sales_csv(
            Path(tmpdir),
            "dupes.csv",
            ["2025-01-15,O1,S1,SKU1,2,2,USD"],
            header="Date,OrderID,Store,SKU,Qty,qty,Currency",
        )
        result = promote_headers(parse_file(path))
    assert not result.ok
    assert "duplicate" in result.reason
