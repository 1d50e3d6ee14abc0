"""Example: Fiscal sales summary from a folder of monthly extracts

This example demonstrates the stage-by-stage API and the one-call pipeline
for turning per-period sales CSV files into a currency-normalized summary.

Prerequisites:
- A folder of CSV extracts with the columns
  Date, OrderID, Store, SKU, Qty, UnitPrice, Currency
- Network access for live exchange rates (otherwise the fallback table is used)
"""

from pathlib import Path

from retail_etl import PipelineConfig, run_pipeline
from retail_etl.calendar_dim import build_calendar
from retail_etl.rates import resolve_rates
from retail_etl.sales import aggregate_sales, load_sales, normalize_currency

sales_folder = Path("data/sales")  # MODIFY AS NEEDED
fiscal_start_month = 7  # fiscal year starts in July - MODIFY AS NEEDED

# Stage by stage
report = load_sales(sales_folder)
print(f"Ingested {len(report.sales)} rows from {len(report.parsed)} file(s)")
for skipped in report.failed:
    print(f"  skipped {skipped.path.name}: {skipped.reason}")

calendar = build_calendar(report.sales["date"], fiscal_start_month)
print(f"Calendar: {calendar['date'].iloc[0]} to {calendar['date'].iloc[-1]}")

rates = resolve_rates("USD")
print(f"Exchange rates: {rates.source} ({len(rates)} currencies)")

normalized = normalize_currency(report.sales, rates)
summary = aggregate_sales(normalized, calendar)
print(summary.head())

# Or all at once
config = PipelineConfig(folder=sales_folder, fiscal_start_month=fiscal_start_month)
result = run_pipeline(config)
print(result.labeled_summary().head())
print(result.metadata)
