"""Retail Sales ETL - multi-file sales ingestion, currency normalization and fiscal summaries.

This package turns a folder of per-period retail sales CSV extracts into a
currency-normalized summary table:

- **Ingest**: every ``*.csv`` in a folder; unreadable files are skipped
- **Calendar**: daily dimension with fiscal year/period for any start month
- **Rates**: live exchange rates with a static fallback table
- **Summary**: orders, units and sales by fiscal period, store and SKU

Module Structure:
    retail_etl.sales: Ingestion, currency normalization and aggregation
    retail_etl.calendar_dim: Calendar dimension builder
    retail_etl.rates: Exchange-rate resolution
    retail_etl.pipeline: End-to-end run
    retail_etl.config: PipelineConfig

Quick Start:
    >>> from retail_etl import PipelineConfig, run_pipeline
    >>>
    >>> config = PipelineConfig(folder="data/sales", fiscal_start_month=7, base_currency="USD")
    >>> result = run_pipeline(config)
    >>> print(result.summary.head())
    >>> print(result.metadata["files_failed"])
"""

__version__ = "0.1.0"

from retail_etl.config import PipelineConfig
from retail_etl.exceptions import (
    ConfigError,
    DataQualityError,
    ETLError,
    ExtractionError,
    RetailETLError,
)
from retail_etl.pipeline import PipelineResult, run_pipeline

__all__ = [
    "ConfigError",
    "DataQualityError",
    "ETLError",
    "ExtractionError",
    "PipelineConfig",
    "PipelineResult",
    "RetailETLError",
    "__version__",
    "run_pipeline",
]
