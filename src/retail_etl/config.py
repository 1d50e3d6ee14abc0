"""Run configuration for the retail sales ETL.

A single, immutable configuration object is built once per run and passed
explicitly into every pipeline entry point.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping

from retail_etl.exceptions import ConfigError

DEFAULT_RATES_URL = "https://api.exchangerate-api.com/v4/latest/{base}"
DEFAULT_RATES_TIMEOUT = 30.0

BAD_ROW_POLICIES = ("raise", "drop")

_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


@dataclass(frozen=True)
class PipelineConfig:
    """All settings used by one pipeline run.

    Attributes:
        folder: Directory scanned for ``*.csv`` sales extracts.
        fiscal_start_month: Calendar month (1-12) that opens the fiscal year.
        base_currency: ISO-4217 code all amounts are normalized to.
        rates_url: Exchange-rate endpoint; ``{base}`` is replaced with
            ``base_currency``.
        rates_timeout: Timeout in seconds for the exchange-rate request.
        fetch_rates: If False, skip the network and use the fallback table.
        max_workers: Number of threads used to parse files (1 = sequential).
        on_bad_rows: ``"raise"`` to abort on uncoercible values, ``"drop"``
            to discard the offending rows with a warning.

    Examples:
        >>> config = PipelineConfig.from_mapping({"folder": "data/sales", "fiscal_start_month": 7})
        >>> config.base_currency
        'USD'

    """

    folder: Path
    fiscal_start_month: int = 1
    base_currency: str = "USD"
    rates_url: str = DEFAULT_RATES_URL
    rates_timeout: float = DEFAULT_RATES_TIMEOUT
    fetch_rates: bool = True
    max_workers: int = 1
    on_bad_rows: str = "raise"

    def __post_init__(self) -> None:
        # frozen dataclass: normalize through object.__setattr__
        if isinstance(self.folder, str):
            object.__setattr__(self, "folder", Path(self.folder))
        if not isinstance(self.folder, Path):
            raise ConfigError(f"folder must be a path, got {self.folder!r}")

        if isinstance(self.fiscal_start_month, bool) or not isinstance(self.fiscal_start_month, int):
            raise ConfigError(
                f"fiscal_start_month must be an integer, got {self.fiscal_start_month!r}"
            )
        if not 1 <= self.fiscal_start_month <= 12:
            raise ConfigError(
                f"fiscal_start_month must be between 1 and 12, got {self.fiscal_start_month}"
            )

        base = str(self.base_currency).strip().upper()
        if not _CURRENCY_RE.match(base):
            raise ConfigError(f"base_currency must be a 3-letter code, got {self.base_currency!r}")
        object.__setattr__(self, "base_currency", base)

        if self.rates_timeout <= 0:
            raise ConfigError(f"rates_timeout must be positive, got {self.rates_timeout}")
        if self.max_workers < 1:
            raise ConfigError(f"max_workers must be >= 1, got {self.max_workers}")
        if self.on_bad_rows not in BAD_ROW_POLICIES:
            raise ConfigError(
                f"Invalid on_bad_rows '{self.on_bad_rows}'. Must be 'raise' or 'drop'."
            )

    @property
    def resolved_rates_url(self) -> str:
        """Exchange-rate URL with the base currency filled in."""
        return self.rates_url.replace("{base}", self.base_currency)

    def ensure_folder(self) -> Path:
        """Return the input folder, raising ConfigError if it is unusable."""
        if not self.folder.exists():
            raise ConfigError(f"Sales folder not found: {self.folder}")
        if not self.folder.is_dir():
            raise ConfigError(f"Sales folder is not a directory: {self.folder}")
        return self.folder

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> PipelineConfig:
        """Create a config from a plain mapping, rejecting unknown keys.

        Raises:
            ConfigError: If ``folder`` is missing, a key is unknown, or a
                value is invalid.

        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {unknown}")
        if "folder" not in data or data["folder"] in (None, ""):
            raise ConfigError("Configuration is missing required key 'folder'")
        try:
            return cls(**dict(data))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    @classmethod
    def from_json(cls, path: str | Path) -> PipelineConfig:
        """Load a config from a JSON object file.

        A relative ``folder`` is resolved against the JSON file's directory.
        """
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise ConfigError(f"Config file not found: {path}") from e
        except json.JSONDecodeError as e:
            raise ConfigError(f"Config file {path} is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a JSON object")

        folder = data.get("folder")
        if isinstance(folder, str) and folder and not Path(folder).is_absolute():
            data["folder"] = path.parent / folder
        return cls.from_mapping(data)
