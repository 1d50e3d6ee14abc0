"""Domain-specific exceptions for the retail sales ETL.

This module defines custom exceptions that are part of the public API.
All exceptions inherit from RetailETLError for easy catching.
"""

from __future__ import annotations


class RetailETLError(Exception):
    """Base exception for all retail sales ETL errors.

    Users can catch this exception to handle any error raised by the package.
    """

    pass


class ConfigError(RetailETLError):
    """Raised when there is a configuration error.

    This exception is raised when:
    - Invalid configuration values are provided
    - The input folder does not exist or is not a directory
    - Configuration files cannot be loaded or parsed
    """

    pass


class DataQualityError(RetailETLError):
    """Raised when rows of a successfully parsed file cannot be typed.

    Unlike unreadable files, which are skipped, a value that cannot be
    coerced (a non-numeric quantity, an invalid date) aborts the run unless
    the pipeline is configured to drop bad rows.

    Attributes:
        source: Name of the file the offending rows came from.
        problems: One ``(row_number, column, value)`` tuple per bad cell.
    """

    def __init__(
        self,
        message: str,
        source: str | None = None,
        problems: list[tuple[int, str, str]] | None = None,
    ) -> None:
        super().__init__(message)
        self.source = source
        self.problems = problems or []


class ETLError(RetailETLError):
    """Raised when an ETL pipeline stage fails."""

    pass


class ExtractionError(ETLError):
    """Raised when fetching data from an external source fails.

    This exception is raised when:
    - The exchange-rate endpoint is unreachable or times out
    - The endpoint returns a non-success status
    - The returned document does not have the expected structure
    """

    pass
