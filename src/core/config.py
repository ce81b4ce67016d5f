"""
Converter configuration.

All settings come from environment variables set on the Cloud Function.
"""

from __future__ import annotations

import os
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass

# Characters the csv writer uses for quoting and record separation
_RESERVED_DELIMITERS = frozenset({'"', "\r", "\n"})


class ConfigurationError(Exception):
    """Raised when the function is misconfigured."""

    pass


def normalize_extension(extension: str) -> str:
    """Return the extension with a leading dot (``"xlsx"`` -> ``".xlsx"``)."""
    extension = extension.strip()
    if extension and not extension.startswith("."):
        extension = f".{extension}"
    return extension


@dataclass(frozen=True)
class ConverterConfig:
    """
    Runtime configuration for the sheet converter.

    Attributes:
        csv_bucket: Destination bucket for converted files
        source_extension: Extension accepted from the source bucket
        target_extension: Extension given to converted files
        sheet_name: Sheet to export, or None for the active sheet
        delimiter: CSV field delimiter
        scratch_dir: Directory for transient local files
        environment: Deployment environment name
    """

    csv_bucket: str = ""
    source_extension: str = ".xlsx"
    target_extension: str = ".csv"
    sheet_name: str | None = None
    delimiter: str = ","
    scratch_dir: str = ""
    environment: str = "development"

    def __post_init__(self) -> None:
        if len(self.delimiter) != 1:
            raise ConfigurationError(
                f"CSV_DELIMITER must be a single character, got {self.delimiter!r}"
            )
        if self.delimiter in _RESERVED_DELIMITERS:
            raise ConfigurationError(
                f"CSV_DELIMITER cannot be a quote or line break, got {self.delimiter!r}"
            )
        if not self.source_extension or not self.target_extension:
            raise ConfigurationError("Source and target extensions must not be empty")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ConverterConfig:
        """
        Build configuration from environment variables.

        Args:
            environ: Mapping to read from. Defaults to os.environ.

        Returns:
            Populated ConverterConfig

        Raises:
            ConfigurationError: If a value is invalid
        """
        env = os.environ if environ is None else environ

        return cls(
            csv_bucket=env.get("CSV_BUCKET_NAME", "").strip(),
            source_extension=normalize_extension(env.get("SOURCE_EXTENSION", ".xlsx")),
            target_extension=normalize_extension(env.get("TARGET_EXTENSION", ".csv")),
            sheet_name=env.get("SHEET_NAME") or None,
            delimiter=env.get("CSV_DELIMITER", ","),
            scratch_dir=env.get("SCRATCH_DIR") or tempfile.gettempdir(),
            environment=env.get("ENVIRONMENT", "development"),
        )

    def require_destination(self) -> str:
        """Return the destination bucket, failing if it is not configured."""
        if not self.csv_bucket:
            raise ConfigurationError("CSV_BUCKET_NAME is not configured")
        return self.csv_bucket
