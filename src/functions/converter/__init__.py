"""
Sheet Converter Cloud Function.

Converts XLSX objects uploaded to GCS into CSV objects in a destination bucket.
"""

from src.functions.converter.main import convert_sheet, health_check

__all__ = ["convert_sheet", "health_check"]
