"""Pytest configuration and fixtures."""

from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import structlog
from cloudevents.http import CloudEvent
from openpyxl import Workbook

# Add project root to Python path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


@pytest.fixture(autouse=True)
def reset_structlog():
    """Restore default structlog configuration after each test."""
    yield
    structlog.reset_defaults()


# ============================================================
# Mock Clients
# ============================================================


@pytest.fixture
def mock_gcs_client():
    """Mock Google Cloud Storage client for testing.

    Returns:
        Mock GCS client with bucket/blob structure
    """
    mock_client = MagicMock()
    mock_bucket = MagicMock()
    mock_blob = MagicMock()

    # Setup chain: client.bucket().blob()
    mock_client.bucket.return_value = mock_bucket
    mock_bucket.blob.return_value = mock_blob

    return mock_client


# ============================================================
# Sample Data
# ============================================================


@pytest.fixture
def sample_workbook(tmp_path: Path) -> Path:
    """XLSX workbook with an active data sheet and a second sheet.

    Returns:
        Path to the saved workbook
    """
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Orders"
    sheet.append(["order_id", "customer", "quantity", "unit_price", "shipped", "ordered_at"])
    sheet.append([1001, "Acme, Inc.", 3, 9.5, True, datetime(2025, 1, 13)])
    sheet.append([1002, "Globex", 10, 2.0, False, datetime(2025, 1, 14, 9, 30)])
    sheet.append([1003, None, 1, 100, None, None])

    notes = workbook.create_sheet("Notes")
    notes.append(["note"])
    notes.append(["second sheet"])

    path = tmp_path / "orders.xlsx"
    workbook.save(path)
    return path


@pytest.fixture
def make_event():
    """Factory fixture for GCS object finalized CloudEvents.

    Returns:
        Function that creates CloudEvents for a bucket and object name
    """

    def _create(bucket: str = "uploads", name: str = "reports/orders.xlsx") -> CloudEvent:
        return CloudEvent(
            attributes={
                "type": "google.cloud.storage.object.v1.finalized",
                "source": f"//storage.googleapis.com/projects/_/buckets/{bucket}",
            },
            data={"bucket": bucket, "name": name},
        )

    return _create
