"""
Sheet Converter Cloud Function Entry Point.

Triggered by Cloud Storage object finalization events:
1. Validates the object's extension
2. Downloads the workbook to scratch storage
3. Converts its primary sheet to CSV
4. Uploads the CSV to the destination bucket
5. Removes the scratch files

Failures are logged and re-raised so the trigger owns retry policy.
"""

from __future__ import annotations

import os
import time
from datetime import UTC, datetime
from typing import Any

import functions_framework
import structlog
from cloudevents.http import CloudEvent
from google.cloud import storage

from src.core.config import ConverterConfig
from src.core.conversion import get_extension, has_extension, replace_extension, xlsx_to_csv
from src.core.logging import EventType, LogContext
from src.core.storage import StorageClient, build_gcs_uri

logger = structlog.get_logger(__name__)


class InvalidEventError(Exception):
    """Raised when the triggering event lacks bucket or object name."""

    pass


class UnsupportedFileTypeError(Exception):
    """Raised when the object's extension is not the accepted source format."""

    def __init__(self, object_name: str, extension: str, expected: str) -> None:
        self.object_name = object_name
        self.extension = extension
        self.expected = expected
        super().__init__(
            f"Unsupported file type: {extension or '(none)'} for {object_name} "
            f"(expected {expected})"
        )


@functions_framework.cloud_event
def convert_sheet(event: CloudEvent) -> str:
    """
    Cloud Function entry point for sheet conversion.

    Args:
        event: CloudEvent containing GCS object metadata

    Returns:
        Status message string

    Raises:
        Exception: Any failure, after it has been logged
    """
    data = event.data or {}
    bucket_name = data.get("bucket", "")
    object_name = data.get("name", "")

    with LogContext(bucket=bucket_name, object_name=object_name):
        logger.info(
            EventType.CONVERSION_RECEIVED.value,
            execution_id=os.environ.get("FUNCTION_EXECUTION_ID", "local"),
        )

        try:
            config = ConverterConfig.from_env()

            if not bucket_name or not object_name:
                raise InvalidEventError(
                    f"Event is missing bucket or object name: bucket={bucket_name!r} "
                    f"name={object_name!r}"
                )

            storage_ops = StorageClient(storage.Client())
            return convert_object(bucket_name, object_name, config, storage_ops)

        except Exception as e:
            logger.error(
                EventType.CONVERSION_FAILED.value,
                object_name=object_name,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise


def convert_object(
    bucket_name: str,
    object_name: str,
    config: ConverterConfig,
    storage_ops: StorageClient,
) -> str:
    """
    Run the download, convert, upload pipeline for one object.

    Scratch files are removed whether or not the pipeline succeeds.

    Args:
        bucket_name: Source bucket
        object_name: Source object name
        config: Converter configuration
        storage_ops: Storage operations client

    Returns:
        Status message string

    Raises:
        UnsupportedFileTypeError: If the extension does not match
        ConfigurationError: If no destination bucket is configured
        DownloadError: If the object cannot be fetched
        ConversionError: If the workbook cannot be converted
        UploadError: If the CSV cannot be stored
    """
    start_time = time.time()

    if not has_extension(object_name, config.source_extension):
        raise UnsupportedFileTypeError(
            object_name, get_extension(object_name), config.source_extension
        )

    csv_bucket = config.require_destination()

    source_uri = build_gcs_uri(bucket_name, object_name)
    dest_name = replace_extension(object_name, config.target_extension)
    dest_uri = build_gcs_uri(csv_bucket, dest_name)

    local_source = os.path.join(config.scratch_dir, os.path.basename(object_name))
    local_dest = replace_extension(local_source, config.target_extension)

    try:
        size = storage_ops.download_to_file(source_uri, local_source)
        logger.info(
            EventType.DOWNLOAD_COMPLETED.value,
            source_uri=source_uri,
            local_path=local_source,
            size=size,
        )

        row_count = xlsx_to_csv(
            local_source,
            local_dest,
            sheet_name=config.sheet_name,
            delimiter=config.delimiter,
        )
        logger.info(
            EventType.CONVERT_COMPLETED.value,
            local_path=local_dest,
            row_count=row_count,
        )

        storage_ops.upload_from_file(local_dest, dest_uri, content_type="text/csv")
        logger.info(EventType.UPLOAD_COMPLETED.value, dest_uri=dest_uri)

    finally:
        cleanup_local_files(local_source, local_dest)

    logger.info(
        EventType.CONVERSION_COMPLETED.value,
        source_uri=source_uri,
        dest_uri=dest_uri,
        duration_seconds=round(time.time() - start_time, 2),
    )
    return f"COMPLETED: {source_uri} -> {dest_uri}"


def cleanup_local_files(*paths: str) -> list[str]:
    """
    Remove scratch files, logging rather than raising on failure.

    Args:
        paths: Local file paths to remove

    Returns:
        Paths that were actually removed
    """
    removed: list[str] = []
    for path in paths:
        try:
            os.remove(path)
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.warning(
                EventType.CLEANUP_FAILED.value,
                local_path=path,
                error=str(e),
            )
            continue
        removed.append(path)

    logger.info(EventType.CLEANUP_COMPLETED.value, removed=removed)
    return removed


# ============================================================
# Health Check Function
# ============================================================


@functions_framework.http
def health_check(request: Any) -> tuple[dict[str, Any], int]:
    """
    Health check endpoint for monitoring.

    Args:
        request: Flask request object

    Returns:
        Tuple of (response dict, HTTP status code)
    """
    config = ConverterConfig.from_env()
    health_status: dict[str, Any] = {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "environment": config.environment,
        "checks": {},
    }
    all_healthy = True

    if config.csv_bucket:
        health_status["checks"]["destination"] = "ok"
    else:
        health_status["checks"]["destination"] = "error: CSV_BUCKET_NAME not set"
        all_healthy = False

    try:
        storage_client = storage.Client()
        list(storage_client.list_buckets(max_results=1))
        health_status["checks"]["storage"] = "ok"
    except Exception as e:
        health_status["checks"]["storage"] = f"error: {e}"
        all_healthy = False

    if not all_healthy:
        health_status["status"] = "degraded"
        logger.warning(EventType.HEALTH_CHECK.value, checks=health_status["checks"])
        return health_status, 503

    logger.info(EventType.HEALTH_CHECK.value, checks=health_status["checks"])
    return health_status, 200


# For local testing
if __name__ == "__main__":
    test_event = CloudEvent(
        attributes={
            "type": "google.cloud.storage.object.v1.finalized",
            "source": "//storage.googleapis.com/projects/_/buckets/test-bucket",
        },
        data={
            "bucket": "test-bucket",
            "name": "uploads/test-sheet.xlsx",
        },
    )

    print("Testing convert_sheet with mock event...")
    result = convert_sheet(test_event)
    print(f"Result: {result}")
