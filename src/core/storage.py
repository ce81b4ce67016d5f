"""
GCS Storage Operations.

Moves single objects between Cloud Storage and transient local files,
wrapping client errors in descriptive exceptions.
"""

from __future__ import annotations

import os

import structlog
from google.api_core import retry
from google.api_core.exceptions import GoogleAPIError, NotFound
from google.cloud import storage

logger = structlog.get_logger(__name__)

# Default retry configuration for transient errors
DEFAULT_RETRY = retry.Retry(
    predicate=retry.if_transient_error,
    initial=1.0,
    maximum=60.0,
    multiplier=2.0,
    deadline=300.0,
)


class StorageError(Exception):
    """Base exception for storage operations."""

    pass


class InvalidGCSPathError(StorageError):
    """Raised when a GCS path is malformed."""

    def __init__(self, path: str, reason: str = "") -> None:
        self.path = path
        self.reason = reason
        message = f"Invalid GCS path: {path}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class DownloadError(StorageError):
    """Raised when an object cannot be downloaded."""

    pass


class ObjectNotFoundError(DownloadError):
    """Raised when the source object does not exist."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"File download failed: object not found: {path}")


class UploadError(StorageError):
    """Raised when a local file cannot be uploaded."""

    pass


def parse_gcs_path(path: str) -> tuple[str, str]:
    """
    Parse a GCS URI into bucket name and blob path.

    Args:
        path: GCS URI in format gs://bucket/path/to/file

    Returns:
        Tuple of (bucket_name, blob_path)

    Raises:
        InvalidGCSPathError: If path format is invalid
    """
    if not path:
        raise InvalidGCSPathError(path, "empty path")

    if not path.startswith("gs://"):
        raise InvalidGCSPathError(path, "must start with gs://")

    stripped = path[5:]

    if "/" not in stripped:
        raise InvalidGCSPathError(path, "missing blob path")

    bucket_name, blob_path = stripped.split("/", 1)

    if not bucket_name:
        raise InvalidGCSPathError(path, "empty bucket name")

    if not blob_path:
        raise InvalidGCSPathError(path, "empty blob path")

    return bucket_name, blob_path


def build_gcs_uri(bucket_name: str, blob_name: str) -> str:
    """Build a gs:// URI from bucket and object name."""
    return f"gs://{bucket_name}/{blob_name}"


def download_to_file(
    client: storage.Client,
    path: str,
    local_path: str,
    retry_config: retry.Retry | None = None,
) -> int:
    """
    Download a blob to a local file.

    Args:
        client: GCS storage client
        path: GCS URI of the source object
        local_path: Destination path on the local filesystem
        retry_config: Optional retry configuration

    Returns:
        Size of the downloaded file in bytes

    Raises:
        ObjectNotFoundError: If the object does not exist
        DownloadError: If the download fails
    """
    if retry_config is None:
        retry_config = DEFAULT_RETRY

    bucket_name, blob_name = parse_gcs_path(path)

    logger.info("gcs_download_starting", path=path, local_path=local_path)

    try:
        bucket = client.bucket(bucket_name)
        blob = bucket.blob(blob_name)
        blob.download_to_filename(local_path, retry=retry_config)

    except NotFound as e:
        raise ObjectNotFoundError(path) from e
    except (GoogleAPIError, OSError) as e:
        logger.error(
            "gcs_download_failed",
            path=path,
            local_path=local_path,
            error=str(e),
        )
        raise DownloadError(f"File download failed: {path}: {e}") from e

    size = os.path.getsize(local_path) if os.path.exists(local_path) else 0
    logger.info(
        "gcs_download_completed",
        path=path,
        local_path=local_path,
        size=size,
    )
    return size


def upload_from_file(
    client: storage.Client,
    local_path: str,
    path: str,
    content_type: str = "text/csv",
    retry_config: retry.Retry | None = None,
) -> None:
    """
    Upload a local file as a blob.

    Args:
        client: GCS storage client
        local_path: Source path on the local filesystem
        path: GCS URI for the destination object
        content_type: MIME type for the content
        retry_config: Optional retry configuration

    Raises:
        UploadError: If the upload fails
    """
    if retry_config is None:
        retry_config = DEFAULT_RETRY

    bucket_name, blob_name = parse_gcs_path(path)

    logger.info(
        "gcs_upload_starting",
        path=path,
        local_path=local_path,
        content_type=content_type,
    )

    try:
        bucket = client.bucket(bucket_name)
        blob = bucket.blob(blob_name)
        blob.upload_from_filename(local_path, content_type=content_type, retry=retry_config)

    except (GoogleAPIError, OSError) as e:
        logger.error(
            "gcs_upload_failed",
            path=path,
            error=str(e),
        )
        raise UploadError(f"Unable to upload CSV to {path}: {e}") from e

    logger.info("gcs_upload_completed", path=path)


class StorageClient:
    """
    High-level storage client wrapping GCS operations.

    Provides a cleaner interface for the transfer operations.
    """

    def __init__(self, client: storage.Client | None = None) -> None:
        """
        Initialize storage client.

        Args:
            client: Optional GCS client. If not provided, creates a new one.
        """
        self._client = client or storage.Client()

    @property
    def client(self) -> storage.Client:
        """Get the underlying GCS client."""
        return self._client

    def download_to_file(self, uri: str, local_path: str) -> int:
        """Download a blob to a local file."""
        return download_to_file(self._client, uri, local_path)

    def upload_from_file(self, local_path: str, uri: str, content_type: str = "text/csv") -> None:
        """Upload a local file as a blob."""
        upload_from_file(self._client, local_path, uri, content_type)
