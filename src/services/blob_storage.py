"""Blob storage client for uploaded audio files.

Deletes blobs through the Vercel Blob HTTP API.
"""

import logging
from typing import Optional

import requests

from src.config import Config

logger = logging.getLogger(__name__)

BLOB_API_VERSION = "7"
DEFAULT_TIMEOUT = 30


class BlobStorageError(Exception):
    """Raised when the blob store rejects or fails a request."""


class BlobStorage:
    """Client for deleting uploaded blobs.

    Note: the read-write token is required for every call; an unconfigured
    client raises BlobStorageError instead of silently skipping deletes so
    callers can track the orphaned blob.
    """

    def __init__(self, config: Config, session: Optional[requests.Session] = None):
        """Initialize the blob storage client.

        Args:
            config: Application configuration with blob settings.
            session: Optional pre-built requests session.
        """
        self.config = config
        self._session = session or requests.Session()

    def is_configured(self) -> bool:
        """Check if a blob read-write token is set."""
        return bool(self.config.BLOB_READ_WRITE_TOKEN)

    def delete(self, url: str) -> None:
        """Delete a blob by URL.

        Args:
            url: Public URL of the blob.

        Raises:
            BlobStorageError: If the store is not configured or the request fails.
        """
        if not self.is_configured():
            raise BlobStorageError("BLOB_READ_WRITE_TOKEN is not configured")

        try:
            response = self._session.post(
                f"{self.config.BLOB_API_URL}/delete",
                headers={
                    "Authorization": f"Bearer {self.config.BLOB_READ_WRITE_TOKEN}",
                    "x-api-version": BLOB_API_VERSION,
                },
                json={"urls": [url]},
                timeout=DEFAULT_TIMEOUT,
            )
        except requests.RequestException as e:
            raise BlobStorageError(f"Blob delete request failed: {e}") from e

        if not response.ok:
            raise BlobStorageError(
                f"Blob delete failed ({response.status_code}): {response.text}"
            )
        logger.info(f"Deleted blob {url}")
