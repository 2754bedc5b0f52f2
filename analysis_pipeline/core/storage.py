"""
Cloud Storage writer for processed results.
"""

import asyncio
import logging
from typing import Any, Optional

from google.api_core.exceptions import GoogleAPIError
from google.cloud import storage

from .errors import StorageError
from .models import PersistedArtifact

logger = logging.getLogger(__name__)


class ResultStore:
    """Writes result artifacts to the results bucket."""

    def __init__(
        self,
        bucket_name: str,
        storage_client: Optional[Any] = None,
        project_id: Optional[str] = None,
        timeout: float = 60.0,
        credentials: Optional[Any] = None
    ):
        self.bucket_name = bucket_name
        self.timeout = timeout
        self.client = storage_client or storage.Client(project=project_id, credentials=credentials)
        logger.info(f"ResultStore initialized for bucket: {bucket_name}")

    def save_sync(self, name: str, content: str) -> PersistedArtifact:
        if not self.bucket_name:
            raise StorageError("Results bucket is not configured")

        logger.info(f"Saving result to {name} in bucket {self.bucket_name}")
        try:
            blob = self.client.bucket(self.bucket_name).blob(name)
            # Overwrites any earlier write of the same result
            blob.upload_from_string(content, content_type="text/plain; charset=utf-8", timeout=self.timeout)
        except GoogleAPIError as e:
            raise StorageError(f"Failed to save {name} to {self.bucket_name}: {e}") from e

        return PersistedArtifact(bucket=self.bucket_name, name=name, content=content)

    async def save(self, name: str, content: str) -> PersistedArtifact:
        """
        Write text content to ``name`` in the results bucket.

        Raises:
            StorageError: The upload failed
        """
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, lambda: self.save_sync(name, content))
