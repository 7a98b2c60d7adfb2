"""Azure Blob Storage destination."""

import logging
from typing import AsyncIterator, Dict, List, Optional, Sequence, Set

from azure.core.exceptions import AzureError, ResourceExistsError, ResourceNotFoundError
from azure.storage.blob import ContentSettings
from azure.storage.blob.aio import BlobServiceClient, ContainerClient

from ..auth.cloud_auth import AzureAuth
from ..exceptions import StoreError
from ..models import RemoteObjectRecord
from ..utils.file_utils import FileHelper

logger = logging.getLogger(__name__)

# Blob batch requests accept at most 256 sub-requests
BATCH_SIZE = 256


class AzureBlobDestination:
    """Azure Blob Storage destination implementing the ``ObjectStore`` interface."""

    def __init__(self, auth: AzureAuth):
        """Initialize Azure Blob destination.

        Args:
            auth: Azure authentication handler
        """
        self.auth = auth
        self._client: Optional[BlobServiceClient] = None
        self._known_containers: Set[str] = set()

    def _get_client(self) -> BlobServiceClient:
        """Get authenticated Azure Blob client."""
        if not self._client:
            self._client = self.auth.get_blob_service_client()
        return self._client

    def _container(self, container: str) -> ContainerClient:
        return self._get_client().get_container_client(container)

    async def _ensure_container(self, container: str) -> ContainerClient:
        container_client = self._container(container)
        if container not in self._known_containers:
            logger.debug(f"Ensuring container exists: {container}")
            try:
                await container_client.create_container()
                logger.info(f"Created container {container}")
            except ResourceExistsError:
                pass
            self._known_containers.add(container)
        return container_client

    async def upload(self, container: str, key: str, data: bytes) -> None:
        """Upload bytes to ``container/key``, overwriting any existing blob.

        Args:
            container: Target container name
            key: Blob name, ``folder/name``
            data: File content

        Raises:
            StoreError: If the upload fails
        """
        try:
            container_client = await self._ensure_container(container)
            blob_client = container_client.get_blob_client(key)

            logger.debug(f"Uploading blob: {key} (size: {len(data)} bytes)")
            await blob_client.upload_blob(
                data,
                blob_type="BlockBlob",
                overwrite=True,
                content_settings=ContentSettings(content_type=FileHelper.guess_content_type(key)),
            )
        except AzureError as e:
            # Container may have been deleted behind our back
            self._known_containers.discard(container)
            raise StoreError(f"Error uploading {key} to container {container}: {e}") from e

    async def list_objects(self, container: str) -> AsyncIterator[RemoteObjectRecord]:
        """Stream every blob in the container as a ``RemoteObjectRecord``.

        A container that does not exist yet holds no objects.

        Raises:
            StoreError: If listing fails
        """
        container_client = self._container(container)
        try:
            async for blob in container_client.list_blobs():
                yield RemoteObjectRecord.from_key(blob.name, blob.creation_time)
        except ResourceNotFoundError:
            logger.info(f"Container {container} does not exist yet, nothing to list")
        except AzureError as e:
            raise StoreError(f"Error listing container {container}: {e}") from e

    async def delete_objects(self, container: str, keys: Sequence[str]) -> Dict[str, Optional[str]]:
        """Delete blobs if they exist, batching requests.

        Every blob is deleted independently: one failure does not stop the
        others. Blobs that are already gone count as deleted. If the service
        rejects a batch request outright, the chunk is retried blob by blob.

        Returns:
            Mapping of key to error message, ``None`` on success
        """
        container_client = self._container(container)
        results: Dict[str, Optional[str]] = {}

        for start in range(0, len(keys), BATCH_SIZE):
            chunk = list(keys[start:start + BATCH_SIZE])
            try:
                statuses = await self._delete_batch(container_client, chunk)
            except AzureError as e:
                logger.warning(f"Batch delete rejected ({e}); deleting {len(chunk)} blobs one by one")
                for key in chunk:
                    results[key] = await self._delete_one(container_client, key)
                continue

            for key, status in zip(chunk, statuses):
                results[key] = None if status in (200, 202, 404) else f"HTTP {status}"

        return results

    async def _delete_batch(self, container_client: ContainerClient, chunk: List[str]) -> List[int]:
        responses = await container_client.delete_blobs(
            *chunk,
            delete_snapshots="include",
            raise_on_any_failure=False,
        )
        return [response.status_code async for response in responses]

    async def _delete_one(self, container_client: ContainerClient, key: str) -> Optional[str]:
        try:
            await container_client.delete_blob(key, delete_snapshots="include")
        except ResourceNotFoundError:
            pass
        except AzureError as e:
            return str(e)
        return None

    async def test_connection(self, container: str) -> bool:
        """Test connection to Azure Blob Storage.

        Returns:
            True if connection successful, False otherwise
        """
        try:
            await self._container(container).get_container_properties()
            return True
        except ResourceNotFoundError:
            # Reachable; the container is created on first upload
            logger.info(f"Container {container} not found; it will be created on first upload")
            return True
        except (AzureError, ValueError) as e:
            logger.error(f"Failed to connect to Azure container {container}: {e}")
            return False

    async def close(self) -> None:
        self._client = None
        await self.auth.close()

    async def __aenter__(self) -> "AzureBlobDestination":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
