"""Tests for the Azure Blob Storage destination with the SDK clients mocked out."""

from datetime import datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from azure.core.exceptions import (
    HttpResponseError,
    ResourceExistsError,
    ResourceNotFoundError,
    ServiceRequestError,
)

from files_uploader.auth.cloud_auth import AzureAuth
from files_uploader.config.settings import CredentialsConfig
from files_uploader.destinations.azure_blob import BATCH_SIZE, AzureBlobDestination
from files_uploader.exceptions import ConfigurationError, StoreError


class AsyncIter:
    """Minimal async iterator over a list."""

    def __init__(self, items):
        self._items = list(items)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._items:
            raise StopAsyncIteration
        return self._items.pop(0)


@pytest.fixture
def container_client():
    client = MagicMock()
    client.create_container = AsyncMock()
    client.delete_blob = AsyncMock()
    client.get_container_properties = AsyncMock()
    blob_client = MagicMock()
    blob_client.upload_blob = AsyncMock()
    client.get_blob_client.return_value = blob_client
    return client


@pytest.fixture
def destination(container_client):
    service = MagicMock()
    service.get_container_client.return_value = container_client
    auth = MagicMock(spec=AzureAuth)
    auth.get_blob_service_client.return_value = service
    auth.close = AsyncMock()
    return AzureBlobDestination(auth)


@pytest.mark.asyncio
async def test_upload_overwrites_and_creates_container_once(destination, container_client):
    await destination.upload("uploads", "photos/a.jpg", b"abc")
    await destination.upload("uploads", "photos/b.jpg", b"def")

    container_client.create_container.assert_awaited_once()
    container_client.get_blob_client.assert_any_call("photos/a.jpg")
    blob_client = container_client.get_blob_client.return_value
    args, kwargs = blob_client.upload_blob.call_args
    assert kwargs["overwrite"] is True
    assert kwargs["content_settings"].content_type == "image/jpeg"


@pytest.mark.asyncio
async def test_upload_tolerates_existing_container(destination, container_client):
    container_client.create_container.side_effect = ResourceExistsError("exists")

    await destination.upload("uploads", "a.txt", b"x")

    container_client.get_blob_client.return_value.upload_blob.assert_awaited_once()


@pytest.mark.asyncio
async def test_upload_failure_raises_store_error(destination, container_client):
    container_client.get_blob_client.return_value.upload_blob.side_effect = ServiceRequestError("offline")

    with pytest.raises(StoreError):
        await destination.upload("uploads", "a.txt", b"x")


@pytest.mark.asyncio
async def test_list_objects_derives_folders(destination, container_client):
    created = datetime(2024, 5, 1, 12, 0)
    container_client.list_blobs.return_value = AsyncIter([
        SimpleNamespace(name="a.txt", creation_time=created),
        SimpleNamespace(name="photos/2024/b.jpg", creation_time=None),
    ])

    records = [r async for r in destination.list_objects("uploads")]

    assert [(r.folder, r.name) for r in records] == [("", "a.txt"), ("photos/2024", "b.jpg")]
    assert records[0].created_at.tzinfo is not None
    assert records[1].created_at is None


@pytest.mark.asyncio
async def test_list_objects_missing_container_is_empty(destination, container_client):
    container_client.list_blobs.side_effect = ResourceNotFoundError("no container")

    assert [r async for r in destination.list_objects("uploads")] == []


@pytest.mark.asyncio
async def test_list_objects_failure_raises_store_error(destination, container_client):
    container_client.list_blobs.side_effect = HttpResponseError("forbidden")

    with pytest.raises(StoreError):
        [r async for r in destination.list_objects("uploads")]


@pytest.mark.asyncio
async def test_delete_objects_maps_batch_statuses(destination, container_client):
    container_client.delete_blobs = AsyncMock(return_value=AsyncIter([
        SimpleNamespace(status_code=202),
        SimpleNamespace(status_code=404),
        SimpleNamespace(status_code=403),
    ]))

    results = await destination.delete_objects("uploads", ["a", "b", "c"])

    assert results == {"a": None, "b": None, "c": "HTTP 403"}
    args, kwargs = container_client.delete_blobs.call_args
    assert args == ("a", "b", "c")
    assert kwargs["raise_on_any_failure"] is False


@pytest.mark.asyncio
async def test_delete_objects_chunks_large_batches(destination, container_client):
    keys = [f"k{i}" for i in range(BATCH_SIZE + 10)]

    async def fake_delete_blobs(*blobs, **kwargs):
        return AsyncIter([SimpleNamespace(status_code=202) for _ in blobs])

    container_client.delete_blobs = AsyncMock(side_effect=fake_delete_blobs)

    results = await destination.delete_objects("uploads", keys)

    assert container_client.delete_blobs.await_count == 2
    assert len(results) == len(keys)
    assert all(error is None for error in results.values())


@pytest.mark.asyncio
async def test_rejected_batch_falls_back_to_single_deletes(destination, container_client):
    container_client.delete_blobs = AsyncMock(side_effect=HttpResponseError("batch not supported"))

    async def delete_blob(key, **kwargs):
        if key == "gone":
            raise ResourceNotFoundError("missing")
        if key == "locked":
            raise HttpResponseError("lease present")

    container_client.delete_blob.side_effect = delete_blob

    results = await destination.delete_objects("uploads", ["ok", "gone", "locked"])

    assert results["ok"] is None
    assert results["gone"] is None
    assert "lease present" in results["locked"]


@pytest.mark.asyncio
async def test_test_connection(destination, container_client):
    assert await destination.test_connection("uploads") is True

    container_client.get_container_properties.side_effect = ServiceRequestError("offline")
    assert await destination.test_connection("uploads") is False


@pytest.mark.asyncio
async def test_close_releases_auth(destination):
    async with destination:
        pass

    destination.auth.close.assert_awaited_once()


def test_auth_from_credentials_requires_something():
    with pytest.raises(ConfigurationError):
        AzureAuth.from_credentials(CredentialsConfig())


def test_auth_detects_sas_url():
    auth = AzureAuth(connection_string="https://acct.blob.core.windows.net/?sv=2022&sig=abc")

    assert auth.connection_string is None
    assert auth._sas_url.startswith("https://acct")
