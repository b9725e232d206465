"""
Tests for S3ObjectStore with a mocked boto3 client.
"""

import io
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from media_cache.catalog.object_store import S3ObjectStore
from media_cache.exceptions import IssuerError, StorageUnavailableError


def client_error(operation: str) -> ClientError:
    return ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, operation)


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def store(client):
    return S3ObjectStore("my-music", client=client, validity_seconds=600)


@pytest.mark.asyncio
class TestS3ObjectStore:
    async def test_list_keys_walks_every_page(self, store, client):
        client.get_paginator.return_value.paginate.return_value = [
            {"Contents": [{"Key": "albums/a/cover.jpg"}, {"Key": "albums/a/1.mp3"}]},
            {},
            {"Contents": [{"Key": "latest/cover.jpg"}]},
        ]

        keys = await store.list_keys("albums/")

        assert keys == ["albums/a/cover.jpg", "albums/a/1.mp3", "latest/cover.jpg"]
        client.get_paginator.assert_called_once_with("list_objects_v2")
        client.get_paginator.return_value.paginate.assert_called_once_with(
            Bucket="my-music", Prefix="albums/"
        )

    async def test_list_failure_is_wrapped(self, store, client):
        client.get_paginator.return_value.paginate.side_effect = client_error("ListObjectsV2")

        with pytest.raises(StorageUnavailableError):
            await store.list_keys()

    async def test_read_text(self, store, client):
        client.get_object.return_value = {"Body": io.BytesIO(b"Title: Soon\n")}

        assert await store.read_text("upcoming/info.txt") == "Title: Soon\n"

    async def test_issue_access_url(self, store, client):
        client.generate_presigned_url.return_value = "https://signed/url"

        assert await store.issue_access_url("albums/a/1.mp3") == "https://signed/url"
        client.generate_presigned_url.assert_called_once_with(
            "get_object",
            Params={"Bucket": "my-music", "Key": "albums/a/1.mp3"},
            ExpiresIn=600,
        )

    async def test_signing_failure_raises_issuer_error(self, store, client):
        client.generate_presigned_url.side_effect = client_error("GetObject")

        with pytest.raises(IssuerError):
            await store.issue_access_url("albums/a/1.mp3")
