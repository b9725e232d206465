"""
Access to the S3-compatible bucket that holds the music catalog.

The abstract interfaces keep the cache and resolver independent of boto3; the
concrete `S3ObjectStore` implements both on top of a blocking boto3 client,
run off the event loop with `asyncio.to_thread`.
"""

import asyncio
import logging
from abc import ABC, abstractmethod

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from media_cache.exceptions import IssuerError, StorageUnavailableError
from media_cache.models.config import CacheConfig

log = logging.getLogger(__name__)

URL_VALIDITY_SECONDS = 3600


class ObjectStore(ABC):
    """Read-only view of the bucket used to discover the catalog."""

    @abstractmethod
    async def list_keys(self, prefix: str | None = None) -> list[str]:
        """
        Lists every object key, optionally restricted to a prefix.

        Raises:
            StorageUnavailableError: If the bucket cannot be listed.
        """

    @abstractmethod
    async def read_text(self, key: str) -> str:
        """
        Downloads a small text object, such as a release sidecar.

        Raises:
            StorageUnavailableError: If the object cannot be read.
        """


class AccessUrlIssuer(ABC):
    """Produces short-lived signed URLs for private objects."""

    validity_seconds: int = URL_VALIDITY_SECONDS

    @abstractmethod
    async def issue_access_url(self, key: str) -> str:
        """
        Signs a time-limited GET URL for `key`.

        Raises:
            IssuerError: If the URL cannot be signed.
        """


class S3ObjectStore(ObjectStore, AccessUrlIssuer):
    """boto3-backed implementation of both the listing and the signing side."""

    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        endpoint_url: str = "",
        access_key_id: str = "",
        secret_access_key: str = "",
        validity_seconds: int = URL_VALIDITY_SECONDS,
        client=None,
    ):
        self.bucket = bucket
        self.validity_seconds = validity_seconds
        if client is None:
            # Empty credentials fall through to boto3's default provider chain
            client = boto3.client(
                "s3",
                region_name=region,
                endpoint_url=endpoint_url or None,
                aws_access_key_id=access_key_id or None,
                aws_secret_access_key=secret_access_key or None,
                config=BotoConfig(signature_version="s3v4"),
            )
        self._client = client

    @classmethod
    def from_config(cls, config: CacheConfig) -> "S3ObjectStore":
        return cls(
            bucket=config.bucket,
            region=config.region,
            endpoint_url=config.endpoint_url,
            access_key_id=config.access_key_id,
            secret_access_key=config.secret_access_key,
            validity_seconds=config.url_validity_seconds,
        )

    def _list_keys_sync(self, prefix: str | None) -> list[str]:
        kwargs = {"Bucket": self.bucket}
        if prefix:
            kwargs["Prefix"] = prefix

        keys = []
        paginator = self._client.get_paginator("list_objects_v2")
        for page in paginator.paginate(**kwargs):
            for obj in page.get("Contents", []):
                keys.append(obj["Key"])
        return keys

    async def list_keys(self, prefix: str | None = None) -> list[str]:
        try:
            keys = await asyncio.to_thread(self._list_keys_sync, prefix)
        except (ClientError, BotoCoreError) as e:
            raise StorageUnavailableError(
                f"Failed to list '{prefix or ''}' in bucket '{self.bucket}': {e}"
            ) from e
        log.debug(f"Listed {len(keys)} object(s) under '{prefix or ''}'.")
        return keys

    def _read_text_sync(self, key: str) -> str:
        response = self._client.get_object(Bucket=self.bucket, Key=key)
        return response["Body"].read().decode("utf-8")

    async def read_text(self, key: str) -> str:
        try:
            return await asyncio.to_thread(self._read_text_sync, key)
        except (ClientError, BotoCoreError, UnicodeDecodeError) as e:
            raise StorageUnavailableError(f"Failed to read '{key}': {e}") from e

    async def issue_access_url(self, key: str) -> str:
        try:
            return await asyncio.to_thread(
                self._client.generate_presigned_url,
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=self.validity_seconds,
            )
        except (ClientError, BotoCoreError) as e:
            raise IssuerError(f"Failed to sign access URL for '{key}': {e}") from e
