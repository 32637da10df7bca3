"""Object storage client: puts uploaded case files into an S3 bucket.

Each upload gets a unique key so identical file names never collide:
``{prefix}/{uuid4 hex}/{sanitised file name}``. The returned URL is public,
either under ``public_base_url`` (CDN / custom domain) or the bucket's
virtual-hosted S3 address.
"""

from __future__ import annotations

import asyncio
import re
import uuid
from typing import Protocol

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import Settings
from app.core.exceptions import StorageNotConfiguredError, StorageUploadError

logger = structlog.get_logger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class FileStorage(Protocol):
    """Anything that can store one file and return its public URL."""

    async def upload(self, file_name: str, data: bytes, content_type: str | None = None) -> str: ...


def sanitize_key_part(file_name: str) -> str:
    """Reduce a user file name to characters safe in an S3 key."""
    cleaned = _UNSAFE_KEY_CHARS.sub("_", file_name.strip()).strip("._")
    return cleaned or "file"


class ObjectStorageClient:
    """boto3-backed implementation of FileStorage.

    Usage:
        storage = ObjectStorageClient.from_settings(settings)
        storage.connect()
        url = await storage.upload("brief.pdf", data, "application/pdf")
        storage.close()

    Blocking boto3 calls run in a worker thread via asyncio.to_thread.
    """

    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        endpoint_url: str | None = None,
        public_base_url: str | None = None,
        key_prefix: str = "timelines",
    ) -> None:
        self._bucket = bucket
        self._region = region
        self._endpoint_url = endpoint_url
        self._public_base_url = public_base_url.rstrip("/") if public_base_url else None
        self._key_prefix = key_prefix.strip("/")
        self._client = None

    @classmethod
    def from_settings(cls, settings: Settings) -> ObjectStorageClient:
        return cls(
            bucket=settings.storage_bucket,
            region=settings.storage_region,
            endpoint_url=settings.storage_endpoint_url,
            public_base_url=settings.storage_public_base_url,
            key_prefix=settings.storage_key_prefix,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> None:
        """Create the underlying S3 client. No-op without a bucket."""
        if not self._bucket:
            logger.warning("object_storage_unconfigured")
            return
        if self._client is None:
            self._client = boto3.client(
                "s3",
                region_name=self._region,
                endpoint_url=self._endpoint_url,
            )
            logger.info("object_storage_connected", bucket=self._bucket, endpoint_url=self._endpoint_url)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def upload(self, file_name: str, data: bytes, content_type: str | None = None) -> str:
        """Store one file and return its public URL.

        Raises:
            StorageNotConfiguredError: no bucket configured or connect() not called
            StorageUploadError: the S3 call failed
        """
        if self._client is None:
            raise StorageNotConfiguredError("Object storage is not configured")

        key = self.build_key(file_name)
        try:
            await asyncio.to_thread(self._put_object, key, data, content_type)
        except (BotoCoreError, ClientError) as exc:
            logger.warning("object_upload_failed", file_name=file_name, key=key, error=str(exc))
            raise StorageUploadError(file_name, str(exc)) from exc

        url = self.public_url(key)
        logger.info("object_uploaded", file_name=file_name, key=key, size=len(data))
        return url

    def build_key(self, file_name: str) -> str:
        return f"{self._key_prefix}/{uuid.uuid4().hex}/{sanitize_key_part(file_name)}"

    def public_url(self, key: str) -> str:
        if self._public_base_url:
            return f"{self._public_base_url}/{key}"
        if self._endpoint_url:
            return f"{self._endpoint_url.rstrip('/')}/{self._bucket}/{key}"
        return f"https://{self._bucket}.s3.{self._region}.amazonaws.com/{key}"

    # ------------------------------------------------------------------
    # Private helpers (run inside asyncio.to_thread)
    # ------------------------------------------------------------------

    def _put_object(self, key: str, body: bytes, content_type: str | None) -> None:
        extra = {"ContentType": content_type} if content_type else {}
        self._client.put_object(
            Bucket=self._bucket,
            Key=key,
            Body=body,
            **extra,
        )
