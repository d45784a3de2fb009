"""Object storage backed by S3."""
import asyncio
import logging
import re
import time
from typing import Optional
from urllib.parse import unquote, urlparse

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from shortreel.config import settings
from shortreel.pipeline.errors import UploadError
from shortreel.utils.retry import retry_async

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Object storage related error."""
    pass


def make_key(owner_id: str, filename: str) -> str:
    """Build a unique object key under the owner's upload prefix."""
    sanitized = re.sub(r"[^a-zA-Z0-9.-]", "_", filename)
    return f"uploads/{owner_id}/{int(time.time() * 1000)}-{sanitized}"


class S3Storage:
    """Uploads, signs and deletes byte blobs in one bucket.

    boto3 is blocking, so every call runs in a worker thread.
    """

    def __init__(
        self,
        bucket: Optional[str] = None,
        client=None,
        upload_expiry: Optional[int] = None,
        access_expiry: Optional[int] = None,
    ):
        self.bucket = bucket or settings.storage_bucket
        self.upload_expiry = upload_expiry or settings.upload_url_expiry_seconds
        self.access_expiry = access_expiry or settings.access_url_expiry_seconds
        self._client = client or boto3.client(
            "s3",
            region_name=settings.storage_region,
            endpoint_url=settings.storage_endpoint_url,
            aws_access_key_id=settings.storage_access_key,
            aws_secret_access_key=settings.storage_secret_key,
        )

    make_key = staticmethod(make_key)

    def _presign(self, key: str, expires_in: int) -> str:
        return self._client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=expires_in,
        )

    def _put_sync(self, data: bytes, key: str, content_type: str) -> str:
        self._client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
            CacheControl="max-age=31536000",
        )
        return self._presign(key, self.upload_expiry)

    async def put(self, data: bytes, key: str, content_type: str = "video/mp4") -> str:
        """
        Upload bytes and return a signed access URL valid for the upload expiry.

        Raises:
            UploadError: After the retry policy is exhausted
        """
        logger.info(f"Uploading {len(data)} bytes to s3://{self.bucket}/{key}")
        try:
            return await retry_async(
                lambda: asyncio.to_thread(self._put_sync, data, key, content_type),
                description=f"Upload of {key}",
                retry_on=(BotoCoreError, ClientError),
            )
        except (BotoCoreError, ClientError) as e:
            raise UploadError(f"S3 upload failed for {key}: {e}") from e

    async def get(self, key: str) -> str:
        """Signed URL for ad-hoc access to an existing object."""
        try:
            return await asyncio.to_thread(self._presign, key, self.access_expiry)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Failed to sign {key}: {e}") from e

    def key_from_url(self, url: str) -> str:
        """Recover the object key from a signed or plain object URL."""
        parsed = urlparse(url)
        if parsed.scheme == "s3":
            return parsed.path.lstrip("/")

        path = unquote(parsed.path).lstrip("/")
        # Path-style URLs carry the bucket as the first segment
        if parsed.netloc.split(".")[0] != self.bucket and path.startswith(f"{self.bucket}/"):
            path = path[len(self.bucket) + 1:]
        if not path:
            raise StorageError(f"No object key in URL: {url}")
        return path

    async def delete(self, url: str) -> None:
        """Delete the object an access URL points at."""
        key = self.key_from_url(url)
        try:
            await asyncio.to_thread(self._client.delete_object, Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Failed to delete {key}: {e}") from e
        logger.info(f"Deleted s3://{self.bucket}/{key}")
