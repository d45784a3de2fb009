"""Tests for S3 object storage."""
import re

import pytest
from botocore.exceptions import ClientError

from shortreel.pipeline.errors import UploadError
from shortreel.services import storage as storage_module
from shortreel.services.storage import S3Storage, StorageError, make_key


class _FakeS3Client:
    def __init__(self, put_failures=0, delete_error=None):
        self.put_failures = put_failures
        self.delete_error = delete_error
        self.puts = []
        self.presigned = []
        self.deleted = []

    def put_object(self, **kwargs):
        if self.put_failures:
            self.put_failures -= 1
            raise ClientError({"Error": {"Code": "SlowDown", "Message": "Please reduce your request rate."}}, "PutObject")
        self.puts.append(kwargs)

    def generate_presigned_url(self, operation, Params, ExpiresIn):
        self.presigned.append((operation, Params, ExpiresIn))
        return f"https://{Params['Bucket']}.s3.amazonaws.com/{Params['Key']}?X-Amz-Expires={ExpiresIn}"

    def delete_object(self, Bucket, Key):
        if self.delete_error:
            raise self.delete_error
        self.deleted.append((Bucket, Key))


@pytest.fixture(autouse=True)
def no_retry_delay(monkeypatch):
    monkeypatch.setattr(storage_module.settings, "retry_delay_seconds", 0)


def test_make_key_sanitizes_filename():
    key = make_key("user-1", "my clip (final).mp4")

    assert re.fullmatch(r"uploads/user-1/\d+-my_clip__final_\.mp4", key)


@pytest.mark.asyncio
async def test_put_uploads_and_signs_for_a_week():
    client = _FakeS3Client()
    storage = S3Storage(bucket="shortreel", client=client)

    url = await storage.put(b"clip", "uploads/user-1/1-short-1.mp4", "video/mp4")

    assert url.startswith("https://shortreel.s3.amazonaws.com/uploads/user-1/1-short-1.mp4")
    assert client.puts[0]["Body"] == b"clip"
    assert client.puts[0]["ContentType"] == "video/mp4"
    assert client.presigned == [
        ("get_object", {"Bucket": "shortreel", "Key": "uploads/user-1/1-short-1.mp4"}, 604800)
    ]


@pytest.mark.asyncio
async def test_put_retries_transient_errors():
    client = _FakeS3Client(put_failures=2)
    storage = S3Storage(bucket="shortreel", client=client)

    await storage.put(b"clip", "uploads/user-1/1-short-1.mp4")

    assert len(client.puts) == 1


@pytest.mark.asyncio
async def test_put_gives_up_after_retries():
    client = _FakeS3Client(put_failures=10)
    storage = S3Storage(bucket="shortreel", client=client)

    with pytest.raises(UploadError, match="SlowDown"):
        await storage.put(b"clip", "uploads/user-1/1-short-1.mp4")

    assert client.put_failures == 7


@pytest.mark.asyncio
async def test_get_signs_for_an_hour():
    client = _FakeS3Client()
    storage = S3Storage(bucket="shortreel", client=client)

    await storage.get("uploads/user-1/1-short-1.mp4")

    assert client.presigned[0][2] == 3600


@pytest.mark.parametrize("url,key", [
    ("https://shortreel.s3.amazonaws.com/uploads/u/1-a.mp4?X-Amz-Signature=abc", "uploads/u/1-a.mp4"),
    ("https://s3.eu-west-1.amazonaws.com/shortreel/uploads/u/1-a.mp4", "uploads/u/1-a.mp4"),
    ("http://localhost:9000/shortreel/uploads/u/1-a%20b.mp4", "uploads/u/1-a b.mp4"),
    ("s3://shortreel/uploads/u/1-a.mp4", "uploads/u/1-a.mp4"),
])
def test_key_from_url(url, key):
    storage = S3Storage(bucket="shortreel", client=_FakeS3Client())

    assert storage.key_from_url(url) == key


def test_key_from_url_without_key():
    storage = S3Storage(bucket="shortreel", client=_FakeS3Client())

    with pytest.raises(StorageError):
        storage.key_from_url("https://shortreel.s3.amazonaws.com/")


@pytest.mark.asyncio
async def test_delete():
    client = _FakeS3Client()
    storage = S3Storage(bucket="shortreel", client=client)

    await storage.delete("https://shortreel.s3.amazonaws.com/uploads/u/1-a.mp4?X-Amz-Expires=3600")

    assert client.deleted == [("shortreel", "uploads/u/1-a.mp4")]


@pytest.mark.asyncio
async def test_delete_failure():
    error = ClientError({"Error": {"Code": "AccessDenied", "Message": "Access Denied"}}, "DeleteObject")
    storage = S3Storage(bucket="shortreel", client=_FakeS3Client(delete_error=error))

    with pytest.raises(StorageError, match="AccessDenied"):
        await storage.delete("s3://shortreel/uploads/u/1-a.mp4")
