"""Shared fixtures and fakes."""
from pathlib import Path

import pytest
import pytest_asyncio

from shortreel.db.database import build_engine, build_session_maker, close_db, init_db
from shortreel.models.video import Video, VideoStatus
from shortreel.pipeline.errors import UploadError
from shortreel.services.storage import StorageError


class FakeStorage:
    """In-memory object store that records every call."""

    def __init__(self, fail_keys=(), fail_deletes=False):
        self.objects = {}
        self.deleted = []
        self.fail_keys = fail_keys
        self.fail_deletes = fail_deletes

    @staticmethod
    def make_key(owner_id, filename):
        return f"uploads/{owner_id}/{filename}"

    async def put(self, data, key, content_type="video/mp4"):
        if any(part in key for part in self.fail_keys):
            raise UploadError(f"S3 upload failed for {key}")
        url = f"https://bucket.test/{key}"
        self.objects[url] = (data, content_type)
        return url

    async def delete(self, url):
        if self.fail_deletes:
            raise StorageError(f"Failed to delete {url}")
        self.deleted.append(url)
        self.objects.pop(url, None)


class FakeDownloader:
    """Writes a few bytes where the real downloader would stream the file."""

    def __init__(self, error=None):
        self.error = error
        self.calls = []

    async def download(self, url, dest):
        self.calls.append(url)
        if self.error:
            raise self.error
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(b"source-video")
        return dest


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield build_session_maker(engine)
    await close_db(engine)


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def downloader():
    return FakeDownloader()


async def add_video(session_maker, video_id="video-1", status=VideoStatus.PENDING, **values):
    """Insert a video row and return it."""
    video = Video(
        id=video_id,
        user_id=values.pop("user_id", "user-1"),
        title=values.pop("title", "Conference Talk"),
        url=values.pop("url", f"https://bucket.test/uploads/user-1/{video_id}.mp4"),
        status=status,
        **values,
    )
    async with session_maker() as session:
        session.add(video)
        await session.commit()
    return video

