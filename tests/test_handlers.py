"""Tests for background job handlers."""
from pathlib import Path

import pytest

from conftest import FakeDownloader, add_video
from shortreel.models.short import Short
from shortreel.pipeline.orchestrator import RunResult
from shortreel.workers import handlers
from shortreel.workers.handlers import handle_captions, handle_process


class _FakeExtractor:
    def __init__(self):
        self.calls = []

    async def generate_captions(self, video_path, owner, work_dir=None):
        assert Path(video_path).read_bytes() == b"source-video"
        self.calls.append((Path(video_path).name, str(owner)))
        return 4


class _FakePipeline:
    async def run(self, video_id):
        return RunResult(video_id=video_id, claimed=False)


@pytest.fixture(autouse=True)
def scratch_dir(monkeypatch, tmp_path):
    monkeypatch.setattr(handlers.settings, "work_dir", tmp_path / "work")
    return tmp_path / "work"


@pytest.mark.asyncio
async def test_handle_process_returns_summary():
    summary = await handle_process(_FakePipeline(), "video-1")

    assert summary["video_id"] == "video-1"
    assert summary["claimed"] is False


@pytest.mark.asyncio
async def test_handle_captions_for_a_short(session_maker, scratch_dir):
    await add_video(session_maker)
    async with session_maker() as session:
        session.add(Short(
            id="short-1", video_id="video-1", user_id="user-1", title="Conference Talk - Part 1",
            url="https://bucket.test/uploads/user-1/short-1.mp4",
            start_time=0.0, end_time=15.0, duration=15.0, part_number=1,
        ))
        await session.commit()
    extractor = _FakeExtractor()
    downloader = FakeDownloader()

    result = await handle_captions(extractor, downloader, session_maker, short_id="short-1")

    assert result == {"owner": "short short-1", "captions": 4}
    assert downloader.calls == ["https://bucket.test/uploads/user-1/short-1.mp4"]
    assert extractor.calls == [("media.mp4", "short short-1")]
    assert list(scratch_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_handle_captions_unknown_owner(session_maker):
    with pytest.raises(ValueError, match="not found"):
        await handle_captions(_FakeExtractor(), FakeDownloader(), session_maker, video_id="missing")
