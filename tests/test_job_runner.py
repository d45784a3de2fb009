"""Tests for the background job runner."""
import asyncio

import pytest

from shortreel.workers.job_runner import JobRunner


@pytest.mark.asyncio
async def test_duplicate_job_is_refused():
    runner = JobRunner()
    release = asyncio.Event()
    calls = []

    async def handler(video_id):
        calls.append(video_id)
        await release.wait()
        return {"video_id": video_id}

    runner.register_handler("process", handler)

    assert await runner.start_job("process", "video-1", video_id="video-1") is True
    assert await runner.start_job("process", "video-1", video_id="video-1") is False
    assert await runner.start_job("process", "video-2", video_id="video-2") is True
    assert runner.is_job_running("process", "video-1")

    release.set()
    await runner.wait_for("process", "video-1")
    await runner.wait_for("process", "video-2")

    assert sorted(calls) == ["video-1", "video-2"]
    assert not runner.is_job_running("process", "video-1")
    assert await runner.start_job("process", "video-1", video_id="video-1") is True
    await runner.wait_for("process", "video-1")


@pytest.mark.asyncio
async def test_failing_job_releases_its_key():
    runner = JobRunner()

    async def handler():
        raise RuntimeError("boom")

    runner.register_handler("captions", handler)

    assert await runner.start_job("captions", "video:1") is True
    await runner.wait_for("captions", "video:1")

    assert not runner.is_job_running("captions", "video:1")


@pytest.mark.asyncio
async def test_unknown_job_type():
    assert await JobRunner().start_job("publish", "video-1") is False


@pytest.mark.asyncio
async def test_shutdown_cancels_running_jobs():
    runner = JobRunner()
    cancelled = asyncio.Event()

    async def handler():
        try:
            await asyncio.sleep(3600)
        except asyncio.CancelledError:
            cancelled.set()
            raise

    runner.register_handler("process", handler)
    await runner.start_job("process", "video-1")
    await asyncio.sleep(0)

    await runner.shutdown()

    assert cancelled.is_set()
    assert not runner.is_job_running("process", "video-1")
