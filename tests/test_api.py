"""Tests for the HTTP API."""
import httpx
import pytest
import pytest_asyncio

from conftest import FakeStorage, add_video
from shortreel.api import routes
from shortreel.db.database import get_db
from shortreel.main import app
from shortreel.models.short import Short
from shortreel.models.video import VideoStatus
from shortreel.workers.job_runner import JobRunner


@pytest.fixture
def started():
    return []


@pytest.fixture
def runner(monkeypatch, started):
    runner = JobRunner()

    async def process_handler(video_id):
        started.append(video_id)

    runner.register_handler("process", process_handler)
    monkeypatch.setattr(routes, "job_runner", runner)
    return runner


@pytest_asyncio.fixture
async def client(session_maker, runner):
    async def override_get_db():
        async with session_maker() as session:
            yield session
            await session.commit()

    app.dependency_overrides[get_db] = override_get_db

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as http:
        yield http

    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_process_unknown_video(client):
    response = await client.post("/api/process", json={"video_id": "missing"})

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_process_starts_a_background_run(client, session_maker, runner, started):
    await add_video(session_maker)

    response = await client.post("/api/process", json={"video_id": "video-1"})
    await runner.wait_for("process", "video-1")

    assert response.status_code == 202
    assert response.json()["started"] is True
    assert started == ["video-1"]


@pytest.mark.asyncio
async def test_process_completed_video_is_a_no_op(client, session_maker, started):
    await add_video(session_maker, status=VideoStatus.COMPLETED)

    response = await client.post("/api/process", json={"video_id": "video-1"})

    assert response.status_code == 202
    assert response.json()["started"] is False
    assert started == []


@pytest.mark.asyncio
async def test_get_video_status(client, session_maker):
    await add_video(session_maker, status=VideoStatus.FAILED, error_message="Download failed")

    response = await client.get("/api/videos/video-1")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "failed"
    assert body["error_message"] == "Download failed"
    assert body["short_count"] == 0


@pytest.mark.asyncio
async def test_settings_round_trip(client, session_maker):
    await add_video(session_maker)

    defaults = (await client.get("/api/videos/video-1/settings")).json()
    assert defaults["segment_duration"] == 15.0
    assert defaults["selected_filter"] == "none"

    response = await client.put(
        "/api/videos/video-1/settings",
        json={"segment_duration": 30, "max_segments": 3, "enable_filters": True, "selected_filter": "grayscale"},
    )
    assert response.status_code == 200
    assert response.json()["max_segments"] == 3

    saved = (await client.get("/api/videos/video-1/settings")).json()
    assert saved["segment_duration"] == 30.0
    assert saved["selected_filter"] == "grayscale"


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    {"max_segments": 11},
    {"segment_duration": 2},
    {"selected_filter": "sepia"},
])
async def test_invalid_settings_are_rejected(client, session_maker, payload):
    await add_video(session_maker)

    response = await client.put("/api/videos/video-1/settings", json=payload)

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_captions_need_an_owner(client):
    assert (await client.get("/api/captions")).status_code == 400
    assert (await client.post("/api/captions", json={})).status_code == 422
    assert (await client.post("/api/captions", json={"video_id": "a", "short_id": "b"})).status_code == 422


@pytest.mark.asyncio
async def test_delete_video(client, session_maker):
    await add_video(session_maker)

    assert (await client.delete("/api/videos/video-1")).status_code == 200
    assert (await client.get("/api/videos/video-1")).status_code == 404
    assert (await client.delete("/api/videos/video-1")).status_code == 404


@pytest.fixture
def storage(monkeypatch):
    storage = FakeStorage()
    monkeypatch.setattr(app.state, "storage", storage, raising=False)
    return storage


@pytest.mark.asyncio
async def test_upload_registers_and_starts_processing(client, storage, runner, started):
    response = await client.post(
        "/api/videos",
        data={"user_id": "user-1", "processing_settings": '{"max_segments": 3}'},
        files={"file": ("keynote.mp4", b"\x00\x01video", "video/mp4")},
    )
    assert response.status_code == 201
    body = response.json()
    video_id = body["video"]["id"]
    await runner.wait_for("process", video_id)

    assert body["started"] is True
    assert body["video"]["title"] == "keynote"
    assert body["video"]["status"] == "pending"
    assert started == [video_id]
    assert "https://bucket.test/uploads/user-1/keynote.mp4" in storage.objects

    settings = (await client.get(f"/api/videos/{video_id}/settings")).json()
    assert settings["max_segments"] == 3


@pytest.mark.asyncio
async def test_upload_with_invalid_settings(client, storage, started):
    response = await client.post(
        "/api/videos",
        data={"user_id": "user-1", "processing_settings": '{"max_segments": 50}'},
        files={"file": ("keynote.mp4", b"video", "video/mp4")},
    )

    assert response.status_code == 422
    assert storage.objects == {}
    assert started == []


@pytest.mark.asyncio
async def test_upload_of_an_empty_file(client, storage):
    response = await client.post(
        "/api/videos",
        data={"user_id": "user-1"},
        files={"file": ("keynote.mp4", b"", "video/mp4")},
    )

    assert response.status_code == 400
    assert storage.objects == {}


@pytest.mark.asyncio
async def test_upload_storage_failure(client, storage, started):
    storage.fail_keys = ("keynote",)
    response = await client.post(
        "/api/videos",
        data={"user_id": "user-1"},
        files={"file": ("keynote.mp4", b"video", "video/mp4")},
    )

    assert response.status_code == 502
    assert started == []


@pytest.mark.asyncio
async def test_list_user_videos_and_shorts(client, session_maker):
    await add_video(session_maker)
    await add_video(session_maker, video_id="video-2", user_id="user-2", title="Other")
    async with session_maker() as session:
        session.add(Short(
            id="short-1", video_id="video-1", user_id="user-1", title="Conference Talk - Part 1",
            url="https://bucket.test/uploads/user-1/short-1.mp4",
            start_time=0.0, end_time=15.0, duration=15.0, part_number=1,
        ))
        await session.commit()

    videos = (await client.get("/api/videos", params={"user_id": "user-1"})).json()
    shorts = (await client.get("/api/shorts", params={"user_id": "user-1"})).json()

    assert [(v["id"], v["short_count"]) for v in videos] == [("video-1", 1)]
    assert [(s["id"], s["video_title"]) for s in shorts] == [("short-1", "Conference Talk")]
    assert (await client.get("/api/shorts", params={"user_id": "user-2"})).json() == []
    assert (await client.get("/api/videos")).status_code == 422
