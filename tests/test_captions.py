"""Tests for caption extraction."""
from pathlib import Path

import pytest
from sqlalchemy import select

from conftest import add_video
from shortreel.models.caption import Caption
from shortreel.pipeline import captions as captions_module
from shortreel.pipeline.captions import CaptionExtractor, CaptionOwner, TranscriptSegment, extract_audio
from shortreel.pipeline.errors import CaptionError
from shortreel.utils.ffmpeg import FFmpegError


class _FakeTranscriber:
    def __init__(self, segments=None, error=None):
        self.segments = segments or []
        self.error = error
        self.seen_audio = []

    def transcribe(self, audio_path):
        self.seen_audio.append(Path(audio_path))
        assert Path(audio_path).exists()
        if self.error:
            raise self.error
        return self.segments


@pytest.fixture
def fake_audio(monkeypatch):
    async def fake_extract_audio(video_path, output_path):
        Path(output_path).write_bytes(b"RIFF")
        return Path(output_path)

    monkeypatch.setattr(captions_module, "extract_audio", fake_extract_audio)


async def _captions(session_maker, video_id):
    async with session_maker() as session:
        result = await session.execute(
            select(Caption).where(Caption.video_id == video_id).order_by(Caption.start_time)
        )
        return result.scalars().all()


def test_owner_needs_exactly_one_id():
    assert str(CaptionOwner(video_id="v1")) == "video v1"
    assert str(CaptionOwner(short_id="s1")) == "short s1"
    with pytest.raises(ValueError):
        CaptionOwner()
    with pytest.raises(ValueError):
        CaptionOwner(video_id="v1", short_id="s1")


@pytest.mark.asyncio
async def test_generate_captions_for_a_video(session_maker, fake_audio, tmp_path):
    await add_video(session_maker)
    transcriber = _FakeTranscriber(segments=[
        TranscriptSegment(text="second", start=4.0, end=6.0),
        TranscriptSegment(text="first", start=0.5, end=3.0),
        TranscriptSegment(text="", start=6.0, end=7.0),
    ])
    extractor = CaptionExtractor(session_maker, transcriber, work_dir=tmp_path)

    count = await extractor.generate_captions(tmp_path / "video.mp4", CaptionOwner(video_id="video-1"))

    assert count == 2
    rows = await _captions(session_maker, "video-1")
    assert [c.to_dict() for c in rows] == [
        {"text": "first", "start": 0.5, "end": 3.0},
        {"text": "second", "start": 4.0, "end": 6.0},
    ]
    assert all(c.short_id is None for c in rows)
    assert not transcriber.seen_audio[0].exists()


@pytest.mark.asyncio
async def test_transcription_failure_stores_nothing(session_maker, fake_audio, tmp_path):
    await add_video(session_maker)
    transcriber = _FakeTranscriber(error=RuntimeError("CUDA out of memory"))
    extractor = CaptionExtractor(session_maker, transcriber, work_dir=tmp_path)

    with pytest.raises(CaptionError, match="Transcription failed"):
        await extractor.generate_captions(tmp_path / "video.mp4", CaptionOwner(video_id="video-1"))

    assert await _captions(session_maker, "video-1") == []
    assert not transcriber.seen_audio[0].exists()


@pytest.mark.asyncio
async def test_unknown_owner_stores_nothing(session_maker, fake_audio, tmp_path):
    transcriber = _FakeTranscriber(segments=[TranscriptSegment(text="hi", start=0.0, end=1.0)])
    extractor = CaptionExtractor(session_maker, transcriber, work_dir=tmp_path)

    with pytest.raises(CaptionError, match="Failed to save captions"):
        await extractor.generate_captions(tmp_path / "video.mp4", CaptionOwner(video_id="missing"))

    assert list(tmp_path.glob("audio-*.wav")) == []


@pytest.mark.asyncio
async def test_extract_audio_command(monkeypatch, tmp_path):
    calls = []

    async def fake_run_tool(cmd, timeout=None):
        calls.append(cmd)
        return b"", b""

    monkeypatch.setattr(captions_module, "run_tool", fake_run_tool)

    output = await extract_audio("video.mp4", tmp_path / "audio.wav")

    assert output == tmp_path / "audio.wav"
    cmd = calls[0]
    assert "-vn" in cmd
    assert cmd[cmd.index("-ac") + 1] == "1"
    assert cmd[cmd.index("-ar") + 1] == "16000"
    assert cmd[cmd.index("-c:a") + 1] == "pcm_s16le"


@pytest.mark.asyncio
async def test_extract_audio_failure(monkeypatch, tmp_path):
    async def fake_run_tool(cmd, timeout=None):
        raise FFmpegError("ffmpeg exited with code 1: Output file does not contain any stream")

    monkeypatch.setattr(captions_module, "run_tool", fake_run_tool)

    with pytest.raises(CaptionError, match="Audio extraction failed"):
        await extract_audio("video.mp4", tmp_path / "audio.wav")
