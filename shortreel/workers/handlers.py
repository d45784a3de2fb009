"""Job handlers for the background runner."""
import logging
import tempfile
from pathlib import Path
from typing import Optional

from shortreel.config import settings
from shortreel.models.short import Short
from shortreel.models.video import Video
from shortreel.pipeline.captions import CaptionExtractor, CaptionOwner
from shortreel.pipeline.orchestrator import VideoPipeline

logger = logging.getLogger(__name__)


async def handle_process(pipeline: VideoPipeline, video_id: str) -> dict:
    """
    Handle a pipeline run for one video.

    The outcome lives in the video's status; the returned summary is only
    logged by the runner.
    """
    result = await pipeline.run(video_id)
    return result.to_dict()


async def handle_captions(
    extractor: CaptionExtractor,
    downloader,
    session_maker,
    video_id: Optional[str] = None,
    short_id: Optional[str] = None,
) -> dict:
    """
    Handle caption generation for a video or a short.

    Fetches the owner's media from storage into a scratch directory that is
    removed afterwards.

    Returns:
        Result dictionary with caption count
    """
    owner = CaptionOwner(video_id=video_id, short_id=short_id)

    async with session_maker() as session:
        if short_id:
            record = await session.get(Short, short_id)
        else:
            record = await session.get(Video, video_id)

    if record is None:
        raise ValueError(f"{owner} not found")

    settings.work_dir.mkdir(parents=True, exist_ok=True)
    with tempfile.TemporaryDirectory(prefix="captions-", dir=settings.work_dir) as tmp:
        media_path = await downloader.download(record.url, Path(tmp) / "media.mp4")
        count = await extractor.generate_captions(media_path, owner, work_dir=Path(tmp))

    return {"owner": str(owner), "captions": count}
