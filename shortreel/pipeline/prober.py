"""Duration probing for local media files."""
import logging
from pathlib import Path

from shortreel.pipeline.errors import MetadataError
from shortreel.utils.ffmpeg import FFmpegError, probe_format

logger = logging.getLogger(__name__)


async def probe_duration(video_path: str | Path) -> float:
    """
    Get the total duration of a media file in seconds.

    Uses the container duration, falling back to the first stream that
    reports one.

    Raises:
        MetadataError: If ffprobe fails or no positive duration is present
    """
    try:
        data = await probe_format(video_path)
    except FFmpegError as e:
        raise MetadataError(f"Failed to probe {video_path}: {e}") from e

    candidates = [data.get("format", {}).get("duration")]
    candidates.extend(stream.get("duration") for stream in data.get("streams", []))

    for raw in candidates:
        if raw in (None, "N/A"):
            continue
        try:
            duration = float(raw)
        except (TypeError, ValueError):
            continue
        if duration > 0:
            logger.info(f"Probed {Path(video_path).name}: {duration:.2f}s")
            return duration

    raise MetadataError(f"No duration found in {video_path}")
