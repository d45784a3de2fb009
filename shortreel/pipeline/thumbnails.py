"""Thumbnail generation."""
import logging
from pathlib import Path
from typing import List

import numpy as np

from shortreel.config import settings
from shortreel.pipeline.errors import ThumbnailError
from shortreel.utils.ffmpeg import FFmpegError, run_tool

logger = logging.getLogger(__name__)


async def generate_thumbnail(
    video_path: str | Path,
    timestamp: float = 0.0,
    width: int = None,
) -> bytes:
    """
    Grab a single frame as a JPEG.

    Args:
        video_path: Path to video file
        timestamp: Time in seconds to capture
        width: Output width, height follows the aspect ratio

    Returns:
        JPEG bytes

    Raises:
        ThumbnailError: If ffmpeg fails or returns nothing
    """
    width = width or settings.thumbnail_width

    cmd = [
        settings.ffmpeg_path,
        "-hide_banner",
        "-ss", f"{max(0.0, timestamp):.3f}",
        "-i", str(video_path),
        "-frames:v", "1",
        "-vf", f"scale={width}:-2",
        "-q:v", str(settings.thumbnail_quality),
        "-f", "image2pipe",
        "-c:v", "mjpeg",
        "pipe:1"
    ]

    try:
        stdout, _ = await run_tool(cmd)
    except FFmpegError as e:
        raise ThumbnailError(f"Thumbnail generation failed: {e}") from e

    if not stdout:
        raise ThumbnailError(f"Thumbnail at {timestamp:.2f}s is empty")

    return stdout


def interval_offsets(duration: float, count: int) -> List[float]:
    """
    Evenly spaced offsets strictly inside ``(0, duration)``.

    Offsets are capped one second before the end; offsets the cap merges are
    returned once, so short videos may get fewer than ``count``.
    """
    offsets = np.linspace(0.0, duration, count + 2)[1:-1]
    if duration > 1:
        offsets = np.unique(np.minimum(offsets, duration - 1))
    return [float(t) for t in offsets]


async def generate_at_intervals(
    video_path: str | Path,
    duration: float,
    count: int = 3,
) -> List[bytes]:
    """
    Generate thumbnails spread across the video.

    Individual failures are skipped.

    Returns:
        JPEG bytes for every offset that succeeded, in time order

    Raises:
        ThumbnailError: If the duration is invalid or every attempt failed
    """
    if not duration or duration <= 0:
        raise ThumbnailError("Invalid video duration")

    offsets = interval_offsets(duration, count)
    thumbnails = []
    for i, offset in enumerate(offsets):
        try:
            thumbnails.append(await generate_thumbnail(video_path, offset))
        except ThumbnailError as e:
            logger.warning(f"Thumbnail {i + 1}/{len(offsets)} at {offset:.2f}s failed: {e}")

    if not thumbnails:
        raise ThumbnailError("Failed to generate any thumbnails")

    return thumbnails
