"""Segment extraction and re-encoding."""
import logging
from pathlib import Path
from typing import List, Optional

from shortreel.config import settings
from shortreel.models.processing_settings import VideoFilter
from shortreel.pipeline.errors import TranscodeError
from shortreel.pipeline.filters import get_filter_graph
from shortreel.utils.ffmpeg import FFmpegError, run_tool

logger = logging.getLogger(__name__)


def build_segment_command(
    input_path: str | Path,
    output_path: str | Path,
    start: float,
    duration: float,
    video_filter: Optional[VideoFilter | str] = None,
) -> List[str]:
    """Build the ffmpeg argument vector for one segment."""
    graph = get_filter_graph(video_filter)

    cmd = [
        settings.ffmpeg_path,
        "-y",
        "-hide_banner",
        "-ss", f"{start:.3f}",
        "-i", str(input_path),
        "-t", f"{duration:.3f}",
    ]

    if graph is not None and graph.complex:
        cmd += [
            "-filter_complex", graph.graph,
            "-map", f"[{graph.output_label}]",
            "-map", "0:a?",
        ]
    elif graph is not None:
        cmd += ["-vf", graph.graph]

    cmd += [
        "-c:v", settings.export_video_codec,
        "-b:v", settings.export_video_bitrate,
        "-c:a", settings.export_audio_codec,
        "-b:a", settings.export_audio_bitrate,
        "-movflags", "+faststart",
        str(output_path),
    ]
    return cmd


async def extract_segment(
    input_path: str | Path,
    output_path: str | Path,
    start: float,
    duration: float,
    video_filter: Optional[VideoFilter | str] = None,
) -> Path:
    """
    Cut ``[start, start + duration)`` out of the source into a new MP4.

    Args:
        input_path: Source video
        output_path: Destination file
        start: Start offset in seconds
        duration: Window length in seconds
        video_filter: Optional named filter to render with

    Returns:
        Path to the encoded segment

    Raises:
        TranscodeError: Carrying ffmpeg's diagnostic output
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        cmd = build_segment_command(input_path, output_path, start, duration, video_filter)
    except ValueError as e:
        raise TranscodeError(f"Invalid filter {video_filter!r}: {e}") from e

    logger.info(
        f"Extracting {start:.2f}s+{duration:.2f}s -> {output_path.name}"
        + (f" (filter={VideoFilter(video_filter).value})" if video_filter else "")
    )

    try:
        await run_tool(cmd)
    except FFmpegError as e:
        raise TranscodeError(f"Export failed: {e}") from e

    if not output_path.exists() or output_path.stat().st_size == 0:
        raise TranscodeError(f"Export produced no output: {output_path}")

    return output_path
