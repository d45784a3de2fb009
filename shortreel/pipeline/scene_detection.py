"""Scene change detection.

FFmpeg's ``scene`` score is treated as a black box: frames scoring above the
threshold become cut candidates, and the strongest few are kept.
"""
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import numpy as np

from shortreel.config import settings
from shortreel.pipeline.errors import SceneDetectionError
from shortreel.utils.ffmpeg import FFmpegError, parse_scene_metadata, run_tool

logger = logging.getLogger(__name__)


def rank_scene_changes(
    changes: Sequence[Tuple[float, float]],
    min_scene_length: float,
    limit: Optional[int] = None,
) -> List[float]:
    """
    Reduce raw (timestamp, score) detections to the strongest cut points.

    A candidate closer than ``min_scene_length`` to its immediate predecessor
    in the raw detection list is dropped. Survivors are ranked by score (ties
    keep stream order), capped at ``limit``, and returned in ascending time
    order so callers can pair consecutive cuts.

    Args:
        changes: Detections in stream order
        min_scene_length: Minimum spacing between consecutive detections
        limit: Maximum number of cuts to keep

    Returns:
        Ascending list of timestamps in seconds
    """
    if limit is None:
        limit = settings.max_scene_changes
    if not changes:
        return []

    kept = [
        change for i, change in enumerate(changes)
        if i == 0 or change[0] - changes[i - 1][0] >= min_scene_length
    ]

    scores = np.array([score for _, score in kept], dtype=float)
    order = np.argsort(-scores, kind="stable")[:limit]

    return sorted(float(kept[i][0]) for i in order)


async def detect_scenes(
    video_path: str | Path,
    min_scene_length: float = 5.0,
    threshold: Optional[float] = None,
) -> List[float]:
    """
    Detect scene changes in a video using FFmpeg.

    Args:
        video_path: Path to video file
        min_scene_length: Minimum spacing between detected cuts
        threshold: Scene score threshold (0-1), lower = more sensitive

    Returns:
        Ascending timestamps (seconds, > 0) of the strongest cuts

    Raises:
        SceneDetectionError: If ffmpeg fails or times out
    """
    if threshold is None:
        threshold = settings.scene_threshold

    cmd = [
        settings.ffmpeg_path,
        "-hide_banner",
        "-nostats",
        "-i", str(video_path),
        "-vf", f"select='gt(scene,{threshold})',metadata=print",
        "-an",
        "-f", "null",
        "-"
    ]

    try:
        _, stderr = await run_tool(cmd)
    except FFmpegError as e:
        raise SceneDetectionError(f"Scene detection failed: {e}") from e

    changes = parse_scene_metadata(stderr.decode("utf-8", errors="ignore"))
    scenes = rank_scene_changes(changes, min_scene_length)

    logger.info(f"Detected {len(changes)} scene changes, kept {len(scenes)}: {scenes}")
    return scenes
