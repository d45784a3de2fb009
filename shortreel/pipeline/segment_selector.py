"""Segment selection: which windows of the source become shorts.

Two strategies:
- basic: consecutive fixed-length windows from the start of the video
- scene: windows between detected scene cuts, falling back to basic when
  detection finds nothing usable or fails
"""
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Sequence

from shortreel.pipeline import scene_detection
from shortreel.pipeline.config import ProcessingConfig

logger = logging.getLogger(__name__)

# Float slack when comparing window ends against the probed duration
DURATION_TOLERANCE = 1e-6

SceneDetector = Callable[[Path, float], Awaitable[List[float]]]


@dataclass(frozen=True)
class VideoSegment:
    """A window of the source video selected for extraction."""
    start: float
    duration: float
    score: float = 1.0

    @property
    def end(self) -> float:
        return self.start + self.duration

    def __repr__(self):
        return f"VideoSegment({self.start:.2f}+{self.duration:.2f}s, score={self.score:.2f})"


def select_basic_segments(total_duration: float, config: ProcessingConfig) -> List[VideoSegment]:
    """
    Fixed-interval selection.

    Emits ``min(max_segments, floor(total / min_segment_length))`` back-to-back
    windows starting at 0. Each window lasts ``segment_duration`` clamped to
    ``[min_segment_length, total / count]``.
    """
    if total_duration <= 0:
        return []

    count = min(config.max_segments, math.floor(total_duration / config.min_segment_length))
    if count <= 0:
        return []

    segment_duration = max(
        config.min_segment_length,
        min(config.segment_duration, total_duration / count),
    )

    segments = []
    for i in range(count):
        start = i * segment_duration
        if start + segment_duration > total_duration + DURATION_TOLERANCE:
            break
        segments.append(VideoSegment(start=start, duration=segment_duration, score=round(1 - 0.1 * i, 6)))

    return segments


def segments_from_scenes(
    scene_timestamps: Sequence[float],
    total_duration: float,
    min_segment_length: float,
) -> List[VideoSegment]:
    """
    Build one segment per detected cut, running to the next cut (or the end).

    Segments shorter than ``min_segment_length`` are dropped. Every survivor
    gets the same maximal score.
    """
    cuts = sorted({float(t) for t in scene_timestamps if 0 < t < total_duration})

    segments = []
    for i, start in enumerate(cuts):
        end = cuts[i + 1] if i + 1 < len(cuts) else total_duration
        duration = end - start
        if duration >= min_segment_length:
            segments.append(VideoSegment(start=start, duration=duration, score=1.0))

    return segments


def rank_segments(segments: Sequence[VideoSegment], limit: int) -> List[VideoSegment]:
    """Highest score first, ties in encounter order, truncated to ``limit``."""
    return sorted(segments, key=lambda seg: -seg.score)[:limit]


async def select_segments(
    video_path: str | Path,
    config: ProcessingConfig,
    total_duration: float,
    detector: Optional[SceneDetector] = None,
) -> List[VideoSegment]:
    """
    Choose the segments to turn into shorts.

    Args:
        video_path: Local source file (only read by scene detection)
        config: Validated processing config
        total_duration: Probed duration in seconds
        detector: Scene detector override, defaults to ffmpeg detection

    Returns:
        Ordered segments; empty when the video is too short to cut
    """
    if total_duration <= 0:
        return []

    if config.enable_scene_detection:
        detector = detector or scene_detection.detect_scenes
        try:
            timestamps = await detector(Path(video_path), config.min_segment_length)
        except Exception as e:
            # Detection never sinks a run
            logger.warning(f"Scene detection failed, using fixed intervals: {e}")
            timestamps = []

        segments = segments_from_scenes(timestamps, total_duration, config.min_segment_length)
        if segments:
            selected = rank_segments(segments, config.max_segments)
            logger.info(f"Selected {len(selected)} scene segments: {selected}")
            return selected

        logger.info("No usable scene segments, using fixed intervals")

    segments = select_basic_segments(total_duration, config)
    logger.info(f"Selected {len(segments)} fixed-interval segments: {segments}")
    return segments
