"""Processing configuration for a single pipeline run."""
from dataclasses import dataclass
from typing import Optional

from shortreel.models.processing_settings import ProcessingSettings, VideoFilter
from shortreel.pipeline.errors import InvalidSettingsError


# Allowed ranges, inclusive
SEGMENT_DURATION_RANGE = (5.0, 60.0)
MIN_SEGMENT_LENGTH_RANGE = (5.0, 30.0)
MAX_SEGMENTS_RANGE = (1, 10)


@dataclass(frozen=True)
class ProcessingConfig:
    """Validated, immutable settings for one run.

    Every field has a value; defaults are applied here once, never inside
    the pipeline.
    """

    segment_duration: float = 15.0
    enable_scene_detection: bool = False
    enable_captions: bool = False
    enable_filters: bool = False
    selected_filter: VideoFilter = VideoFilter.NONE
    min_segment_length: float = 10.0
    max_segments: int = 5

    def __post_init__(self):
        # Accept plain strings from API payloads
        if not isinstance(self.selected_filter, VideoFilter):
            try:
                object.__setattr__(self, "selected_filter", VideoFilter(self.selected_filter))
            except ValueError:
                raise InvalidSettingsError(f"Unknown filter: {self.selected_filter!r}")
        self.validate()

    def validate(self) -> None:
        """Raise InvalidSettingsError if any field is out of range."""
        _check_range("segment_duration", self.segment_duration, SEGMENT_DURATION_RANGE)
        _check_range("min_segment_length", self.min_segment_length, MIN_SEGMENT_LENGTH_RANGE)
        if isinstance(self.max_segments, bool) or not isinstance(self.max_segments, int):
            raise InvalidSettingsError("max_segments must be an integer")
        _check_range("max_segments", self.max_segments, MAX_SEGMENTS_RANGE)

    @property
    def effective_filter(self) -> Optional[VideoFilter]:
        """Filter to render with, or None when filtering is off."""
        if not self.enable_filters or self.selected_filter == VideoFilter.NONE:
            return None
        return self.selected_filter

    @classmethod
    def from_record(cls, record: Optional[ProcessingSettings]) -> "ProcessingConfig":
        """Build from a stored settings row; a missing row means defaults."""
        if record is None:
            return cls()
        return cls(
            segment_duration=float(record.segment_duration),
            enable_scene_detection=bool(record.enable_scene_detection),
            enable_captions=bool(record.enable_captions),
            enable_filters=bool(record.enable_filters),
            selected_filter=record.selected_filter or VideoFilter.NONE,
            min_segment_length=float(record.min_segment_length),
            max_segments=int(record.max_segments),
        )

    def to_dict(self) -> dict:
        """Convert config to dictionary for serialization."""
        return {
            "segment_duration": self.segment_duration,
            "enable_scene_detection": self.enable_scene_detection,
            "enable_captions": self.enable_captions,
            "enable_filters": self.enable_filters,
            "selected_filter": self.selected_filter.value,
            "min_segment_length": self.min_segment_length,
            "max_segments": self.max_segments,
        }


def _check_range(name: str, value, bounds) -> None:
    low, high = bounds
    if value is None or not (low <= value <= high):
        raise InvalidSettingsError(f"{name} must be between {low:g} and {high:g}, got {value!r}")


DEFAULT_PROCESSING_CONFIG = ProcessingConfig()
