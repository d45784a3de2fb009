# Models module
from shortreel.models.video import Video, VideoStatus
from shortreel.models.short import Short
from shortreel.models.processing_settings import ProcessingSettings, VideoFilter
from shortreel.models.caption import Caption
from shortreel.models.failed_segment import FailedSegment

__all__ = [
    "Video",
    "VideoStatus",
    "Short",
    "ProcessingSettings",
    "VideoFilter",
    "Caption",
    "FailedSegment",
]
