"""Pipeline error taxonomy.

Fatal errors abort a run and mark the video FAILED. Segment errors skip one
segment and let the run continue. Scene detection errors only trigger the
fixed-interval fallback.
"""


class PipelineError(Exception):
    """Base class for pipeline failures."""
    stage = "pipeline"


class InvalidSettingsError(ValueError):
    """Processing settings outside their allowed ranges."""
    pass


# Fatal

class DownloadError(PipelineError):
    stage = "download"


class MetadataError(PipelineError):
    stage = "metadata"


class SelectionEmptyError(PipelineError):
    stage = "selection"


# Recovered by falling back to fixed intervals

class SceneDetectionError(PipelineError):
    stage = "scene_detection"


# Segment scoped

class SegmentError(PipelineError):
    """Failure confined to a single segment."""
    stage = "segment"


class TranscodeError(SegmentError):
    stage = "transcode"


class ThumbnailError(SegmentError):
    stage = "thumbnail"


class UploadError(SegmentError):
    stage = "upload"


class PersistError(SegmentError):
    stage = "persist"


# Caption calls only

class CaptionError(PipelineError):
    stage = "captions"


FATAL_ERRORS = (DownloadError, MetadataError, SelectionEmptyError)
