"""Pydantic schemas for API requests and responses."""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field, model_validator

from shortreel.models.processing_settings import VideoFilter
from shortreel.pipeline.config import ProcessingConfig


# =============================================================================
# Processing
# =============================================================================

class ProcessRequest(BaseModel):
    """Request to start processing a video."""
    video_id: str = Field(..., min_length=1, description="ID of the uploaded video")


class ProcessResponse(BaseModel):
    """Acknowledgement of a processing trigger; never carries the outcome."""
    success: bool
    started: bool
    message: str


class ProcessingSettingsSchema(BaseModel):
    """Processing settings for a video."""
    segment_duration: float = Field(15.0, ge=5, le=60, description="Target short length in seconds")
    enable_scene_detection: bool = False
    enable_captions: bool = False
    enable_filters: bool = False
    selected_filter: VideoFilter = VideoFilter.NONE
    min_segment_length: float = Field(10.0, ge=5, le=30, description="Shortest allowed short in seconds")
    max_segments: int = Field(5, ge=1, le=10, description="Upper bound on shorts per video")

    model_config = ConfigDict(from_attributes=True)

    def to_config(self) -> ProcessingConfig:
        """Convert to the pipeline's config type."""
        return ProcessingConfig(**self.model_dump())


# =============================================================================
# Video / Short Schemas
# =============================================================================

class VideoResponse(BaseModel):
    """Video status, polled by clients."""
    id: str
    user_id: str
    title: str
    status: str
    duration: Optional[float]
    thumbnail_url: Optional[str]
    error_message: Optional[str]
    short_count: int = 0
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ShortResponse(BaseModel):
    """Short response."""
    id: str
    video_id: str
    title: str
    url: str
    thumbnail_url: Optional[str]
    start_time: float
    end_time: float
    duration: float
    part_number: int
    filter: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserShortResponse(ShortResponse):
    """Short in a user's listing, with the title of its source video."""
    video_title: str


class VideoUploadResponse(BaseModel):
    """Result of an upload: the created video and whether processing started."""
    success: bool
    started: bool
    video: VideoResponse


class FailedSegmentResponse(BaseModel):
    """A segment that was skipped during processing."""
    segment_index: int
    start_time: float
    duration: float
    stage: str
    reason: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# Captions
# =============================================================================

class CaptionRequest(BaseModel):
    """Request to generate captions for a video or a short."""
    video_id: Optional[str] = None
    short_id: Optional[str] = None

    @model_validator(mode="after")
    def check_single_owner(self):
        if bool(self.video_id) == bool(self.short_id):
            raise ValueError("Exactly one of video_id or short_id is required")
        return self


class CaptionResponse(BaseModel):
    """A single caption span."""
    text: str
    start: float
    end: float


class CaptionsResponse(BaseModel):
    """Captions of a video or a short."""
    success: bool
    captions: List[CaptionResponse]


# =============================================================================
# Health
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    ffmpeg_available: bool
    ffprobe_available: bool
    message: Optional[str] = None
