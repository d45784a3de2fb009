"""Per-video processing settings."""
import enum
from sqlalchemy import Boolean, Column, Integer, String, Float, ForeignKey, Enum
from sqlalchemy.orm import relationship

from shortreel.db.database import Base


class VideoFilter(str, enum.Enum):
    """Visual filters a short can be rendered with."""
    NONE = "none"
    BOOST = "boost"
    VINTAGE = "vintage"
    GRAYSCALE = "grayscale"
    BLUR = "blur"


class ProcessingSettings(Base):
    """Settings chosen at upload time, one row per video."""

    __tablename__ = "processing_settings"

    id = Column(Integer, primary_key=True, index=True)
    video_id = Column(String(36), ForeignKey("videos.id", ondelete="CASCADE"), nullable=False, unique=True)

    segment_duration = Column(Float, nullable=False, default=15.0)
    enable_scene_detection = Column(Boolean, nullable=False, default=False)
    enable_captions = Column(Boolean, nullable=False, default=False)
    enable_filters = Column(Boolean, nullable=False, default=False)
    selected_filter = Column(Enum(VideoFilter), nullable=False, default=VideoFilter.NONE)
    min_segment_length = Column(Float, nullable=False, default=10.0)
    max_segments = Column(Integer, nullable=False, default=5)

    video = relationship("Video", back_populates="processing_settings")

    def __repr__(self):
        return f"<ProcessingSettings(video={self.video_id}, scenes={self.enable_scene_detection})>"
