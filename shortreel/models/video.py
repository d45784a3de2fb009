"""Video model."""
import enum
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Enum, Float
from sqlalchemy.orm import relationship

from shortreel.db.database import Base


class VideoStatus(str, enum.Enum):
    """Video lifecycle status."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# Statuses a pipeline run may claim a video from. PROCESSING is never
# claimable; runs orphaned by a restart are failed at startup instead.
CLAIMABLE_STATUSES = (VideoStatus.PENDING, VideoStatus.FAILED)


class Video(Base):
    """Source video uploaded by a user."""

    __tablename__ = "videos"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(255), nullable=False, index=True)
    title = Column(String(255), nullable=False)

    # Storage reference of the uploaded source
    url = Column(String(4096), nullable=False)
    thumbnail_url = Column(String(4096), nullable=True)

    # Populated by the pipeline after probing
    duration = Column(Float, nullable=True)

    status = Column(Enum(VideoStatus), default=VideoStatus.PENDING, nullable=False)
    error_message = Column(String(4096), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    shorts = relationship("Short", back_populates="video", passive_deletes=True)
    processing_settings = relationship(
        "ProcessingSettings", back_populates="video", uselist=False, passive_deletes=True
    )

    def __repr__(self):
        return f"<Video(id={self.id}, title='{self.title}', status={self.status})>"
