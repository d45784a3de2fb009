"""Record of a segment the pipeline had to skip."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Float, ForeignKey, Text

from shortreel.db.database import Base


class FailedSegment(Base):
    """Why a selected segment produced no short."""

    __tablename__ = "failed_segments"

    id = Column(Integer, primary_key=True, index=True)
    video_id = Column(String(36), ForeignKey("videos.id", ondelete="CASCADE"), nullable=False, index=True)

    segment_index = Column(Integer, nullable=False)  # 1-based, matches "Part N"
    start_time = Column(Float, nullable=False)
    duration = Column(Float, nullable=False)

    stage = Column(String(32), nullable=False)  # transcode, upload, persist
    reason = Column(Text, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<FailedSegment(video={self.video_id}, index={self.segment_index}, stage={self.stage})>"

    def to_dict(self):
        """Convert to dictionary."""
        return {
            "segment_index": self.segment_index,
            "start_time": self.start_time,
            "duration": self.duration,
            "stage": self.stage,
            "reason": self.reason,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
