"""Short clip model."""
import uuid
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Float, ForeignKey
from sqlalchemy.orm import relationship

from shortreel.db.database import Base


class Short(Base):
    """A short clip cut from a source video. Written once, never updated."""

    __tablename__ = "shorts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    video_id = Column(String(36), ForeignKey("videos.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(255), nullable=False)

    title = Column(String(512), nullable=False)
    url = Column(String(4096), nullable=False)
    thumbnail_url = Column(String(4096), nullable=True)

    # Position in the source, seconds
    start_time = Column(Float, nullable=False)
    end_time = Column(Float, nullable=False)
    duration = Column(Float, nullable=False)

    # 1-based index of the segment this short came from
    part_number = Column(Integer, nullable=False)
    filter = Column(String(32), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    video = relationship("Video", back_populates="shorts")

    def __repr__(self):
        return f"<Short(id={self.id}, video={self.video_id}, part={self.part_number})>"

    def to_dict(self):
        """Convert to dictionary."""
        return {
            "id": self.id,
            "video_id": self.video_id,
            "title": self.title,
            "url": self.url,
            "thumbnail_url": self.thumbnail_url,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration": self.duration,
            "part_number": self.part_number,
            "filter": self.filter,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
