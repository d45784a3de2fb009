"""Caption model."""
from sqlalchemy import Column, Integer, String, Float, ForeignKey, Text, CheckConstraint

from shortreel.db.database import Base


class Caption(Base):
    """Timed text span owned by either a video or a short."""

    __tablename__ = "captions"
    __table_args__ = (
        CheckConstraint(
            "(video_id IS NULL) != (short_id IS NULL)",
            name="ck_caption_single_owner",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    video_id = Column(String(36), ForeignKey("videos.id", ondelete="CASCADE"), nullable=True, index=True)
    short_id = Column(String(36), ForeignKey("shorts.id", ondelete="CASCADE"), nullable=True, index=True)

    text = Column(Text, nullable=False)
    start_time = Column(Float, nullable=False)
    end_time = Column(Float, nullable=False)

    def __repr__(self):
        return f"<Caption(id={self.id}, {self.start_time:.2f}-{self.end_time:.2f})>"

    def to_dict(self):
        """Convert to dictionary."""
        return {
            "text": self.text,
            "start": self.start_time,
            "end": self.end_time,
        }
