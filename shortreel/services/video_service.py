"""Video service layer."""
import logging
from typing import List, Optional, Tuple

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shortreel.models.caption import Caption
from shortreel.models.failed_segment import FailedSegment
from shortreel.models.processing_settings import ProcessingSettings
from shortreel.models.short import Short
from shortreel.models.video import Video, VideoStatus
from shortreel.pipeline.config import ProcessingConfig
from shortreel.services.storage import StorageError

logger = logging.getLogger(__name__)


class VideoService:
    """Service for video, short and caption records."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_video(
        self,
        user_id: str,
        title: str,
        url: str,
        config: Optional[ProcessingConfig] = None,
    ) -> Video:
        """
        Register an uploaded video as PENDING.

        Args:
            user_id: Owner
            title: Display title, shorts are named after it
            url: Storage URL of the uploaded source
            config: Settings to store with it; none means defaults at run time

        Returns:
            Created video
        """
        video = Video(user_id=user_id, title=title, url=url, status=VideoStatus.PENDING)
        self.db.add(video)
        await self.db.flush()

        if config is not None:
            self.db.add(ProcessingSettings(video_id=video.id, **_settings_values(config)))

        await self.db.commit()
        await self.db.refresh(video)
        logger.info(f"Created video {video.id} for user {user_id}")
        return video

    async def list_videos(self, user_id: str) -> List[Video]:
        """List a user's videos, newest first."""
        result = await self.db.execute(
            select(Video)
            .where(Video.user_id == user_id)
            .order_by(Video.created_at.desc())
        )
        return result.scalars().all()

    async def get_video(self, video_id: str) -> Optional[Video]:
        """Get a video by ID."""
        return await self.db.get(Video, video_id)

    async def get_short(self, short_id: str) -> Optional[Short]:
        """Get a short by ID."""
        return await self.db.get(Short, short_id)

    async def list_shorts(self, video_id: str) -> List[Short]:
        """List a video's shorts in part order."""
        result = await self.db.execute(
            select(Short)
            .where(Short.video_id == video_id)
            .order_by(Short.part_number)
        )
        return result.scalars().all()

    async def list_user_shorts(self, user_id: str) -> List[Tuple[Short, str]]:
        """List a user's shorts with their video titles, newest first."""
        result = await self.db.execute(
            select(Short, Video.title)
            .join(Video, Short.video_id == Video.id)
            .where(Short.user_id == user_id)
            .order_by(Short.created_at.desc(), Short.part_number.desc())
        )
        return [(short, title) for short, title in result.all()]

    async def count_shorts(self, video_id: str) -> int:
        """Count a video's shorts."""
        result = await self.db.execute(
            select(func.count(Short.id)).where(Short.video_id == video_id)
        )
        return result.scalar_one()

    async def list_failed_segments(self, video_id: str) -> List[FailedSegment]:
        """List segments skipped by pipeline runs, oldest first."""
        result = await self.db.execute(
            select(FailedSegment)
            .where(FailedSegment.video_id == video_id)
            .order_by(FailedSegment.created_at, FailedSegment.segment_index)
        )
        return result.scalars().all()

    async def get_settings(self, video_id: str) -> ProcessingConfig:
        """Stored settings for a video, or defaults."""
        result = await self.db.execute(
            select(ProcessingSettings).where(ProcessingSettings.video_id == video_id)
        )
        return ProcessingConfig.from_record(result.scalar_one_or_none())

    async def save_settings(self, video_id: str, config: ProcessingConfig) -> ProcessingSettings:
        """
        Create or replace a video's settings.

        Args:
            video_id: Video ID
            config: Already validated config

        Returns:
            Stored settings row
        """
        if await self.db.get(Video, video_id) is None:
            raise ValueError(f"Video {video_id} not found")

        result = await self.db.execute(
            select(ProcessingSettings).where(ProcessingSettings.video_id == video_id)
        )
        record = result.scalar_one_or_none()
        if record is None:
            record = ProcessingSettings(video_id=video_id)
            self.db.add(record)

        for name, value in _settings_values(config).items():
            setattr(record, name, value)

        await self.db.commit()
        await self.db.refresh(record)
        return record

    async def list_captions(
        self,
        video_id: Optional[str] = None,
        short_id: Optional[str] = None,
    ) -> List[Caption]:
        """Captions of a video or a short, ordered by start time."""
        if not video_id and not short_id:
            raise ValueError("Either video_id or short_id is required")

        conditions = []
        if video_id:
            conditions.append(Caption.video_id == video_id)
        if short_id:
            conditions.append(Caption.short_id == short_id)

        result = await self.db.execute(
            select(Caption).where(or_(*conditions)).order_by(Caption.start_time)
        )
        return result.scalars().all()

    async def delete_video(self, video_id: str, storage=None) -> bool:
        """
        Delete a video with its settings, shorts, captions and failure records.

        Rows go in one transaction; stored artifacts are removed afterwards,
        best effort.

        Returns:
            False if the video does not exist
        """
        video = await self.db.get(Video, video_id)
        if not video:
            return False

        shorts = await self.list_shorts(video_id)
        artifact_urls = [video.url, video.thumbnail_url]
        for short in shorts:
            artifact_urls.extend([short.url, short.thumbnail_url])

        await self._execute_deletes([
            delete(Caption).where(Caption.video_id == video_id),
            *_output_deletes(video_id),
            delete(ProcessingSettings).where(ProcessingSettings.video_id == video_id),
            delete(Video).where(Video.id == video_id),
        ])
        await _remove_artifacts(storage, artifact_urls)

        logger.info(f"Deleted video {video_id} and {len(shorts)} shorts")
        return True

    async def reset_outputs(self, video_id: str, storage=None) -> int:
        """
        Drop what earlier runs produced for a video: shorts, their captions
        and failure records. The video, its captions and settings stay.

        Returns:
            Number of shorts removed
        """
        shorts = await self.list_shorts(video_id)
        artifact_urls = []
        for short in shorts:
            artifact_urls.extend([short.url, short.thumbnail_url])

        await self._execute_deletes(_output_deletes(video_id))
        await _remove_artifacts(storage, artifact_urls)

        if shorts:
            logger.info(f"Removed {len(shorts)} shorts of an earlier run of video {video_id}")
        return len(shorts)

    async def fail_interrupted_runs(self) -> int:
        """
        Mark videos left PROCESSING by a previous process as FAILED so they
        can be triggered again. Only safe before this process starts runs.

        Returns:
            Number of videos reset
        """
        result = await self.db.execute(
            update(Video)
            .where(Video.status == VideoStatus.PROCESSING)
            .values(status=VideoStatus.FAILED, error_message="Run interrupted by a restart")
        )
        await self.db.commit()
        if result.rowcount:
            logger.warning(f"Marked {result.rowcount} interrupted videos as failed")
        return result.rowcount

    async def _execute_deletes(self, statements) -> None:
        try:
            for statement in statements:
                await self.db.execute(
                    statement, execution_options={"synchronize_session": False}
                )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise


def _output_deletes(video_id: str) -> list:
    """Statements removing a video's shorts, their captions and failure records."""
    short_ids = select(Short.id).where(Short.video_id == video_id)
    return [
        delete(Caption).where(Caption.short_id.in_(short_ids)),
        delete(FailedSegment).where(FailedSegment.video_id == video_id),
        delete(Short).where(Short.video_id == video_id),
    ]


def _settings_values(config: ProcessingConfig) -> dict:
    return {
        "segment_duration": config.segment_duration,
        "enable_scene_detection": config.enable_scene_detection,
        "enable_captions": config.enable_captions,
        "enable_filters": config.enable_filters,
        "selected_filter": config.selected_filter,
        "min_segment_length": config.min_segment_length,
        "max_segments": config.max_segments,
    }


async def _remove_artifacts(storage, urls) -> None:
    if storage is None:
        return
    for url in filter(None, urls):
        try:
            await storage.delete(url)
        except StorageError as e:
            logger.warning(f"Failed to delete {url} from storage: {e}")
