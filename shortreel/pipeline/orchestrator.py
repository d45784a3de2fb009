"""Pipeline orchestrator.

Drives one video through PENDING -> PROCESSING -> COMPLETED | FAILED:
download, probe, select segments, then transcode / thumbnail / upload /
persist each segment. A failing segment is recorded and skipped; the run
fails only when nothing at all could be produced.
"""
import asyncio
import logging
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from sqlalchemy import select, update

from shortreel.config import settings
from shortreel.models.failed_segment import FailedSegment
from shortreel.models.processing_settings import ProcessingSettings
from shortreel.models.short import Short
from shortreel.models.video import CLAIMABLE_STATUSES, Video, VideoStatus
from shortreel.pipeline.captions import CaptionExtractor, CaptionOwner
from shortreel.pipeline.config import ProcessingConfig
from shortreel.pipeline.errors import (
    FATAL_ERRORS,
    InvalidSettingsError,
    PersistError,
    SegmentError,
    SelectionEmptyError,
    ThumbnailError,
    TranscodeError,
    UploadError,
)
from shortreel.pipeline.prober import probe_duration
from shortreel.pipeline.segment_selector import VideoSegment, select_segments
from shortreel.pipeline.thumbnails import generate_at_intervals, generate_thumbnail
from shortreel.pipeline.transcoder import extract_segment
from shortreel.services.storage import StorageError
from shortreel.services.video_service import VideoService

logger = logging.getLogger(__name__)


@dataclass
class SegmentFailure:
    """A segment that produced no short."""
    index: int
    stage: str
    reason: str


@dataclass
class RunResult:
    """Outcome of one pipeline run."""
    video_id: str
    claimed: bool = True
    status: Optional[VideoStatus] = None
    shorts_created: int = 0
    segments_attempted: int = 0
    failures: List[SegmentFailure] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "video_id": self.video_id,
            "claimed": self.claimed,
            "status": self.status.value if self.status else None,
            "shorts_created": self.shorts_created,
            "segments_attempted": self.segments_attempted,
            "failures": [vars(f) for f in self.failures],
            "error": self.error,
        }


class VideoPipeline:
    """Turns one uploaded video into shorts.

    The session factory, storage and downloader are opened once by the
    application and shared across runs; each run owns only its scratch
    directory.
    """

    def __init__(
        self,
        session_maker,
        storage,
        downloader,
        transcriber=None,
        work_dir: Optional[Path] = None,
        thumbnail_count: Optional[int] = None,
    ):
        self.session_maker = session_maker
        self.storage = storage
        self.downloader = downloader
        self.work_dir = Path(work_dir or settings.work_dir)
        self.thumbnail_count = thumbnail_count or settings.video_thumbnail_count
        self.captions = (
            CaptionExtractor(session_maker, transcriber, self.work_dir)
            if transcriber is not None else None
        )

    async def run(self, video_id: str) -> RunResult:
        """
        Process a video end to end.

        Never raises for pipeline failures; the outcome is written to the
        video's status. Unexpected errors mark the video FAILED and propagate.
        """
        result = RunResult(video_id=video_id)

        video = await self._claim(video_id)
        if video is None:
            result.claimed = False
            return result

        logger.info(f"Processing video {video_id} ('{video.title}')")
        self.work_dir.mkdir(parents=True, exist_ok=True)
        run_dir = Path(tempfile.mkdtemp(prefix=f"run-{video_id}-", dir=self.work_dir))

        try:
            await self._process(video, run_dir, result)

        except FATAL_ERRORS + (InvalidSettingsError,) as e:
            logger.error(f"Video {video_id} failed: {e}")
            result.error = str(e)
            result.status = VideoStatus.FAILED
            await self._set_status(video_id, VideoStatus.FAILED, error_message=str(e))

        except asyncio.CancelledError:
            logger.warning(f"Video {video_id} run cancelled")
            await self._set_status(video_id, VideoStatus.FAILED, error_message="Run cancelled")
            raise

        except Exception as e:
            logger.exception(f"Video {video_id} failed unexpectedly: {e}")
            await self._set_status(video_id, VideoStatus.FAILED, error_message=str(e))
            raise

        finally:
            shutil.rmtree(run_dir, ignore_errors=True)

        return result

    async def _process(self, video: Video, run_dir: Path, result: RunResult) -> None:
        # A retried video starts over; shorts of an earlier run would push the
        # count past max_segments
        async with self.session_maker() as session:
            await VideoService(session).reset_outputs(video.id, storage=self.storage)

        source_path = await self.downloader.download(video.url, run_dir / "source.mp4")

        duration = await probe_duration(source_path)
        await self._update_video(video.id, duration=duration)

        await self._video_thumbnail(video, source_path, duration)

        config = await self._load_config(video.id)
        logger.info(f"Video {video.id} config: {config.to_dict()}")

        segments = await select_segments(source_path, config, duration)
        if not segments:
            raise SelectionEmptyError(f"No segments could be selected from {duration:.2f}s of video")

        result.segments_attempted = len(segments)
        for index, segment in enumerate(segments, start=1):
            logger.info(f"Video {video.id}: segment {index}/{len(segments)} {segment}")
            await self._process_segment(video, source_path, run_dir, index, segment, config, result)

        if result.shorts_created:
            result.status = VideoStatus.COMPLETED
            await self._set_status(video.id, VideoStatus.COMPLETED)
        else:
            result.status = VideoStatus.FAILED
            result.error = "No segments could be processed"
            await self._set_status(video.id, VideoStatus.FAILED, error_message=result.error)

        logger.info(
            f"Video {video.id} {result.status.value}: "
            f"{result.shorts_created}/{len(segments)} shorts created"
        )

    async def _process_segment(
        self,
        video: Video,
        source_path: Path,
        run_dir: Path,
        index: int,
        segment: VideoSegment,
        config: ProcessingConfig,
        result: RunResult,
    ) -> Optional[Short]:
        segment_dir = run_dir / f"segment-{index}"
        segment_dir.mkdir(parents=True, exist_ok=True)
        clip_path = segment_dir / "short.mp4"
        uploaded: List[str] = []

        try:
            try:
                await _guard(
                    TranscodeError,
                    extract_segment(
                        source_path, clip_path, segment.start, segment.duration,
                        config.effective_filter,
                    ),
                )

                thumbnail_url = await self._segment_thumbnail(video, clip_path, index)
                if thumbnail_url:
                    uploaded.append(thumbnail_url)

                url = await _guard(UploadError, self._upload_clip(video, clip_path, index))
                uploaded.append(url)

                short = await _guard(
                    PersistError,
                    self._persist_short(video, index, segment, url, thumbnail_url, config),
                )
            except SegmentError as e:
                logger.error(
                    f"Video {video.id}: segment {index} "
                    f"({segment.start:.2f}s+{segment.duration:.2f}s) failed at {e.stage}: {e}"
                )
                result.failures.append(SegmentFailure(index=index, stage=e.stage, reason=str(e)))
                await self._discard_uploads(uploaded)
                await self._record_failure(video.id, index, segment, e)
                return None

            result.shorts_created += 1

            if config.enable_captions and self.captions is not None:
                try:
                    await self.captions.generate_captions(
                        clip_path, CaptionOwner(short_id=short.id), work_dir=segment_dir
                    )
                except Exception as e:
                    logger.warning(f"Captions for short {short.id} failed: {e}")

            return short
        finally:
            shutil.rmtree(segment_dir, ignore_errors=True)

    async def _upload_clip(self, video: Video, clip_path: Path, index: int) -> str:
        key = self.storage.make_key(video.user_id, f"short-{index}.mp4")
        data = await asyncio.to_thread(clip_path.read_bytes)
        return await self.storage.put(data, key, "video/mp4")

    async def _segment_thumbnail(self, video: Video, clip_path: Path, index: int) -> Optional[str]:
        """Upload a thumbnail for a short; a failure only costs the thumbnail."""
        try:
            image = await _guard(ThumbnailError, generate_thumbnail(clip_path, 0))
            return await _guard(UploadError, self._upload_image(video, image, f"short-{index}.jpg"))
        except SegmentError as e:
            logger.warning(f"Video {video.id}: no thumbnail for segment {index}: {e}")
            return None

    async def _upload_image(self, video: Video, image: bytes, filename: str) -> str:
        key = self.storage.make_key(video.user_id, f"thumbnails/{filename}")
        return await self.storage.put(image, key, "image/jpeg")

    async def _video_thumbnail(self, video: Video, source_path: Path, duration: float) -> None:
        try:
            images = await _guard(
                ThumbnailError,
                generate_at_intervals(source_path, duration, self.thumbnail_count),
            )
            url = await _guard(UploadError, self._upload_image(video, images[0], "video.jpg"))
        except SegmentError as e:
            logger.warning(f"Video {video.id}: no video thumbnail: {e}")
            return
        await self._update_video(video.id, thumbnail_url=url)

    async def _persist_short(
        self,
        video: Video,
        index: int,
        segment: VideoSegment,
        url: str,
        thumbnail_url: Optional[str],
        config: ProcessingConfig,
    ) -> Short:
        applied = config.effective_filter
        short = Short(
            video_id=video.id,
            user_id=video.user_id,
            title=f"{video.title} - Part {index}",
            url=url,
            thumbnail_url=thumbnail_url,
            start_time=segment.start,
            end_time=segment.end,
            duration=segment.duration,
            part_number=index,
            filter=applied.value if applied else None,
        )
        async with self.session_maker() as session:
            session.add(short)
            await session.commit()
        return short

    async def _discard_uploads(self, urls: List[str]) -> None:
        for url in urls:
            try:
                await self.storage.delete(url)
            except StorageError as e:
                logger.warning(f"Could not remove orphaned upload {url}: {e}")

    async def _record_failure(
        self,
        video_id: str,
        index: int,
        segment: VideoSegment,
        error: SegmentError,
    ) -> None:
        try:
            async with self.session_maker() as session:
                session.add(FailedSegment(
                    video_id=video_id,
                    segment_index=index,
                    start_time=segment.start,
                    duration=segment.duration,
                    stage=error.stage,
                    reason=str(error)[:4000],
                ))
                await session.commit()
        except Exception:
            logger.exception(f"Could not record failure of segment {index} for video {video_id}")

    async def _load_config(self, video_id: str) -> ProcessingConfig:
        async with self.session_maker() as session:
            record = (await session.execute(
                select(ProcessingSettings).where(ProcessingSettings.video_id == video_id)
            )).scalar_one_or_none()
        if record is None:
            logger.info(f"Video {video_id} has no settings, using defaults")
        return ProcessingConfig.from_record(record)

    async def _claim(self, video_id: str) -> Optional[Video]:
        """Atomically move the video to PROCESSING; None if it can't be claimed."""
        async with self.session_maker() as session:
            claimed = await session.execute(
                update(Video)
                .where(Video.id == video_id, Video.status.in_(CLAIMABLE_STATUSES))
                .values(status=VideoStatus.PROCESSING, error_message=None)
            )
            await session.commit()

            if claimed.rowcount != 1:
                existing = await session.get(Video, video_id)
                if existing is None:
                    logger.error(f"Video {video_id} not found")
                else:
                    logger.warning(f"Video {video_id} is {existing.status.value}, not claiming it")
                return None

            return await session.get(Video, video_id)

    async def _set_status(
        self,
        video_id: str,
        status: VideoStatus,
        error_message: Optional[str] = None,
    ) -> None:
        await self._update_video(video_id, status=status, error_message=error_message)

    async def _update_video(self, video_id: str, **values) -> None:
        async with self.session_maker() as session:
            await session.execute(update(Video).where(Video.id == video_id).values(**values))
            await session.commit()


async def _guard(error_cls, awaitable):
    """Await one segment step, reporting any failure as ``error_cls``."""
    try:
        return await awaitable
    except SegmentError:
        raise
    except Exception as e:
        raise error_cls(str(e) or type(e).__name__) from e
