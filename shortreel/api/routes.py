"""API routes."""
import logging
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shortreel.db.database import get_db
from shortreel.models.video import Video, VideoStatus
from shortreel.pipeline.config import ProcessingConfig
from shortreel.pipeline.errors import InvalidSettingsError, UploadError
from shortreel.services.storage import StorageError
from shortreel.services.video_service import VideoService
from shortreel.utils.ffmpeg import check_ffmpeg_available, check_ffprobe_available
from shortreel.workers.job_runner import job_runner
from shortreel.api.schemas import (
    CaptionRequest,
    CaptionResponse,
    CaptionsResponse,
    FailedSegmentResponse,
    HealthResponse,
    ProcessingSettingsSchema,
    ProcessRequest,
    ProcessResponse,
    ShortResponse,
    UserShortResponse,
    VideoResponse,
    VideoUploadResponse,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def _video_to_response(video: Video, short_count: int) -> VideoResponse:
    return VideoResponse(
        id=video.id,
        user_id=video.user_id,
        title=video.title,
        status=video.status.value,
        duration=video.duration,
        thumbnail_url=video.thumbnail_url,
        error_message=video.error_message,
        short_count=short_count,
        created_at=video.created_at,
        updated_at=video.updated_at,
    )


# =============================================================================
# Health
# =============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Check API health and dependencies."""
    ffmpeg_ok = check_ffmpeg_available()
    ffprobe_ok = check_ffprobe_available()

    message = None
    if not (ffmpeg_ok and ffprobe_ok):
        missing = [name for name, ok in (("ffmpeg", ffmpeg_ok), ("ffprobe", ffprobe_ok)) if not ok]
        message = f"Missing dependencies: {', '.join(missing)}"

    return HealthResponse(
        status="healthy" if ffmpeg_ok and ffprobe_ok else "degraded",
        ffmpeg_available=ffmpeg_ok,
        ffprobe_available=ffprobe_ok,
        message=message
    )


# =============================================================================
# Processing
# =============================================================================

@router.post("/process", response_model=ProcessResponse, status_code=202)
async def start_processing(
    data: ProcessRequest,
    db: AsyncSession = Depends(get_db)
):
    """Start processing a video in the background. Poll the video for the outcome."""
    service = VideoService(db)
    video = await service.get_video(data.video_id)
    if not video:
        raise HTTPException(status_code=404, detail="Video not found")

    if video.status == VideoStatus.COMPLETED:
        return ProcessResponse(success=True, started=False, message="Video already processed")

    started = await job_runner.start_job("process", data.video_id, video_id=data.video_id)
    logger.info(f"Process trigger for video {data.video_id}: started={started}")

    return ProcessResponse(
        success=True,
        started=started,
        message="Processing started" if started else "Processing already in progress"
    )


# =============================================================================
# Videos
# =============================================================================

@router.post("/videos", response_model=VideoUploadResponse, status_code=201)
async def upload_video(
    request: Request,
    file: UploadFile = File(...),
    user_id: str = Form(..., min_length=1, max_length=255),
    title: Optional[str] = Form(None, max_length=255),
    processing_settings: Optional[str] = Form(None, description="Processing settings as JSON"),
    db: AsyncSession = Depends(get_db)
):
    """Upload a source video, register it as PENDING and start processing."""
    config = None
    if processing_settings:
        try:
            config = ProcessingSettingsSchema.model_validate_json(processing_settings).to_config()
        except (ValidationError, InvalidSettingsError) as e:
            raise HTTPException(status_code=422, detail=str(e))

    storage = getattr(request.app.state, "storage", None)
    if storage is None:
        raise HTTPException(status_code=503, detail="Storage is not configured")

    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")

    filename = file.filename or "video.mp4"
    try:
        url = await storage.put(
            data, storage.make_key(user_id, filename), file.content_type or "video/mp4"
        )
    except UploadError as e:
        raise HTTPException(status_code=502, detail=str(e))

    service = VideoService(db)
    try:
        video = await service.create_video(user_id, title or Path(filename).stem, url, config)
    except SQLAlchemyError as e:
        logger.error(f"Failed to register upload {url}: {e}")
        try:
            await storage.delete(url)
        except StorageError as cleanup_error:
            logger.warning(f"Could not remove orphaned upload {url}: {cleanup_error}")
        raise HTTPException(status_code=500, detail="Failed to register video")

    started = await job_runner.start_job("process", video.id, video_id=video.id)
    logger.info(f"Uploaded video {video.id} ({len(data)} bytes): started={started}")

    return VideoUploadResponse(success=True, started=started, video=_video_to_response(video, 0))


@router.get("/videos", response_model=List[VideoResponse])
async def list_videos(user_id: str = Query(..., min_length=1), db: AsyncSession = Depends(get_db)):
    """List a user's videos, newest first."""
    service = VideoService(db)
    videos = await service.list_videos(user_id)
    return [_video_to_response(video, await service.count_shorts(video.id)) for video in videos]


@router.get("/shorts", response_model=List[UserShortResponse])
async def list_user_shorts(user_id: str = Query(..., min_length=1), db: AsyncSession = Depends(get_db)):
    """List a user's shorts across all their videos, newest first."""
    service = VideoService(db)
    return [
        UserShortResponse(**ShortResponse.model_validate(short).model_dump(), video_title=title)
        for short, title in await service.list_user_shorts(user_id)
    ]


@router.get("/videos/{video_id}", response_model=VideoResponse)
async def get_video(video_id: str, db: AsyncSession = Depends(get_db)):
    """Get a video's processing status."""
    service = VideoService(db)
    video = await service.get_video(video_id)
    if not video:
        raise HTTPException(status_code=404, detail="Video not found")

    return _video_to_response(video, await service.count_shorts(video_id))


@router.get("/videos/{video_id}/shorts", response_model=List[ShortResponse])
async def list_shorts(video_id: str, db: AsyncSession = Depends(get_db)):
    """List a video's shorts in part order."""
    service = VideoService(db)
    if not await service.get_video(video_id):
        raise HTTPException(status_code=404, detail="Video not found")
    return [ShortResponse.model_validate(short) for short in await service.list_shorts(video_id)]


@router.get("/videos/{video_id}/failures", response_model=List[FailedSegmentResponse])
async def list_failures(video_id: str, db: AsyncSession = Depends(get_db)):
    """List segments that were skipped while processing a video."""
    service = VideoService(db)
    if not await service.get_video(video_id):
        raise HTTPException(status_code=404, detail="Video not found")
    return [
        FailedSegmentResponse.model_validate(failure)
        for failure in await service.list_failed_segments(video_id)
    ]


@router.get("/videos/{video_id}/settings", response_model=ProcessingSettingsSchema)
async def get_settings(video_id: str, db: AsyncSession = Depends(get_db)):
    """Get a video's processing settings (defaults if none were saved)."""
    service = VideoService(db)
    if not await service.get_video(video_id):
        raise HTTPException(status_code=404, detail="Video not found")
    config = await service.get_settings(video_id)
    return ProcessingSettingsSchema(**config.to_dict())


@router.put("/videos/{video_id}/settings", response_model=ProcessingSettingsSchema)
async def update_settings(
    video_id: str,
    data: ProcessingSettingsSchema,
    db: AsyncSession = Depends(get_db)
):
    """Save a video's processing settings."""
    service = VideoService(db)
    if job_runner.is_job_running("process", video_id):
        raise HTTPException(status_code=409, detail="Video is being processed")
    try:
        record = await service.save_settings(video_id, data.to_config())
    except InvalidSettingsError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return ProcessingSettingsSchema(**ProcessingConfig.from_record(record).to_dict())


@router.delete("/videos/{video_id}")
async def delete_video(video_id: str, request: Request, db: AsyncSession = Depends(get_db)):
    """Delete a video with its shorts, captions and stored artifacts."""
    if job_runner.is_job_running("process", video_id):
        raise HTTPException(status_code=409, detail="Video is being processed")

    service = VideoService(db)
    storage = getattr(request.app.state, "storage", None)
    if not await service.delete_video(video_id, storage=storage):
        raise HTTPException(status_code=404, detail="Video not found")
    return {"success": True}


# =============================================================================
# Captions
# =============================================================================

@router.post("/captions", response_model=ProcessResponse, status_code=202)
async def start_captions(data: CaptionRequest, db: AsyncSession = Depends(get_db)):
    """Start caption generation for a video or a short."""
    service = VideoService(db)
    if data.short_id:
        exists = await service.get_short(data.short_id) is not None
        key = f"short:{data.short_id}"
    else:
        exists = await service.get_video(data.video_id) is not None
        key = f"video:{data.video_id}"

    if not exists:
        raise HTTPException(status_code=404, detail="Video or short not found")

    started = await job_runner.start_job(
        "captions", key, video_id=data.video_id, short_id=data.short_id
    )
    return ProcessResponse(
        success=True,
        started=started,
        message="Caption generation started" if started else "Caption generation already in progress"
    )


@router.get("/captions", response_model=CaptionsResponse)
async def get_captions(
    video_id: Optional[str] = Query(None),
    short_id: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    """Get captions for a video or a short."""
    service = VideoService(db)
    try:
        captions = await service.list_captions(video_id=video_id, short_id=short_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return CaptionsResponse(
        success=True,
        captions=[CaptionResponse(**caption.to_dict()) for caption in captions]
    )
