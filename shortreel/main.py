"""FastAPI application entry point."""
import functools
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shortreel.config import settings
from shortreel.db.database import async_session_maker, init_db, close_db
from shortreel.api.routes import router
from shortreel.pipeline.captions import CaptionExtractor, WhisperTranscriber
from shortreel.pipeline.orchestrator import VideoPipeline
from shortreel.services.downloader import HttpDownloader
from shortreel.services.storage import S3Storage
from shortreel.services.video_service import VideoService
from shortreel.workers.job_runner import job_runner
from shortreel.workers.handlers import handle_captions, handle_process

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("Starting ShortReel...")

    await init_db()
    logger.info("Database initialized")

    # No run survives a restart; let interrupted videos be triggered again
    async with async_session_maker() as session:
        await VideoService(session).fail_interrupted_runs()

    # Shared clients, opened once and closed at shutdown
    storage = S3Storage()
    downloader = HttpDownloader()
    transcriber = WhisperTranscriber()
    pipeline = VideoPipeline(async_session_maker, storage, downloader, transcriber=transcriber)
    captions = CaptionExtractor(async_session_maker, transcriber)

    app.state.storage = storage
    app.state.pipeline = pipeline

    job_runner.register_handler("process", functools.partial(handle_process, pipeline))
    job_runner.register_handler(
        "captions",
        functools.partial(handle_captions, captions, downloader, async_session_maker),
    )
    logger.info("Job handlers registered")

    yield

    # Shutdown
    logger.info("Shutting down ShortReel...")
    await job_runner.shutdown()
    await downloader.aclose()
    await close_db()
    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Cuts uploaded videos into short clips",
    version="1.0.0",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "app": settings.app_name,
        "version": "1.0.0",
        "api": "/api",
        "docs": "/docs"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "shortreel.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
