"""Application configuration."""
from pathlib import Path
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8"
    )

    # App settings
    app_name: str = "ShortReel"
    debug: bool = False

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/shortreel.db"

    # Data directories
    data_dir: Path = Path("./data")
    work_dir: Path = Path("./data/work")  # Per-run scratch space, emptied after each run

    # FFmpeg settings
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    tool_timeout_seconds: float = 900.0  # Upper bound for any single ffmpeg/ffprobe call

    # Scene detection
    scene_threshold: float = 0.3  # FFmpeg scene score threshold
    max_scene_changes: int = 5  # Strongest cuts kept per video

    # Export settings
    export_video_codec: str = "libx264"
    export_video_bitrate: str = "2M"
    export_audio_codec: str = "aac"
    export_audio_bitrate: str = "128k"

    # Thumbnail settings
    thumbnail_width: int = 640
    thumbnail_quality: int = 2  # ffmpeg -q:v, lower is better
    video_thumbnail_count: int = 3

    # Captions
    caption_sample_rate: int = 16000
    whisper_model: str = "base"
    whisper_device: str = "cpu"
    whisper_compute_type: str = "int8"
    whisper_language: Optional[str] = None

    # Object storage
    storage_bucket: str = "shortreel"
    storage_region: str = "us-east-1"
    storage_endpoint_url: Optional[str] = None
    storage_access_key: Optional[str] = None
    storage_secret_key: Optional[str] = None
    upload_url_expiry_seconds: int = 604800  # 7 days
    access_url_expiry_seconds: int = 3600  # 1 hour

    # Retry policy for transient download/upload failures
    retry_attempts: int = 3
    retry_delay_seconds: float = 2.0
    download_timeout_seconds: float = 300.0


settings = Settings()

# Ensure directories exist
settings.data_dir.mkdir(parents=True, exist_ok=True)
settings.work_dir.mkdir(parents=True, exist_ok=True)
