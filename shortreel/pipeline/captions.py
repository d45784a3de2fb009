"""Caption extraction: audio track -> transcription -> Caption rows."""
import asyncio
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from faster_whisper import WhisperModel
from sqlalchemy.exc import SQLAlchemyError

from shortreel.config import settings
from shortreel.models.caption import Caption
from shortreel.pipeline.errors import CaptionError
from shortreel.utils.ffmpeg import FFmpegError, run_tool

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TranscriptSegment:
    """One timed span of transcribed speech."""
    text: str
    start: float
    end: float


@dataclass(frozen=True)
class CaptionOwner:
    """Either a video or a short, never both."""
    video_id: Optional[str] = None
    short_id: Optional[str] = None

    def __post_init__(self):
        if (self.video_id is None) == (self.short_id is None):
            raise ValueError("Caption owner needs exactly one of video_id or short_id")

    def __str__(self):
        return f"short {self.short_id}" if self.short_id else f"video {self.video_id}"


class WhisperTranscriber:
    """Speech-to-text with faster-whisper. The model loads on first use."""

    def __init__(
        self,
        model_name: Optional[str] = None,
        device: Optional[str] = None,
        compute_type: Optional[str] = None,
        language: Optional[str] = None,
    ):
        self.model_name = model_name or settings.whisper_model
        self.device = device or settings.whisper_device
        self.compute_type = compute_type or settings.whisper_compute_type
        self.language = language or settings.whisper_language
        self._model: Optional[WhisperModel] = None

    def _get_model(self) -> WhisperModel:
        if self._model is None:
            logger.info(f"Loading whisper model '{self.model_name}' on {self.device}")
            self._model = WhisperModel(self.model_name, device=self.device, compute_type=self.compute_type)
        return self._model

    def transcribe(self, audio_path: Path) -> List[TranscriptSegment]:
        """Blocking; call from a worker thread."""
        segments, _ = self._get_model().transcribe(str(audio_path), language=self.language)
        return [
            TranscriptSegment(text=str(seg.text).strip(), start=float(seg.start), end=float(seg.end))
            for seg in segments
        ]


async def extract_audio(video_path: str | Path, output_path: str | Path) -> Path:
    """
    Extract a mono 16 kHz 16-bit PCM WAV track.

    Raises:
        CaptionError: If ffmpeg fails
    """
    output_path = Path(output_path)
    cmd = [
        settings.ffmpeg_path,
        "-y",
        "-hide_banner",
        "-i", str(video_path),
        "-vn",
        "-ac", "1",
        "-ar", str(settings.caption_sample_rate),
        "-c:a", "pcm_s16le",
        str(output_path)
    ]

    try:
        await run_tool(cmd)
    except FFmpegError as e:
        raise CaptionError(f"Audio extraction failed: {e}") from e

    return output_path


class CaptionExtractor:
    """Generates and stores captions for a video or a short."""

    def __init__(self, session_maker, transcriber, work_dir: Optional[Path] = None):
        self.session_maker = session_maker
        self.transcriber = transcriber
        self.work_dir = Path(work_dir or settings.work_dir)

    async def generate_captions(
        self,
        video_path: str | Path,
        owner: CaptionOwner,
        work_dir: Optional[Path] = None,
    ) -> int:
        """
        Transcribe a media file and persist one Caption per spoken span.

        All-or-nothing: any failure leaves no captions behind. The temporary
        audio file is always removed.

        Returns:
            Number of captions stored

        Raises:
            CaptionError: On extraction, transcription or storage failure
        """
        work_dir = Path(work_dir or self.work_dir)
        work_dir.mkdir(parents=True, exist_ok=True)
        audio_path = work_dir / f"audio-{uuid.uuid4().hex}.wav"

        logger.info(f"Generating captions for {owner} from {Path(video_path).name}")
        try:
            await extract_audio(video_path, audio_path)

            try:
                segments = await asyncio.to_thread(self.transcriber.transcribe, audio_path)
            except Exception as e:
                raise CaptionError(f"Transcription failed: {e}") from e

            captions = [
                Caption(
                    text=segment.text,
                    start_time=segment.start,
                    end_time=segment.end,
                    video_id=owner.video_id,
                    short_id=owner.short_id,
                )
                for segment in segments
                if segment.text
            ]

            try:
                async with self.session_maker() as session:
                    session.add_all(captions)
                    await session.commit()
            except SQLAlchemyError as e:
                raise CaptionError(f"Failed to save captions: {e}") from e

            logger.info(f"Stored {len(captions)} captions for {owner}")
            return len(captions)
        finally:
            audio_path.unlink(missing_ok=True)
