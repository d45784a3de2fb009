"""FFmpeg and ffprobe utilities."""
import asyncio
import json
import logging
import shutil
from pathlib import Path
from typing import Optional, Sequence

from shortreel.config import settings

logger = logging.getLogger(__name__)


class FFmpegError(Exception):
    """FFmpeg related error."""
    pass


def check_ffmpeg_available() -> bool:
    """Check if ffmpeg is available."""
    return shutil.which(settings.ffmpeg_path) is not None


def check_ffprobe_available() -> bool:
    """Check if ffprobe is available."""
    return shutil.which(settings.ffprobe_path) is not None


def _stderr_tail(stderr: bytes, lines: int = 12) -> str:
    """Last lines of tool output; ffmpeg prints its banner first."""
    text = stderr.decode("utf-8", errors="ignore").strip()
    return "\n".join(text.splitlines()[-lines:])


async def run_tool(
    cmd: Sequence[str],
    timeout: Optional[float] = None,
) -> tuple[bytes, bytes]:
    """
    Run an ffmpeg-family command to completion.

    Args:
        cmd: Full argument vector
        timeout: Seconds before the process is killed (defaults to settings)

    Returns:
        (stdout, stderr) bytes

    Raises:
        FFmpegError: On launch failure, non-zero exit or timeout
    """
    timeout = settings.tool_timeout_seconds if timeout is None else timeout
    logger.debug(f"Running: {' '.join(cmd)}")

    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE
        )
    except FileNotFoundError as e:
        raise FFmpegError(f"{cmd[0]} not found: {e}") from e

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        raise FFmpegError(f"{Path(cmd[0]).name} timed out after {timeout:.0f}s")
    except asyncio.CancelledError:
        proc.kill()
        await proc.wait()
        raise

    if proc.returncode != 0:
        raise FFmpegError(
            f"{Path(cmd[0]).name} exited with code {proc.returncode}: {_stderr_tail(stderr)}"
        )

    return stdout, stderr


async def probe_format(video_path: str | Path) -> dict:
    """
    Read container and stream metadata using ffprobe.

    Args:
        video_path: Path to media file

    Returns:
        Parsed ffprobe JSON (``format`` and ``streams`` keys)

    Raises:
        FFmpegError: If the file is missing or ffprobe fails
    """
    video_path = Path(video_path)
    if not video_path.exists():
        raise FFmpegError(f"Video file not found: {video_path}")

    cmd = [
        settings.ffprobe_path,
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(video_path)
    ]

    stdout, _ = await run_tool(cmd)

    try:
        return json.loads(stdout.decode())
    except json.JSONDecodeError as e:
        raise FFmpegError(f"Failed to parse ffprobe output: {e}")


def parse_scene_metadata(text: str) -> list[tuple[float, float]]:
    """
    Parse the output of ffmpeg's ``metadata=print`` filter.

    Each selected frame prints a ``frame:N pts:... pts_time:T`` line followed
    by its ``lavfi.scene_score=S`` line.

    Returns:
        (timestamp, score) pairs in stream order, timestamp > 0
    """
    pairs = []
    pts_time: Optional[float] = None

    for line in text.splitlines():
        if "pts_time:" in line:
            pts_time = None
            for part in line.split():
                if part.startswith("pts_time:"):
                    try:
                        pts_time = float(part.split(":", 1)[1])
                    except ValueError:
                        pts_time = None
                    break
        elif "scene_score=" in line and pts_time is not None:
            try:
                score = float(line.split("scene_score=", 1)[1].strip())
            except ValueError:
                pts_time = None
                continue
            if pts_time > 0:
                pairs.append((pts_time, score))
            pts_time = None

    return pairs
