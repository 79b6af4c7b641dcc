"""ffmpeg / ffprobe wrappers.

Every call runs as an asyncio subprocess with a hard timeout. A timed-out or
cancelled call kills the process before returning, so no transcode outlives
the request that started it. Failures surface as VideoProcessingError carrying
the tail of ffmpeg's stderr.
"""
import asyncio
import base64
import json
import logging
import math
import os
import re
from asyncio.subprocess import PIPE
from typing import Dict, List, Optional

from .. import config
from .errors import VideoProcessingError

logger = logging.getLogger(__name__)

ENCODE_OPTIONS = ["-c:v", "libx264", "-pix_fmt", "yuv420p", "-crf", "23", "-preset", "fast"]

_FRAME_INDEX_RE = re.compile(r"(\d+)\.jpg$", re.IGNORECASE)


def _stderr_tail(stderr, limit: int = 500) -> str:
    if isinstance(stderr, bytes):
        stderr = stderr.decode("utf-8", errors="replace")
    return (stderr or "").strip()[-limit:]


async def _kill(process) -> None:
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
    await process.wait()


async def run_ffmpeg(args: List[str], timeout: float, binary: str = "ffmpeg") -> bytes:
    """Run the binary and return its stdout."""
    cmd = [binary] + args
    logger.info("Running: %s", " ".join(cmd))
    try:
        process = await asyncio.create_subprocess_exec(*cmd, stdout=PIPE, stderr=PIPE)
    except FileNotFoundError as e:
        raise VideoProcessingError(f"{binary} is not installed or not in PATH") from e

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout)
    except asyncio.TimeoutError as e:
        await _kill(process)
        raise VideoProcessingError(f"{binary} timed out after {timeout}s") from e
    except asyncio.CancelledError:
        logger.warning("Request cancelled, killing %s", binary)
        await _kill(process)
        raise

    if process.returncode != 0:
        tail = _stderr_tail(stderr)
        logger.error("%s failed (exit %s): %s", binary, process.returncode, tail)
        raise VideoProcessingError(f"{binary} failed: {tail}")
    return stdout


async def check_ffmpeg_available() -> bool:
    """Log the ffmpeg version, False if the binary can't be run."""
    try:
        stdout = await run_ffmpeg(["-version"], timeout=10)
    except VideoProcessingError as e:
        logger.error("FFmpeg check failed: %s", e)
        return False
    text = stdout.decode("utf-8", errors="replace") if stdout else ""
    version_line = text.split("\n")[0] if text else "unknown version"
    logger.info("FFmpeg found: %s", version_line)
    return True


async def probe_video(video_path: str) -> Dict:
    """ffprobe metadata as a dict with 'format' and 'streams'."""
    if not os.path.exists(video_path):
        raise VideoProcessingError(f"Video file not found: {video_path}")

    stdout = await run_ffmpeg(
        ["-v", "error", "-print_format", "json", "-show_format", "-show_streams", video_path],
        timeout=30,
        binary="ffprobe",
    )
    try:
        return json.loads(stdout)
    except ValueError as e:
        raise VideoProcessingError(f"Error parsing ffprobe output: {e}") from e


def get_duration(video_info: Dict) -> float:
    try:
        duration = float(video_info.get("format", {}).get("duration"))
    except (TypeError, ValueError):
        return config.DEFAULT_DURATION_SECONDS
    if duration <= 0:
        return config.DEFAULT_DURATION_SECONDS
    return duration


def compute_max_frames(duration: float, fps: int, cap: Optional[int] = None) -> int:
    if cap is None:
        cap = config.MAX_FRAMES
    return max(1, min(math.ceil(duration * fps), cap))


async def extract_frames(video_path: str, output_dir: str, fps: int, max_frames: int) -> None:
    """Sample frames at `fps` into output_dir/frame-N.jpg, at most max_frames."""
    os.makedirs(output_dir, exist_ok=True)
    await run_ffmpeg(
        [
            "-y",
            "-i", video_path,
            "-vf", f"fps={fps},scale={config.FRAME_SIZE}",
            "-frames:v", str(max_frames),
            "-an",
            "-map_metadata", "-1",
            os.path.join(output_dir, "frame-%d.jpg"),
        ],
        timeout=config.EXTRACT_TIMEOUT,
    )


def _frame_index(filename: str) -> int:
    match = _FRAME_INDEX_RE.search(filename)
    return int(match.group(1)) if match else 0


def list_frames(frames_dir: str, limit: Optional[int] = None) -> List[str]:
    """JPEG file names in frame order (frame-2 before frame-10)."""
    frames = sorted(
        (f for f in os.listdir(frames_dir) if f.lower().endswith(".jpg")),
        key=lambda f: (_frame_index(f), f),
    )
    if limit is not None:
        frames = frames[:limit]
    return frames


def image_to_base64(image_path: str) -> str:
    with open(image_path, "rb") as f:
        return base64.b64encode(f.read()).decode("ascii")


async def create_clean_video(input_path: str, output_path: str) -> None:
    """Re-encode without metadata or audio."""
    logger.info("Creating clean video copy...")
    await run_ffmpeg(
        ["-y", "-i", input_path] + ENCODE_OPTIONS + ["-map_metadata", "-1", "-an", output_path],
        timeout=config.ENCODE_TIMEOUT,
    )
    logger.info("Clean video created: %s", output_path)


async def create_video_without_overlays(input_path: str, output_path: str) -> None:
    await run_ffmpeg(
        ["-y", "-i", input_path] + ENCODE_OPTIONS + ["-map_metadata", "-1", output_path],
        timeout=config.ENCODE_TIMEOUT,
    )
    logger.info("Video created with no overlays: %s", output_path)


async def burn_overlays(input_path: str, output_path: str, filter_graph: str) -> None:
    """Re-encode applying the drawtext filter graph (plain re-encode when empty)."""
    args = ["-y", "-i", input_path]
    if filter_graph:
        args += ["-vf", filter_graph]
    else:
        logger.warning("No overlay filter - creating clean video copy")
    await run_ffmpeg(args + ENCODE_OPTIONS + [output_path], timeout=config.ENCODE_TIMEOUT)
    logger.info("Video with overlay created: %s", output_path)
