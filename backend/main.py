import asyncio
import logging
import os
import re
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from . import config
from .utils import analysis as inference
from .utils.errors import InferenceError, UploadTooLarge, UploadValidationError
from .utils.models import AnalyzeResponse, ClipFeedback
from .utils.parsing import parse_shot_log
from .utils.pipeline import VideoProcessor
from .utils.video import check_ffmpeg_available

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("sport-analyzer")

UPLOAD_CHUNK_SIZE = 1024 * 1024
_ALLOWED_EXTENSIONS_RE = re.compile(r"\.(mp4|avi|mov|mkv|webm)$", re.IGNORECASE)

for directory in (config.UPLOAD_DIR, config.PROCESSED_DIR, config.TEMP_DIR, config.CACHE_DIR):
    os.makedirs(directory, exist_ok=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await check_ffmpeg_available()
    logger.info("Server running on port %s", config.PORT)
    logger.info("Upload directory: %s", config.UPLOAD_DIR)
    logger.info("Processed directory: %s", config.PROCESSED_DIR)
    logger.info("Dev mode: %s", config.DEV_MODE)
    yield


app = FastAPI(title="Sport Analyzer Backend", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,  # Must be False with wildcard origins
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

app.mount("/processed", StaticFiles(directory=config.PROCESSED_DIR, check_dir=False), name="processed")


def error_response(message: str, status: int, details: Optional[str] = None) -> JSONResponse:
    content = {"error": message}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status, content=content)


def validate_video_upload(video: UploadFile) -> None:
    """Accept when either the extension or the MIME type looks like a video."""
    filename = video.filename or ""
    content_type = video.content_type or ""
    has_valid_extension = bool(_ALLOWED_EXTENSIONS_RE.search(filename))
    has_valid_mime_type = content_type.startswith("video/")
    logger.info("File: %s, MimeType: %s, Extension ok: %s, MimeType ok: %s",
                filename, content_type, has_valid_extension, has_valid_mime_type)
    if not (has_valid_extension or has_valid_mime_type):
        raise UploadValidationError("Only video files are allowed!")


def parse_fps(value: Optional[str]) -> int:
    """Leading integer of the form value; missing, invalid or 0 means the default."""
    match = re.match(r"\s*(\d+)", value or "")
    fps = int(match.group(1)) if match else 0
    return fps or config.DEFAULT_FPS


def parse_test_mode(value: Optional[str]) -> bool:
    return (value or "").strip().lower() == "true"


async def iter_upload_chunks(video: UploadFile):
    """Yield the upload in chunks, raising UploadTooLarge once MAX_FILE_SIZE is passed."""
    received = 0
    while True:
        chunk = await video.read(UPLOAD_CHUNK_SIZE)
        if not chunk:
            return
        received += len(chunk)
        if received > config.MAX_FILE_SIZE:
            raise UploadTooLarge(f"File too large (limit {config.MAX_FILE_SIZE} bytes)")
        yield chunk


async def read_upload(video: UploadFile) -> bytes:
    return b"".join([chunk async for chunk in iter_upload_chunks(video)])


async def save_upload(video: UploadFile) -> str:
    """Stream the upload into UPLOAD_DIR as '<uuid>-<original name>'."""
    safe_name = os.path.basename(video.filename or "upload")
    path = os.path.join(config.UPLOAD_DIR, f"{uuid.uuid4()}-{safe_name}")
    written = 0
    try:
        with open(path, "wb") as f:
            async for chunk in iter_upload_chunks(video):
                written += len(chunk)
                f.write(chunk)
    except Exception:
        if os.path.exists(path):
            os.remove(path)
        raise
    logger.info("Saved upload to %s (%d bytes)", path, written)
    return path


def public_video_url(path: str) -> str:
    return f"{config.PUBLIC_BASE_URL}/processed/{os.path.basename(path)}"


@app.get("/")
def read_root():
    return {"message": "Sport Analyzer Backend API"}


@app.get("/health")
def health():
    return {"status": "ok", "devMode": config.DEV_MODE}


@app.post("/api/analyze-video")
async def analyze_video(
    video: Optional[UploadFile] = File(None),
    prompt: Optional[str] = Form(None),
    fps: Optional[str] = Form(None),
    testMode: Optional[str] = Form(None),
):
    """Upload a video, get per-frame feedback and a copy with the feedback burned in."""
    if video is None or not video.filename:
        return error_response("No video file uploaded", 400)

    try:
        validate_video_upload(video)
        video_path = await save_upload(video)
    except UploadValidationError as e:
        return error_response(str(e), 400)
    except UploadTooLarge as e:
        return error_response(str(e), 413)
    finally:
        await video.close()

    prompt = prompt or config.DEFAULT_PROMPT
    frame_rate = parse_fps(fps)
    test_mode = parse_test_mode(testMode)
    logger.info("Processing video: %s (fps=%s, test mode=%s)", video.filename, frame_rate, test_mode)
    logger.info("Prompt: %s", prompt)

    try:
        result = await asyncio.wait_for(
            VideoProcessor().process_video(video_path, prompt, frame_rate, test_mode),
            timeout=config.REQUEST_TIMEOUT,
        )
    except asyncio.TimeoutError:
        logger.error("Request timeout - processing took too long")
        return error_response("Request timeout - processing took too long", 408)
    except Exception as e:
        logger.exception("Error processing video")
        return error_response("Error processing video", 500, details=str(e))

    response = AnalyzeResponse(
        originalVideo=video.filename,
        processedVideo=public_video_url(result.processedVideoPath),
        analysis=result.analysis,
        feedback=result.feedback,
    )
    return response.model_dump()


@app.post("/api/analyze-clip")
async def analyze_clip(
    video: Optional[UploadFile] = File(None),
    prompt: Optional[str] = Form(None),
    fps: Optional[str] = Form(None),
):
    """Whole-clip feedback for short videos, without frame sampling or re-encoding."""
    if video is None or not video.filename:
        return error_response("No video file uploaded", 400)

    try:
        validate_video_upload(video)
        content = await read_upload(video)
    except UploadValidationError as e:
        return error_response(str(e), 400)
    except UploadTooLarge as e:
        return error_response(str(e), 413)
    finally:
        await video.close()

    prompt = prompt or config.DEFAULT_PROMPT
    mime_type = video.content_type if (video.content_type or "").startswith("video/") else "video/mp4"
    logger.info("Received clip %s: %d bytes", video.filename, len(content))

    try:
        if config.DEV_MODE:
            text = await inference.analyze_video_dev(content, prompt)
        else:
            text = await asyncio.wait_for(
                inference.analyze_video(content, prompt, parse_fps(fps), mime_type),
                timeout=config.REQUEST_TIMEOUT,
            )
    except asyncio.TimeoutError:
        return error_response("Request timeout - processing took too long", 408)
    except InferenceError as e:
        logger.error("Clip analysis failed: %s", e)
        return error_response("Error analyzing video", 500, details=str(e))

    shot_log = parse_shot_log(text)
    return ClipFeedback(
        originalVideo=video.filename,
        feedback=text,
        shots=shot_log.shots if shot_log else None,
    ).model_dump()


@app.get("/api/status/{job_id}")
def get_status(job_id: str):
    # Requests are processed synchronously; nothing is tracked between them
    return {"jobId": job_id, "status": "completed"}


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s", request.url.path)
    return error_response(str(exc), 500)
