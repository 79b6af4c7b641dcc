import os
from dotenv import load_dotenv

load_dotenv()


def _bool_from_env(name: str, default: bool) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return val.strip().lower() in ("1", "true", "yes", "y", "on")


GOOGLE_API_KEY = os.environ.get("GOOGLE_API_KEY", "")
GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-1.5-flash")

PORT = int(os.environ.get("PORT", "3001"))
PUBLIC_BASE_URL = os.environ.get("PUBLIC_BASE_URL", f"http://localhost:{PORT}").rstrip("/")

UPLOAD_DIR = os.environ.get("UPLOAD_DIR", "uploads")
PROCESSED_DIR = os.environ.get("PROCESSED_DIR", "processed")
TEMP_DIR = os.environ.get("TEMP_DIR", "temp")
CACHE_DIR = os.environ.get("CACHE_DIR", "cache")

MAX_FILE_SIZE = int(os.environ.get("MAX_FILE_SIZE", "100000000"))

# Canned shot logs instead of Gemini calls (saves API cost while developing)
DEV_MODE = _bool_from_env("DEV_MODE", True)

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

DEFAULT_PROMPT = (
    "Analyze this sports video and provide feedback on performance, "
    "technique, and areas for improvement."
)

# Frame sampling
DEFAULT_FPS = 1
MAX_FRAMES = 30
DEFAULT_DURATION_SECONDS = 60.0
FRAME_SIZE = "1280:720"

# Overlay rendering
OVERLAY_SECONDS = 2.0
OVERLAY_MAX_CHARS = 120

# Timeouts (seconds)
DEV_FRAME_TIMEOUT = 10
FRAME_TIMEOUT = 30
EXTRACT_TIMEOUT = 60
ENCODE_TIMEOUT = 300
REQUEST_TIMEOUT = 300

# Inline clip uploads to Gemini are limited to ~20MB
MAX_INLINE_VIDEO_MB = 20

# Cache key is built from partial frame data + partial prompt
CACHE_FRAME_CHARS = 1000
CACHE_PROMPT_CHARS = 200

ALLOWED_EXTENSIONS = (".mp4", ".avi", ".mov", ".mkv", ".webm")

FAILED_FRAME_TEXT = "Analysis failed for this frame"
