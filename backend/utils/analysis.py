import asyncio
import base64
import json
import logging
import random
from typing import Optional

import google.generativeai as genai

from .. import config
from .cache import ResponseCache
from .errors import InferenceError

logger = logging.getLogger(__name__)

CLIP_SYSTEM_PROMPT = """You are an expert sports analyst and coach. Analyze the provided video and give detailed feedback on performance, technique, and areas for improvement.

Your analysis should include:
- Shot analysis (made/missed shots, types of shots)
- Technique evaluation
- Performance metrics
- Specific feedback for improvement
- Step-by-step breakdown of key moments

Format your response as structured feedback that can be overlaid on video frames."""

MOCK_DELAY_SECONDS = 0.5

# Canned shot logs returned in dev mode, one picked at random per frame
MOCK_SHOT_LOGS = [
    {"shots": [
        {"timestamp_of_outcome": "0:07.5", "result": "missed", "shot_type": "Jump shot (around free-throw line)",
         "total_shots_made_so_far": 0, "total_shots_missed_so_far": 1, "total_layups_made_so_far": 0,
         "feedback": "You're pushing that ball, not shooting it; get your elbow under, extend fully, and follow through."},
        {"timestamp_of_outcome": "0:13.0", "result": "made", "shot_type": "Three-pointer",
         "total_shots_made_so_far": 1, "total_shots_missed_so_far": 1, "total_layups_made_so_far": 0,
         "feedback": "It went in, but watch that slight fade keep your shoulders square to the hoop through the whole motion."},
        {"timestamp_of_outcome": "0:21.5", "result": "made", "shot_type": "Layup",
         "total_shots_made_so_far": 2, "total_shots_missed_so_far": 1, "total_layups_made_so_far": 1,
         "feedback": "Drive that knee on the layup, protect the ball higher with your off-hand, and finish decisively."},
        {"timestamp_of_outcome": "0:28.5", "result": "made", "shot_type": "Jump shot (free-throw line)",
         "total_shots_made_so_far": 3, "total_shots_missed_so_far": 1, "total_layups_made_so_far": 1,
         "feedback": "Better balance, but that shot pocket and release point must be identical every single time for real consistency."},
    ]},
    {"shots": [
        {"timestamp_of_outcome": "0:05.2", "result": "made", "shot_type": "Layup",
         "total_shots_made_so_far": 1, "total_shots_missed_so_far": 0, "total_layups_made_so_far": 1,
         "feedback": "Excellent drive to the basket! Keep your head up and eyes on the rim throughout the motion."},
        {"timestamp_of_outcome": "0:12.8", "result": "missed", "shot_type": "Three-pointer",
         "total_shots_made_so_far": 1, "total_shots_missed_so_far": 1, "total_layups_made_so_far": 1,
         "feedback": "Good shot selection, but you're rushing. Take your time, set your feet, and follow through completely."},
        {"timestamp_of_outcome": "0:19.3", "result": "made", "shot_type": "Jump shot (mid-range)",
         "total_shots_made_so_far": 2, "total_shots_missed_so_far": 1, "total_layups_made_so_far": 1,
         "feedback": "Perfect form! Your elbow is aligned, wrist is straight, and follow-through is consistent."},
    ]},
    {"shots": [
        {"timestamp_of_outcome": "0:08.1", "result": "missed", "shot_type": "Free throw",
         "total_shots_made_so_far": 0, "total_shots_missed_so_far": 1, "total_layups_made_so_far": 0,
         "feedback": "Stay focused on the rim, not the ball. Your routine looks good, just need more consistency."},
        {"timestamp_of_outcome": "0:15.7", "result": "made", "shot_type": "Dunk",
         "total_shots_made_so_far": 1, "total_shots_missed_so_far": 1, "total_layups_made_so_far": 0,
         "feedback": "Explosive finish! Great elevation and power. Keep working on your vertical jump for more dunks."},
        {"timestamp_of_outcome": "0:24.2", "result": "made", "shot_type": "Jump shot (corner three)",
         "total_shots_made_so_far": 2, "total_shots_missed_so_far": 1, "total_layups_made_so_far": 0,
         "feedback": "Excellent corner three! Your footwork and balance are spot on. Keep practicing from different angles."},
    ]},
    {"shots": [
        {"timestamp_of_outcome": "0:06.4", "result": "made", "shot_type": "Hook shot",
         "total_shots_made_so_far": 1, "total_shots_missed_so_far": 0, "total_layups_made_so_far": 0,
         "feedback": "Great use of the hook shot! Keep your body between the ball and defender, and use your off-hand for protection."},
        {"timestamp_of_outcome": "0:14.9", "result": "missed", "shot_type": "Jump shot (top of key)",
         "total_shots_made_so_far": 1, "total_shots_missed_so_far": 1, "total_layups_made_so_far": 0,
         "feedback": "You're fading away on the shot. Stay square to the basket and jump straight up, not back."},
        {"timestamp_of_outcome": "0:22.6", "result": "made", "shot_type": "Floater",
         "total_shots_made_so_far": 2, "total_shots_missed_so_far": 1, "total_layups_made_so_far": 0,
         "feedback": "Perfect floater! Great touch and timing. This is a valuable shot to have in your arsenal."},
    ]},
    {"shots": [
        {"timestamp_of_outcome": "0:09.3", "result": "made", "shot_type": "Pull-up jumper",
         "total_shots_made_so_far": 1, "total_shots_missed_so_far": 0, "total_layups_made_so_far": 0,
         "feedback": "Excellent pull-up! You stopped on a dime and got good elevation. Keep working on this mid-range game."},
        {"timestamp_of_outcome": "0:17.8", "result": "missed", "shot_type": "Three-pointer",
         "total_shots_made_so_far": 1, "total_shots_missed_so_far": 1, "total_layups_made_so_far": 0,
         "feedback": "Good range, but you're not getting enough arc on the shot. Aim higher and follow through longer."},
        {"timestamp_of_outcome": "0:26.1", "result": "made", "shot_type": "Reverse layup",
         "total_shots_made_so_far": 2, "total_shots_missed_so_far": 1, "total_layups_made_so_far": 1,
         "feedback": "Beautiful reverse layup! Great body control and finishing with the off-hand. Keep practicing this move."},
    ]},
]

_models = {}
_cache: Optional[ResponseCache] = None


def get_model(system_instruction: Optional[str] = None) -> genai.GenerativeModel:
    """Gemini model, configured once per process (per system instruction)."""
    if system_instruction in _models:
        return _models[system_instruction]

    if not config.GOOGLE_API_KEY:
        raise InferenceError("GOOGLE_API_KEY is not configured")

    genai.configure(api_key=config.GOOGLE_API_KEY)
    if system_instruction:
        model = genai.GenerativeModel(config.GEMINI_MODEL, system_instruction=system_instruction)
    else:
        model = genai.GenerativeModel(config.GEMINI_MODEL)
    _models[system_instruction] = model
    return model


def get_cache() -> ResponseCache:
    global _cache
    if _cache is None or _cache.cache_dir != config.CACHE_DIR:
        _cache = ResponseCache(config.CACHE_DIR)
    return _cache


def build_frame_prompt(prompt: str, index: int, total: int) -> str:
    return (
        f"{prompt}\n\nAnalyze this specific frame ({index + 1}/{total}) "
        "and provide feedback that can be overlaid on the video."
    )


async def analyze_frame(frame_base64: str, prompt: str) -> str:
    """Send one JPEG frame to Gemini. Successful responses are cached on disk."""
    cache = get_cache()
    cached = cache.get(frame_base64, prompt)
    if cached is not None:
        return cached

    try:
        model = get_model()
        logger.info("Sending frame to Gemini API...")
        response = await model.generate_content_async([
            prompt,
            {"mime_type": "image/jpeg", "data": base64.b64decode(frame_base64)},
        ])
        result = response.text
    except InferenceError:
        raise
    except Exception as e:
        logger.error("Gemini API error for frame: %s", e)
        raise InferenceError(f"Gemini API Error: {e}") from e

    logger.info("Frame analysis completed successfully")
    cache.put(frame_base64, prompt, result)
    return result


async def analyze_frame_dev(frame_base64: str, prompt: str) -> str:
    """Dev mode: canned shot log after a short simulated delay."""
    logger.info("DEV MODE: Using mock response for frame analysis")
    await asyncio.sleep(MOCK_DELAY_SECONDS)
    return json.dumps(random.choice(MOCK_SHOT_LOGS))


async def analyze_video_dev(video_bytes: bytes, prompt: str) -> str:
    logger.info("DEV MODE: Using mock response for clip analysis")
    await asyncio.sleep(MOCK_DELAY_SECONDS)
    return json.dumps(random.choice(MOCK_SHOT_LOGS))


async def analyze_video(video_bytes: bytes, prompt: str, fps: int = 1,
                        mime_type: str = "video/mp4") -> str:
    """Whole-clip analysis with the video sent inline."""
    video_size_mb = len(video_bytes) / (1024 * 1024)
    if video_size_mb >= config.MAX_INLINE_VIDEO_MB:
        raise InferenceError(
            f"Video too large for inline analysis ({video_size_mb:.2f} MB)"
        )

    user_prompt = (
        f"{prompt}\n\nPlease analyze this video at {fps} fps and provide detailed "
        "feedback that can be overlaid on the video frames."
    )

    try:
        model = get_model(CLIP_SYSTEM_PROMPT)
        logger.info("Sending %.2f MB clip to Gemini API...", video_size_mb)
        response = await model.generate_content_async([
            user_prompt,
            {"mime_type": mime_type, "data": video_bytes},
        ])
        result = response.text
    except InferenceError:
        raise
    except Exception as e:
        logger.error("Gemini API error for clip: %s", e)
        raise InferenceError(f"Gemini API Error: {e}") from e

    logger.info("Clip analysis received (%d characters)", len(result))
    return result
