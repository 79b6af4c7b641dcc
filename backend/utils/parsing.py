import json
import re
from typing import List, Optional

from pydantic import ValidationError

from .models import FrameAnalysis, ShotLog, ShotRecord

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


def parse_shot_log(response_text: str) -> Optional[ShotLog]:
    """Parse a JSON shot log out of a model response.

    Returns None for free-text feedback or JSON that doesn't look like a shot log.
    """
    if not response_text or not isinstance(response_text, str):
        return None

    text = response_text.strip()
    fenced = _FENCE_RE.match(text)
    if fenced:
        text = fenced.group(1)

    if not text.startswith("{"):
        return None

    try:
        data = json.loads(text)
    except ValueError:
        return None

    if not isinstance(data, dict) or not isinstance(data.get("shots"), list):
        return None

    try:
        return ShotLog(**data)
    except ValidationError:
        return None


def parse_outcome_timestamp(value: str) -> float:
    """'0:07.5' -> 7.5, '1:02' -> 62.0, '4.25' -> 4.25"""
    value = (value or "").strip()
    if not value:
        raise ValueError("empty timestamp")

    seconds = 0.0
    for part in value.split(":"):
        seconds = seconds * 60 + float(part)
    return seconds


def pick_shot_for_time(shots: List[ShotRecord], t: float) -> Optional[ShotRecord]:
    """Shot whose outcome is closest to t. Unparsable timestamps sort last."""
    best = None
    best_distance = None
    for shot in shots:
        try:
            distance = abs(parse_outcome_timestamp(shot.timestamp_of_outcome) - t)
        except ValueError:
            distance = float("inf")
        if best_distance is None or distance < best_distance:
            best, best_distance = shot, distance
    return best


def overlay_text_for(frame: FrameAnalysis) -> str:
    """Text that gets burned into the video for this frame."""
    if not frame.shots:
        return frame.analysis or ""

    shot = pick_shot_for_time(frame.shots, float(frame.timestamp))
    if shot is None:
        return frame.analysis or ""

    return (
        f"{shot.result.upper()} {shot.shot_type} "
        f"({shot.total_shots_made_so_far}-{shot.total_shots_missed_so_far}): "
        f"{shot.feedback}"
    )
