import re
from typing import List

from .models import FeedbackSummary, FrameAnalysis

SHOT_RE = re.compile(r"shot", re.IGNORECASE)
MADE_RE = re.compile(r"made", re.IGNORECASE)
MISSED_RE = re.compile(r"missed", re.IGNORECASE)


def _accuracy(made: int, shots: int) -> str:
    if shots <= 0:
        return "N/A"
    return f"{made / shots * 100:.1f}%"


def summarize_feedback(frame_analyses: List[FrameAnalysis]) -> FeedbackSummary:
    """Shot statistics from structured shot records, else keyword counts."""
    structured = [f for f in frame_analyses if f.shots]
    if structured:
        return _summarize_shots(frame_analyses, structured)

    all_analysis = " ".join(f.analysis or "" for f in frame_analyses)
    shot_count = len(SHOT_RE.findall(all_analysis))
    made_count = len(MADE_RE.findall(all_analysis))
    missed_count = len(MISSED_RE.findall(all_analysis))

    return FeedbackSummary(
        totalFrames=len(frame_analyses),
        shotCount=shot_count,
        madeCount=made_count,
        missedCount=missed_count,
        accuracy=_accuracy(made_count, shot_count),
        source="keywords",
    )


def _summarize_shots(frame_analyses: List[FrameAnalysis],
                     structured: List[FrameAnalysis]) -> FeedbackSummary:
    # The same shot is often reported by several frames
    seen = set()
    made = missed = layups = 0
    for frame in structured:
        for shot in frame.shots:
            key = (shot.timestamp_of_outcome, shot.result.lower(), shot.shot_type.lower())
            if key in seen:
                continue
            seen.add(key)
            if shot.result.lower() == "made":
                made += 1
                if "layup" in shot.shot_type.lower():
                    layups += 1
            elif shot.result.lower() == "missed":
                missed += 1

    shots = len(seen)
    return FeedbackSummary(
        totalFrames=len(frame_analyses),
        shotCount=shots,
        madeCount=made,
        missedCount=missed,
        layupCount=layups,
        accuracy=_accuracy(made, shots),
        source="structured",
    )
