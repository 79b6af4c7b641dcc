from pydantic import BaseModel
from typing import List, Optional, Union


class ShotRecord(BaseModel):
    timestamp_of_outcome: str
    result: str
    shot_type: str
    total_shots_made_so_far: int = 0
    total_shots_missed_so_far: int = 0
    total_layups_made_so_far: int = 0
    feedback: str = ""


class ShotLog(BaseModel):
    shots: List[ShotRecord] = []


class FrameAnalysis(BaseModel):
    frame: str
    timestamp: str
    analysis: str = ""
    shots: Optional[List[ShotRecord]] = None


class FeedbackSummary(BaseModel):
    totalFrames: int
    shotCount: int = 0
    madeCount: int = 0
    missedCount: int = 0
    layupCount: int = 0
    accuracy: str = "N/A"
    source: str = "keywords"


class ProcessingResult(BaseModel):
    processedVideoPath: str
    analysis: List[FrameAnalysis] = []
    feedback: Union[FeedbackSummary, str]


class AnalyzeResponse(BaseModel):
    success: bool = True
    originalVideo: str
    processedVideo: str
    analysis: List[FrameAnalysis] = []
    feedback: Union[FeedbackSummary, str]


class ClipFeedback(BaseModel):
    success: bool = True
    originalVideo: str
    feedback: str
    shots: Optional[List[ShotRecord]] = None


class CacheEntry(BaseModel):
    prompt: str
    response: str
    timestamp: str
