from backend.utils.models import FrameAnalysis, ShotRecord
from backend.utils.summary import summarize_feedback


def shot(ts, result, shot_type):
    return ShotRecord(timestamp_of_outcome=ts, result=result, shot_type=shot_type, feedback="")


def test_keyword_counts():
    analyses = [
        FrameAnalysis(frame="frame-1.jpg", timestamp="0.00", analysis=""),
        FrameAnalysis(frame="frame-2.jpg", timestamp="1.00", analysis="Made shot. Great SHOT selection."),
        FrameAnalysis(frame="frame-3.jpg", timestamp="2.00", analysis="You missed the shot short."),
    ]

    summary = summarize_feedback(analyses)

    assert summary.totalFrames == 3
    assert summary.shotCount == 3
    assert summary.madeCount == 1
    assert summary.missedCount == 1
    assert summary.accuracy == "33.3%"
    assert summary.source == "keywords"


def test_no_shots_means_no_accuracy():
    analyses = [FrameAnalysis(frame="frame-1.jpg", timestamp="0.00", analysis="Nice stance.")]

    summary = summarize_feedback(analyses)

    assert summary.shotCount == 0
    assert summary.accuracy == "N/A"


def test_empty_analysis_list():
    summary = summarize_feedback([])

    assert summary.totalFrames == 0
    assert summary.accuracy == "N/A"


def test_structured_records_are_deduplicated():
    log_a = [shot("0:05.2", "made", "Layup"), shot("0:12.8", "missed", "Three-pointer")]
    log_b = [shot("0:05.2", "made", "Layup"), shot("0:19.3", "made", "Jump shot (mid-range)")]
    analyses = [
        FrameAnalysis(frame="frame-1.jpg", timestamp="0.00", analysis=""),
        FrameAnalysis(frame="frame-2.jpg", timestamp="1.00", analysis="{}", shots=log_a),
        FrameAnalysis(frame="frame-3.jpg", timestamp="2.00", analysis="{}", shots=log_b),
        FrameAnalysis(frame="frame-4.jpg", timestamp="3.00", analysis="Analysis failed for this frame"),
    ]

    summary = summarize_feedback(analyses)

    assert summary.source == "structured"
    assert summary.totalFrames == 4
    assert summary.shotCount == 3
    assert summary.madeCount == 2
    assert summary.missedCount == 1
    assert summary.layupCount == 1
    assert summary.accuracy == "66.7%"
