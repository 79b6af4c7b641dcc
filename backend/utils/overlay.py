"""drawtext filter construction for feedback burn-in."""
import logging
import re
from typing import List, Tuple

from .. import config
from .models import FrameAnalysis
from .parsing import overlay_text_for

logger = logging.getLogger(__name__)

MIN_OVERLAY_CHARS = 20
MIN_OVERLAY_TIMESTAMP = 0.5
SKIP_MARKERS = ("analysis failed", "unable to analyze")

# Bottom-left box; nothing is ever drawn at the top of the frame
DRAWTEXT_STYLE = (
    "fontsize=18:fontcolor=white:x=20:y=h-th-20:"
    "shadowcolor=black:shadowx=2:shadowy=2:"
    "box=1:boxcolor=black@0.8:boxborderw=3"
)

_WHITESPACE_RE = re.compile(r"\s+")


def clean_text(text) -> str:
    """Single line, capped at OVERLAY_MAX_CHARS."""
    if not text or not isinstance(text, str):
        return ""
    return _WHITESPACE_RE.sub(" ", text)[:config.OVERLAY_MAX_CHARS].strip()


def escape_text(text) -> str:
    """Quote feedback as a drawtext `text` option value inside a filter graph.

    ffmpeg unescapes the value three times: the graph parser (quotes and
    backslashes, splits on ``[],;``), the option parser (splits on ``:``) and
    drawtext's own expansion (``%`` sequences). Each layer is escaped from the
    innermost out; the result is a single-quoted graph token.
    """
    text = clean_text(text)
    # drawtext expansion
    text = text.replace("\\", "\\\\").replace("%", "\\%")
    # option parser
    text = text.replace("\\", "\\\\").replace("'", "\\'").replace(":", "\\:")
    # graph parser: a quote can't appear inside quotes, so close, escape, reopen
    return "'" + text.replace("'", "'\\''") + "'"


def _fmt(seconds: float) -> str:
    return f"{seconds:.2f}".rstrip("0").rstrip(".")


def select_meaningful(analyses: List[FrameAnalysis]) -> List[Tuple[float, str]]:
    """(timestamp, overlay text) pairs worth drawing, sorted by time."""
    selected = []
    for analysis in analyses:
        text = overlay_text_for(analysis)
        timestamp = float(analysis.timestamp)
        lowered = text.lower()
        if (len(text) > MIN_OVERLAY_CHARS
                and timestamp > MIN_OVERLAY_TIMESTAMP
                and not any(marker in lowered for marker in SKIP_MARKERS)):
            logger.debug("Including analysis at %ss: %r", timestamp, text[:50])
            selected.append((timestamp, text))
        else:
            logger.debug("Skipping analysis at %ss: %r", timestamp, text[:30])

    logger.info("Filtered to %d meaningful analyses out of %d total", len(selected), len(analyses))
    return sorted(selected, key=lambda item: item[0])


def build_timed_clauses(entries: List[Tuple[float, str]]) -> str:
    """One drawtext per entry, enabled until the next entry or the display window ends."""
    entries = sorted(entries, key=lambda item: item[0])
    clauses = []
    for i, (timestamp, text) in enumerate(entries):
        end = timestamp + config.OVERLAY_SECONDS
        if i + 1 < len(entries):
            end = min(end, entries[i + 1][0])
        clauses.append(
            f"drawtext=text={escape_text(text)}:{DRAWTEXT_STYLE}:"
            f"enable='between(t,{_fmt(timestamp)},{_fmt(end)})'"
        )
    return ",".join(clauses)


def build_filter_graph(analyses: List[FrameAnalysis]) -> str:
    """ffmpeg -vf value for the given analyses, '' when nothing should be drawn."""
    entries = select_meaningful(analyses)
    if not entries:
        return ""
    graph = build_timed_clauses(entries)
    logger.info("Filter graph: %d drawtext clauses, %d characters", len(entries), len(graph))
    return graph
