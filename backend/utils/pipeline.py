import asyncio
import logging
import os
import shutil
import uuid
from typing import List, Optional

from .. import config
from . import analysis as inference
from . import video
from .models import FrameAnalysis, ProcessingResult
from .overlay import build_filter_graph
from .parsing import parse_shot_log
from .summary import summarize_feedback

logger = logging.getLogger(__name__)

NO_OVERLAY_MARKER = "NO_OVERLAY_TEST"
TEST_MODE_FEEDBACK = "Test mode - original video returned without processing"
NO_OVERLAY_FEEDBACK = "No overlay test - video created with absolutely no overlays"


def _remove_partial(path: str) -> None:
    if os.path.exists(path):
        os.remove(path)


class VideoProcessor:
    """Sample -> analyze each frame -> burn feedback into a re-encoded copy."""

    def __init__(self, temp_dir: Optional[str] = None, processed_dir: Optional[str] = None):
        self.temp_dir = temp_dir or config.TEMP_DIR
        self.processed_dir = processed_dir or config.PROCESSED_DIR
        os.makedirs(self.temp_dir, exist_ok=True)
        os.makedirs(self.processed_dir, exist_ok=True)

    def _output_path(self, prefix: str) -> str:
        return os.path.join(self.processed_dir, f"{prefix}-{uuid.uuid4()}.mp4")

    async def process_video(self, video_path: str, prompt: str, fps: int = 1,
                            test_mode: bool = False) -> ProcessingResult:
        logger.info("Starting video processing (test mode: %s)", "ON" if test_mode else "OFF")

        if test_mode:
            output_path = self._output_path("original")
            await asyncio.to_thread(shutil.copyfile, video_path, output_path)
            logger.info("Test mode: original video copied to %s", output_path)
            return ProcessingResult(processedVideoPath=output_path, analysis=[],
                                    feedback=TEST_MODE_FEEDBACK)

        if NO_OVERLAY_MARKER in prompt:
            output_path = self._output_path("no-overlay-test")
            try:
                await video.create_video_without_overlays(video_path, output_path)
            except BaseException:
                _remove_partial(output_path)
                raise
            return ProcessingResult(processedVideoPath=output_path, analysis=[],
                                    feedback=NO_OVERLAY_FEEDBACK)

        video_info = await video.probe_video(video_path)
        duration = video.get_duration(video_info)
        max_frames = video.compute_max_frames(duration, fps)
        logger.info("Video duration: %ss, max frames to process: %d", duration, max_frames)

        frames_dir = os.path.join(self.temp_dir, str(uuid.uuid4()))
        try:
            await video.extract_frames(video_path, frames_dir, fps, max_frames)
            frame_files = video.list_frames(frames_dir, limit=max_frames)
            logger.info("Processing %d frames", len(frame_files))

            frame_analyses = await self.analyze_frames(frames_dir, frame_files, prompt, fps)

            output_path = self._output_path("processed")
            clean_path = self._output_path("clean")
            try:
                await video.create_clean_video(video_path, clean_path)
                filter_graph = build_filter_graph(frame_analyses)
                await video.burn_overlays(clean_path, output_path, filter_graph)
            except BaseException:
                _remove_partial(output_path)
                raise
            finally:
                _remove_partial(clean_path)
        finally:
            shutil.rmtree(frames_dir, ignore_errors=True)

        return ProcessingResult(
            processedVideoPath=output_path,
            analysis=frame_analyses,
            feedback=summarize_feedback(frame_analyses),
        )

    async def analyze_frames(self, frames_dir: str, frame_files: List[str], prompt: str,
                             fps: int) -> List[FrameAnalysis]:
        """One frame at a time; a failed or slow frame gets a placeholder."""
        total = len(frame_files)
        results = []
        for i, frame_file in enumerate(frame_files):
            timestamp = f"{i / fps:.2f}"

            # No feedback on the opening frame (would show at 0.00s)
            if i == 0:
                results.append(FrameAnalysis(frame=frame_file, timestamp=timestamp, analysis=""))
                continue

            logger.info("Processing frame %d/%d", i + 1, total)
            try:
                text = await self.analyze_frame(os.path.join(frames_dir, frame_file),
                                                inference.build_frame_prompt(prompt, i, total))
            except asyncio.TimeoutError:
                logger.error("Frame %d analysis timed out", i + 1)
                text = config.FAILED_FRAME_TEXT
            except Exception as e:
                logger.error("Error analyzing frame %d: %s", i + 1, e)
                text = config.FAILED_FRAME_TEXT

            shot_log = parse_shot_log(text)
            results.append(FrameAnalysis(
                frame=frame_file,
                timestamp=timestamp,
                analysis=text,
                shots=shot_log.shots if shot_log else None,
            ))
        return results

    async def analyze_frame(self, frame_path: str, frame_prompt: str) -> str:
        frame_base64 = await asyncio.to_thread(video.image_to_base64, frame_path)
        if config.DEV_MODE:
            return await asyncio.wait_for(inference.analyze_frame_dev(frame_base64, frame_prompt),
                                          config.DEV_FRAME_TIMEOUT)
        return await asyncio.wait_for(inference.analyze_frame(frame_base64, frame_prompt),
                                      config.FRAME_TIMEOUT)
