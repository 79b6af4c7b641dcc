import asyncio
import os

import pytest
from fastapi.testclient import TestClient

from backend import config, main
from backend.utils.errors import UploadTooLarge, VideoProcessingError
from backend.utils.models import FeedbackSummary, FrameAnalysis, ProcessingResult


class FakeProcessor:
    calls = []
    error = None
    delay = 0

    def __init__(self, *args, **kwargs):
        pass

    async def process_video(self, video_path, prompt, fps=1, test_mode=False):
        FakeProcessor.calls.append((video_path, prompt, fps, test_mode))
        if FakeProcessor.delay:
            await asyncio.sleep(FakeProcessor.delay)
        if FakeProcessor.error:
            raise FakeProcessor.error
        return ProcessingResult(
            processedVideoPath=os.path.join(config.PROCESSED_DIR, "processed-abc.mp4"),
            analysis=[
                FrameAnalysis(frame="frame-1.jpg", timestamp="0.00", analysis=""),
                FrameAnalysis(frame="frame-2.jpg", timestamp="1.00", analysis="Good made shot."),
            ],
            feedback=FeedbackSummary(totalFrames=2, shotCount=1, madeCount=1, accuracy="100.0%"),
        )


@pytest.fixture
def client(monkeypatch, dirs):
    FakeProcessor.calls = []
    FakeProcessor.error = None
    FakeProcessor.delay = 0
    monkeypatch.setattr(main, "VideoProcessor", FakeProcessor)
    monkeypatch.setattr(config, "PUBLIC_BASE_URL", "http://localhost:3001")
    return TestClient(main.app)


def mp4(name="dunk.mp4", content=b"fake video", mime="video/mp4"):
    return {"video": (name, content, mime)}


def test_root(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json() == {"message": "Sport Analyzer Backend API"}


def test_status(client):
    assert client.get("/api/status/job-1").json() == {"jobId": "job-1", "status": "completed"}


def test_missing_file_is_rejected(client):
    response = client.post("/api/analyze-video", data={"prompt": "Coach me"})

    assert response.status_code == 400
    assert response.json() == {"error": "No video file uploaded"}
    assert FakeProcessor.calls == []


def test_non_video_upload_is_rejected(client, dirs):
    response = client.post("/api/analyze-video", files=mp4("notes.txt", b"hello", "text/plain"))

    assert response.status_code == 400
    assert response.json() == {"error": "Only video files are allowed!"}
    assert os.listdir(dirs["UPLOAD_DIR"]) == []


@pytest.mark.parametrize("name,mime", [
    ("practice.MOV", "application/octet-stream"),
    ("practice.bin", "video/quicktime"),
])
def test_extension_or_mime_type_is_enough(client, name, mime):
    response = client.post("/api/analyze-video", files=mp4(name, mime=mime))

    assert response.status_code == 200


def test_successful_analysis(client, dirs):
    response = client.post(
        "/api/analyze-video",
        files=mp4(),
        data={"prompt": "Check my jumper", "fps": "2", "testMode": "false"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["originalVideo"] == "dunk.mp4"
    assert body["processedVideo"] == "http://localhost:3001/processed/processed-abc.mp4"
    assert len(body["analysis"]) == 2
    assert body["feedback"]["accuracy"] == "100.0%"

    video_path, prompt, fps, test_mode = FakeProcessor.calls[0]
    assert prompt == "Check my jumper"
    assert fps == 2
    assert test_mode is False
    assert os.path.dirname(video_path) == str(dirs["UPLOAD_DIR"])
    assert os.path.basename(video_path).endswith("-dunk.mp4")
    with open(video_path, "rb") as f:
        assert f.read() == b"fake video"


def test_defaults_for_missing_or_invalid_fields(client):
    client.post("/api/analyze-video", files=mp4(), data={"fps": "fast", "testMode": "true"})

    _, prompt, fps, test_mode = FakeProcessor.calls[0]
    assert prompt == config.DEFAULT_PROMPT
    assert fps == 1
    assert test_mode is True


def test_pipeline_failure_is_500(client):
    FakeProcessor.error = VideoProcessingError("ffmpeg failed: Invalid data found")

    response = client.post("/api/analyze-video", files=mp4())

    assert response.status_code == 500
    assert response.json() == {
        "error": "Error processing video",
        "details": "ffmpeg failed: Invalid data found",
    }


def test_slow_pipeline_is_408(client, monkeypatch):
    FakeProcessor.delay = 5
    monkeypatch.setattr(config, "REQUEST_TIMEOUT", 0.05)

    response = client.post("/api/analyze-video", files=mp4())

    assert response.status_code == 408
    assert response.json() == {"error": "Request timeout - processing took too long"}


def test_oversized_upload_is_413(client, monkeypatch, dirs):
    monkeypatch.setattr(config, "MAX_FILE_SIZE", 4)

    response = client.post("/api/analyze-video", files=mp4(content=b"0123456789"))

    assert response.status_code == 413
    assert os.listdir(dirs["UPLOAD_DIR"]) == []
    assert FakeProcessor.calls == []


def test_clip_analysis_in_dev_mode(client, monkeypatch):
    monkeypatch.setattr(config, "DEV_MODE", True)

    response = client.post("/api/analyze-clip", files=mp4())

    assert response.status_code == 200
    body = response.json()
    assert body["originalVideo"] == "dunk.mp4"
    assert body["shots"]


def test_clip_analysis_rejects_non_video(client):
    response = client.post("/api/analyze-clip", files=mp4("notes.txt", b"hello", "text/plain"))

    assert response.status_code == 400


def test_oversized_clip_is_413(client, monkeypatch):
    calls = []

    async def fake_analyze_video_dev(content, prompt):
        calls.append(content)
        return "{}"

    monkeypatch.setattr(config, "MAX_FILE_SIZE", 4)
    monkeypatch.setattr(config, "DEV_MODE", True)
    monkeypatch.setattr(main.inference, "analyze_video_dev", fake_analyze_video_dev)

    response = client.post("/api/analyze-clip", files=mp4(content=b"0123456789"))

    assert response.status_code == 413
    assert "File too large" in response.json()["error"]
    assert calls == []


class ChunkedUpload:
    def __init__(self, size):
        self.remaining = size
        self.reads = 0

    async def read(self, n):
        self.reads += 1
        chunk = b"x" * min(n, self.remaining)
        self.remaining -= len(chunk)
        return chunk


def test_upload_reading_stops_at_the_size_limit(monkeypatch):
    monkeypatch.setattr(config, "MAX_FILE_SIZE", 10)
    monkeypatch.setattr(main, "UPLOAD_CHUNK_SIZE", 4)
    upload = ChunkedUpload(size=1000)

    with pytest.raises(UploadTooLarge):
        asyncio.run(main.read_upload(upload))
    assert upload.reads == 3

    assert asyncio.run(main.read_upload(ChunkedUpload(size=10))) == b"x" * 10
