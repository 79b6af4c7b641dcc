import os
import tempfile

# Point the service at throwaway directories before backend.config is imported
_TEST_ROOT = tempfile.mkdtemp(prefix="sport-analyzer-tests-")
for _name in ("UPLOAD_DIR", "PROCESSED_DIR", "TEMP_DIR", "CACHE_DIR"):
    os.environ[_name] = os.path.join(_TEST_ROOT, _name.lower())

import pytest  # noqa: E402

from backend import config  # noqa: E402
from backend.utils import analysis  # noqa: E402


@pytest.fixture
def dirs(monkeypatch, tmp_path):
    paths = {}
    for name in ("UPLOAD_DIR", "PROCESSED_DIR", "TEMP_DIR", "CACHE_DIR"):
        path = tmp_path / name.lower()
        path.mkdir()
        monkeypatch.setattr(config, name, str(path))
        paths[name] = path
    return paths


@pytest.fixture(autouse=True)
def reset_inference_state(monkeypatch):
    monkeypatch.setattr(analysis, "_cache", None)
    monkeypatch.setattr(analysis, "_models", {})
    monkeypatch.setattr(analysis, "MOCK_DELAY_SECONDS", 0)
