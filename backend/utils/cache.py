import datetime
import hashlib
import json
import logging
import os
from typing import Optional

from pydantic import ValidationError

from .. import config
from .models import CacheEntry

logger = logging.getLogger(__name__)


def make_cache_key(frame_base64: str, prompt: str) -> str:
    """MD5 of the first frame characters plus the first prompt characters."""
    material = frame_base64[:config.CACHE_FRAME_CHARS] + prompt[:config.CACHE_PROMPT_CHARS]
    return hashlib.md5(material.encode("utf-8")).hexdigest()


class ResponseCache:
    """One JSON file per (frame, prompt) key. Entries are never evicted."""

    def __init__(self, cache_dir: Optional[str] = None):
        self.cache_dir = cache_dir or config.CACHE_DIR
        os.makedirs(self.cache_dir, exist_ok=True)

    def path_for(self, key: str) -> str:
        return os.path.join(self.cache_dir, f"{key}.json")

    def get(self, frame_base64: str, prompt: str) -> Optional[str]:
        path = self.path_for(make_cache_key(frame_base64, prompt))
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                entry = CacheEntry(**json.load(f))
        except (OSError, ValueError, TypeError, ValidationError) as e:
            logger.warning("Ignoring unreadable cache entry %s: %s", path, e)
            return None
        logger.info("Using cached response for frame analysis")
        return entry.response

    def put(self, frame_base64: str, prompt: str, response: str) -> str:
        path = self.path_for(make_cache_key(frame_base64, prompt))
        entry = CacheEntry(
            prompt=prompt,
            response=response,
            timestamp=datetime.datetime.now(datetime.timezone.utc).isoformat(),
        )
        with open(path, "w", encoding="utf-8") as f:
            json.dump(entry.model_dump(), f)
        return path
