"""
Key-value store
Durable storage for credentials, audio assignments and the transcript cache
"""

import copy
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from loguru import logger

from channel_transcriber.utils import load_json, save_json

# Store keys
APIFY_TOKEN = "apify_token"
GOOGLE_API_KEY = "google_api_key"
AUDIO_LINKS = "audio_links"
TRANSCRIPT_CACHE = "transcript_cache"


class KeyValueStore(Protocol):
    """Minimal persistence capability used by the pipeline"""

    def get(self, key: str, default: Any = None) -> Any:
        ...

    def set(self, key: str, value: Any) -> None:
        ...


class MemoryStore:
    """In-memory store"""

    def __init__(self, initial: dict = None):
        self._data = copy.deepcopy(initial) if initial else {}

    def get(self, key: str, default: Any = None) -> Any:
        return copy.deepcopy(self._data.get(key, default))

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)


class JsonFileStore:
    """Store backed by a single JSON file

    The file is read once at startup and rewritten on every set().
    """

    def __init__(self, store_file: str = "data/store.json"):
        """Initialize the store

        Args:
            store_file: JSON file path
        """
        self.store_file = Path(store_file)
        self.store_file.parent.mkdir(parents=True, exist_ok=True)
        self._data = self._load()

        logger.info(f"Key-value store initialized: {store_file}")

    def _load(self) -> dict:
        data = load_json(str(self.store_file))
        return data.get("values", {}) if isinstance(data, dict) else {}

    def _save(self):
        save_json(
            {"last_updated": datetime.now().isoformat(), "values": self._data},
            str(self.store_file)
        )

    def get(self, key: str, default: Any = None) -> Any:
        return copy.deepcopy(self._data.get(key, default))

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)
        self._save()
