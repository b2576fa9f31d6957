"""Key/value stores with the browser localStorage interface (string values)."""

import json
import logging
import os
import threading
from typing import Dict, Optional

logger = logging.getLogger(__name__)

AUTH_TOKEN = "authToken"
CACHED_USER = "user"
STICKY_NOTES = "stickyNotes"
EXTENSION_INSTALLED = "screenTimeExtensionInstalled"
EXTENSION_NAME = "screenTimeExtensionName"
EXTENSION_STATE = "screenTimeExtensionState"
CACHED_SCREEN_TIME = "mockScreenTimeData"
LAST_SYNC_TIME = "lastSyncTime"


class MemoryStorage:
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._lock = threading.Lock()
        self._data: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = str(value)
            self._flush()

    def remove_item(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)
            self._flush()

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
            self._flush()

    def _flush(self) -> None:
        pass


class JsonFileStorage(MemoryStorage):
    """MemoryStorage persisted to a JSON file after every write."""

    def __init__(self, path: str):
        self.path = path
        initial = {}
        if os.path.exists(path):
            try:
                with open(path, "r", encoding="utf-8") as f:
                    initial = json.load(f)
            except (OSError, ValueError) as e:
                logger.warning("Ignoring unreadable storage file %s: %s", path, e)
        super().__init__({k: str(v) for k, v in initial.items()} if isinstance(initial, dict) else {})

    def _flush(self) -> None:
        tmp = self.path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(self._data, f, indent=2)
        os.replace(tmp, self.path)
