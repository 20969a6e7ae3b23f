import copy
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger("prefs")

DEFAULT_PREFS_PATH = Path.home() / ".hautevision" / "prefs.json"


def default_prefs_path() -> Path:
    raw = (os.getenv("HAUTEVISION_PREFS_PATH") or "").strip()
    return Path(raw).expanduser() if raw else DEFAULT_PREFS_PATH


class Preferences:
    """
    Small local key-value store backed by a JSON file.

    One instance is shared by the UI sessions and the reminder worker threads,
    so reads and writes go through a lock. Every write replaces the whole file
    atomically (temp file + ``os.replace``). A missing or unreadable file reads
    as empty.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path is not None else default_prefs_path()
        self._lock = threading.RLock()
        self._data: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("prefs_unreadable path=%s error=%s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _flush(self) -> None:
        # caller holds the lock
        self.path.parent.mkdir(parents=True, exist_ok=True)
        text = json.dumps(self._data, indent=2, sort_keys=True)
        fd, tmp = tempfile.mkstemp(dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp, self.path)
        except OSError:
            Path(tmp).unlink(missing_ok=True)
            raise

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return copy.deepcopy(self._data.get(key, default))

    def get_bool(self, key: str) -> bool:
        with self._lock:
            return bool(self._data.get(key, False))

    def get_str(self, key: str) -> Optional[str]:
        with self._lock:
            v = self._data.get(key)
        return v if isinstance(v, str) else None

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = copy.deepcopy(value)
            self._flush()

    def remove(self, key: str) -> None:
        with self._lock:
            if key in self._data:
                del self._data[key]
                self._flush()
