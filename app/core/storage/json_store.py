from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)

_LOCKS: Dict[str, threading.RLock] = {}
_LOCKS_GUARD = threading.Lock()


def _lock_for(path: Path) -> threading.RLock:
    key = str(path.resolve())
    with _LOCKS_GUARD:
        if key not in _LOCKS:
            _LOCKS[key] = threading.RLock()
        return _LOCKS[key]


class JsonStore:
    """JSON file store holding a single object document."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def read_dict(self) -> Dict[str, Any]:
        lock = _lock_for(self.path)
        with lock:
            if not self.path.exists():
                return {}
            raw = self.path.read_text(encoding="utf-8").strip() or "{}"
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                # Attempt to recover the first valid JSON object.
                logger.warning("Corrupted JSON in %s - attempting recovery", self.path)
                try:
                    data, _ = json.JSONDecoder().raw_decode(raw)
                except (json.JSONDecodeError, ValueError):
                    data = None
                if not isinstance(data, dict):
                    logger.error(
                        "Unrecoverable JSON in %s - resetting to empty document",
                        self.path,
                    )
                    data = {}
                self._write_unlocked(data)
                return data
            if not isinstance(data, dict):
                logger.error("Unexpected JSON root in %s - expected an object", self.path)
                return {}
            return data

    def write_dict(self, data: Dict[str, Any]) -> None:
        lock = _lock_for(self.path)
        with lock:
            self._write_unlocked(data)

    def update(self, **values: Any) -> Dict[str, Any]:
        """Merge values into the stored document and return the result."""
        lock = _lock_for(self.path)
        with lock:
            current = self.read_dict()
            current.update(values)
            self._write_unlocked(current)
            return current

    def _write_unlocked(self, data: Dict[str, Any]) -> None:
        # Temp file + rename: readers never see a partial document.
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        tmp.replace(self.path)
