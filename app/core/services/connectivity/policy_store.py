"""Durable storage for the three connectivity override flags."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional

from app.core.services.connectivity.types import Policy
from app.core.storage.json_store import JsonStore

logger = logging.getLogger(__name__)

BYPASS_CHECKS = "bypassChecks"
FORCE_DIRECT_API = "forceDirectApi"
OFFLINE_MODE = "offlineMode"

_FIELDS: Dict[str, str] = {
    BYPASS_CHECKS: "bypass_checks",
    FORCE_DIRECT_API: "force_direct_api",
    OFFLINE_MODE: "offline_mode",
}


class PolicyStore:
    """Reads and writes the persisted policy flags.

    Every ``load()`` goes back to disk so callers always act on the current
    flags; nothing is cached between operations.
    """

    def __init__(self, path: str | Path, *, store: Optional[JsonStore] = None) -> None:
        self._store = store or JsonStore(path)

    def load(self) -> Policy:
        raw = self._store.read_dict()
        return Policy(**{attr: bool(raw.get(key, False)) for key, attr in _FIELDS.items()})

    def get(self, name: str) -> bool:
        if name not in _FIELDS:
            raise KeyError(name)
        return getattr(self.load(), _FIELDS[name])

    def set_flag(self, name: str, value: bool) -> Policy:
        if name not in _FIELDS:
            raise KeyError(name)
        self._store.update(**{name: bool(value)})
        logger.info("Policy flag %s set to %s", name, bool(value))
        return self.load()

    def toggle(self, name: str) -> Policy:
        return self.set_flag(name, not self.get(name))
