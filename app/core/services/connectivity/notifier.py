"""User-visible notices raised by the connection manager.

The manager holds no UI concerns; it hands notices to a notifier and the
rest of the application decides how to show them.
"""

from __future__ import annotations

import datetime as dt
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

from app.core.services.connectivity.errors import ConnectivityError

logger = logging.getLogger(__name__)


class NoticeKind(str, Enum):
    NETWORK_PROBLEM = "network_problem"
    UPSTREAM_UNREACHABLE = "upstream_unreachable"
    AUTH_FAILURE = "auth_failure"
    BYPASS_SUGGESTION = "bypass_suggestion"
    INFO = "info"


@dataclass
class Notice:
    kind: NoticeKind
    message: str
    level: str = "info"  # info | success | warning | error
    recommendations: List[str] = field(default_factory=list)
    created_at: dt.datetime = field(default_factory=lambda: dt.datetime.now(dt.timezone.utc))

    @classmethod
    def from_error(cls, kind: NoticeKind, exc: ConnectivityError) -> "Notice":
        return cls(
            kind=kind,
            message=str(exc),
            level="error",
            recommendations=list(exc.recommendations),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "level": self.level,
            "message": self.message,
            "recommendations": list(self.recommendations),
            "created_at": self.created_at.isoformat(),
        }


class Notifier:
    """Keeps at most one active notice per kind."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._active: Dict[NoticeKind, Notice] = {}

    def notify(self, notice: Notice) -> None:
        with self._lock:
            if notice.kind != NoticeKind.INFO:
                self._active[notice.kind] = notice
        self._emit(notice)

    def clear(self, kind: NoticeKind) -> None:
        with self._lock:
            self._active.pop(kind, None)

    def is_active(self, kind: NoticeKind) -> bool:
        with self._lock:
            return kind in self._active

    def active(self) -> List[Notice]:
        with self._lock:
            return sorted(self._active.values(), key=lambda n: n.created_at)

    def _emit(self, notice: Notice) -> None:
        """Hook for subclasses that deliver notices somewhere."""


class LogNotifier(Notifier):
    """Writes every notice to the application log."""

    _LEVELS = {
        "info": logging.INFO,
        "success": logging.INFO,
        "warning": logging.WARNING,
        "error": logging.ERROR,
    }

    def _emit(self, notice: Notice) -> None:
        logger.log(
            self._LEVELS.get(notice.level, logging.INFO),
            "[%s] %s",
            notice.kind.value,
            notice.message,
        )
