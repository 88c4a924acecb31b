"""
Connection status publisher.

The read-only handle the rest of the application observes. Holds the last
published snapshot and notifies subscribers only when it changes.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import asdict, dataclass
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Set

from app.core.services.connectivity.types import ConnectionState, Policy, StageVerdict

logger = logging.getLogger(__name__)

_LISTENER_QUEUE_SIZE = 32


@dataclass(frozen=True)
class ConnectionStatus:
    internet: StageVerdict = StageVerdict.UNKNOWN
    api: StageVerdict = StageVerdict.UNKNOWN
    account: StageVerdict = StageVerdict.UNKNOWN
    is_online: bool = False
    is_checking: bool = False
    attempts: int = 0
    last_checked_at: Optional[str] = None
    last_success_at: Optional[str] = None
    bypass_checks: bool = False
    force_direct_api: bool = False
    offline_mode: bool = False

    @classmethod
    def from_state(cls, state: ConnectionState, policy: Policy) -> "ConnectionStatus":
        return cls(
            internet=state.stage.internet,
            api=state.stage.api,
            account=state.stage.account,
            is_online=state.is_online,
            is_checking=state.is_checking,
            attempts=state.attempts,
            last_checked_at=state.last_checked_at.isoformat() if state.last_checked_at else None,
            last_success_at=state.last_success_at.isoformat() if state.last_success_at else None,
            bypass_checks=policy.bypass_checks,
            force_direct_api=policy.force_direct_api,
            offline_mode=policy.offline_mode,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        for name in ("internet", "api", "account"):
            payload[name] = payload[name].value
        return payload


Subscriber = Callable[[ConnectionStatus], None]


class StatusPublisher:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._current = ConnectionStatus()
        self._subscribers: List[Subscriber] = []
        self._queues: Set["asyncio.Queue[ConnectionStatus]"] = set()

    def current(self) -> ConnectionStatus:
        with self._lock:
            return self._current

    def to_dict(self) -> Dict[str, Any]:
        return self.current().to_dict()

    def publish(self, state: ConnectionState, policy: Policy) -> bool:
        """Publish a snapshot; returns False when nothing changed."""
        snapshot = ConnectionStatus.from_state(state, policy)
        with self._lock:
            if snapshot == self._current:
                return False
            self._current = snapshot
            subscribers = list(self._subscribers)
            queues = list(self._queues)

        for callback in subscribers:
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Status subscriber %r failed", callback)

        for queue in queues:
            if queue.full():
                # Slow listener: keep only the latest snapshots.
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
            queue.put_nowait(snapshot)
        return True

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return _unsubscribe

    async def listen(self) -> AsyncIterator[ConnectionStatus]:
        """Yield the current snapshot, then every change after it."""
        queue: "asyncio.Queue[ConnectionStatus]" = asyncio.Queue(maxsize=_LISTENER_QUEUE_SIZE)
        with self._lock:
            self._queues.add(queue)
            current = self._current
        try:
            yield current
            while True:
                yield await queue.get()
        finally:
            with self._lock:
                self._queues.discard(queue)
