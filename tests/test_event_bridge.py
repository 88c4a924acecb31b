"""Tests for platform signal handling and debouncing."""

from __future__ import annotations

import asyncio

import pytest

from app.core.services.connectivity.event_bridge import Debouncer, EventBridge, Signal
from app.core.services.connectivity.types import Policy


class _StubManager:
    def __init__(self, *, bypass: bool = False) -> None:
        self.bypass = bypass
        self.full_checks = 0
        self.manual_checks = 0
        self.offline_marks = 0

    def policy(self) -> Policy:
        return Policy(bypass_checks=self.bypass)

    async def run_full_check(self) -> bool:
        self.full_checks += 1
        return True

    async def manual_check(self) -> bool:
        self.manual_checks += 1
        return True

    def mark_offline(self) -> bool:
        self.offline_marks += 1
        return True


def _run_bridge(manager: _StubManager, signals, *, settle_delay: float = 0.05, wait: float = 0.15) -> None:
    async def run():
        bridge = EventBridge(manager, settle_delay=settle_delay)
        bridge.start()
        for signal in signals:
            bridge.emit(signal)
        await bridge.drain()
        await asyncio.sleep(wait)
        await bridge.stop()

    asyncio.run(run())


def test_debouncer_collapses_burst_into_one_call():
    calls = []

    async def callback():
        calls.append(1)

    async def run():
        debouncer = Debouncer(0.05, callback)
        for _ in range(3):
            debouncer.trigger()
            await asyncio.sleep(0.01)
        await debouncer.wait()

    asyncio.run(run())
    assert calls == [1]


def test_debouncer_cancel_drops_pending_call():
    calls = []

    async def callback():
        calls.append(1)

    async def run():
        debouncer = Debouncer(0.05, callback)
        debouncer.trigger()
        assert debouncer.cancel() is True
        await debouncer.wait()
        return debouncer.cancel()

    assert asyncio.run(run()) is False
    assert calls == []


def test_offline_signal_marks_offline_immediately():
    manager = _StubManager()
    _run_bridge(manager, [Signal.OFFLINE], wait=0.0)
    assert manager.offline_marks == 1
    assert manager.full_checks == 0


def test_offline_signal_ignored_when_bypassed():
    manager = _StubManager(bypass=True)
    _run_bridge(manager, ["offline"], wait=0.0)
    assert manager.offline_marks == 0


def test_online_and_visible_burst_runs_one_check_after_settle():
    manager = _StubManager()
    _run_bridge(manager, [Signal.ONLINE, Signal.VISIBLE, Signal.ONLINE])
    assert manager.full_checks == 1


def test_offline_cancels_pending_settle():
    manager = _StubManager()
    _run_bridge(manager, [Signal.ONLINE, Signal.OFFLINE])
    assert manager.full_checks == 0
    assert manager.offline_marks == 1


def test_check_connection_runs_manual_check():
    manager = _StubManager()
    _run_bridge(manager, ["check-connection"], wait=0.02)
    assert manager.manual_checks == 1
    assert manager.full_checks == 0


def test_unknown_signal_is_rejected():
    async def run():
        EventBridge(_StubManager()).emit("reboot")

    with pytest.raises(ValueError):
        asyncio.run(run())
