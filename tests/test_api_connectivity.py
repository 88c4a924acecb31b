"""Tests for the /api/connectivity endpoints."""

from __future__ import annotations

import inspect
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from app.core.services.connectivity.notifier import Notice, NoticeKind
from app.core.services.connectivity.types import Policy
from app.main import app
from app.modules.api.router import connection_manager, event_bridge


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture(autouse=True)
def _reset_notices():
    for kind in NoticeKind:
        connection_manager.notifier.clear(kind)
    yield
    for kind in NoticeKind:
        connection_manager.notifier.clear(kind)


def test_status_uses_camel_case_payload(client):
    r = client.get("/api/connectivity/status")
    assert r.status_code == 200
    body = r.json()
    assert set(body) >= {"internet", "api", "account", "isOnline", "isChecking", "bypassChecks", "offlineMode"}
    assert body["internet"] in {"unknown", "checking", "success", "failed"}


def test_manual_check_returns_verdict(client):
    with patch.object(connection_manager, "manual_check", new=AsyncMock(return_value=True)) as mocked:
        r = client.post("/api/connectivity/check")
    assert r.status_code == 200
    assert r.json()["ok"] is True
    mocked.assert_awaited_once()


def test_cancel_reports_whether_a_check_was_running(client):
    with patch.object(connection_manager, "cancel", return_value=False):
        r = client.post("/api/connectivity/cancel")
    assert r.status_code == 200
    assert r.json()["cancelled"] is False


def test_offline_mode_enable_and_disable(client):
    with (
        patch.object(connection_manager, "enable_offline_mode", return_value=Policy(offline_mode=True)) as enable,
        patch.object(connection_manager, "disable_offline_mode", return_value=Policy()) as disable,
    ):
        assert client.post("/api/connectivity/offline-mode").status_code == 200
        assert client.delete("/api/connectivity/offline-mode").status_code == 200
    enable.assert_called_once()
    disable.assert_called_once()


def test_bypass_toggle(client):
    with patch.object(connection_manager, "toggle_bypass", new=AsyncMock(return_value=True)) as mocked:
        r = client.post("/api/connectivity/bypass/toggle")
    assert r.status_code == 200
    assert r.json()["ok"] is True
    mocked.assert_awaited_once()


def test_force_direct_toggle(client):
    with patch.object(connection_manager, "toggle_force_direct_api", new=AsyncMock(return_value=False)) as mocked:
        r = client.post("/api/connectivity/force-direct/toggle")
    assert r.status_code == 200
    assert r.json()["ok"] is False
    mocked.assert_awaited_once()


def test_signal_is_queued(client):
    with patch.object(event_bridge, "emit", new=MagicMock(side_effect=lambda s: s)) as emit:
        r = client.post("/api/connectivity/signals", json={"signal": "offline"})
    assert r.status_code == 202
    assert r.json() == {"accepted": True, "signal": "offline"}
    emit.assert_called_once()


def test_signal_accepts_browser_event_name(client):
    with patch.object(event_bridge, "emit", new=MagicMock(side_effect=lambda s: s)):
        r = client.post("/api/connectivity/signals", json={"signal": "checkConnection"})
    assert r.status_code == 202
    assert r.json()["signal"] == "check-connection"


def test_unknown_signal_is_rejected(client):
    r = client.post("/api/connectivity/signals", json={"signal": "reboot"})
    assert r.status_code == 422


def test_notices_list_active_notices(client):
    connection_manager.notifier.notify(
        Notice(kind=NoticeKind.BYPASS_SUGGESTION, message="Consider bypassing connection checks.")
    )
    r = client.get("/api/connectivity/notices")
    assert r.status_code == 200
    body = r.json()
    assert [n["kind"] for n in body] == ["bypass_suggestion"]


def test_healthz(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.json()["ok"] is True


@pytest.mark.parametrize(
    "path, method",
    [
        ("/api/connectivity/cancel", "POST"),
        ("/api/connectivity/offline-mode", "POST"),
        ("/api/connectivity/offline-mode", "DELETE"),
        ("/api/connectivity/signals", "POST"),
    ],
)
def test_loop_bound_routes_run_on_event_loop(path, method):
    # Sync endpoints run in a worker thread; these touch tasks and queues owned by the loop.
    endpoints = [
        route.endpoint
        for route in app.routes
        if getattr(route, "path", None) == path and method in getattr(route, "methods", set())
    ]
    assert len(endpoints) == 1
    assert inspect.iscoroutinefunction(endpoints[0])
