"""
API Router - connectivity endpoints.

The frontend calls `/api/connectivity/*` only:
- Connection status snapshot + SSE stream
- Manual checks and cancellation
- Override policies (offline mode, bypass, force direct API)
- Platform signals (online/offline/visible/check-connection)
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from app.core.services.connectivity import EventBridge, build_manager
from app.modules.api.models import ConnectionStatusOut, NoticeOut, SignalIn

logger = logging.getLogger(__name__)

router = APIRouter()

connection_manager = build_manager()
event_bridge = EventBridge(connection_manager)

STREAM_POLL_SECONDS = 1.0


def _status_payload() -> Dict[str, Any]:
    status = connection_manager.status().to_dict()
    return ConnectionStatusOut.model_validate(status).model_dump(by_alias=True)


# =============================================================================
# STATUS
# =============================================================================


@router.get("/connectivity/status")
def get_connectivity_status():
    """Return the last published connection status."""
    return _status_payload()


@router.get("/connectivity/stream")
async def stream_connectivity_status(request: Request):
    async def _event_stream():
        last = None
        while True:
            if await request.is_disconnected():
                break

            current = connection_manager.status()
            if current != last:
                payload = ConnectionStatusOut.model_validate(current.to_dict()).model_dump(by_alias=True)
                yield f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"
                last = current
            else:
                yield "event: ping\ndata: {}\n\n"
            await asyncio.sleep(STREAM_POLL_SECONDS)

    return StreamingResponse(_event_stream(), media_type="text/event-stream")


@router.get("/connectivity/notices", response_model=List[NoticeOut])
def list_connectivity_notices():
    return [notice.to_dict() for notice in connection_manager.notifier.active()]


# =============================================================================
# CHECKS
# =============================================================================


@router.post("/connectivity/check")
async def run_manual_check():
    """Run a user-initiated check; queues behind a check already in flight."""
    ok = await connection_manager.manual_check()
    return {"ok": ok, "status": _status_payload()}


@router.post("/connectivity/cancel")
async def cancel_connectivity_check():
    cancelled = connection_manager.cancel()
    return {"cancelled": cancelled, "status": _status_payload()}


# =============================================================================
# POLICIES
# =============================================================================


@router.post("/connectivity/offline-mode")
async def enable_offline_mode():
    connection_manager.enable_offline_mode()
    return _status_payload()


@router.delete("/connectivity/offline-mode")
async def disable_offline_mode():
    connection_manager.disable_offline_mode()
    return _status_payload()


@router.post("/connectivity/bypass/toggle")
async def toggle_bypass():
    ok = await connection_manager.toggle_bypass()
    return {"ok": ok, "status": _status_payload()}


@router.post("/connectivity/force-direct/toggle")
async def toggle_force_direct_api():
    ok = await connection_manager.toggle_force_direct_api()
    return {"ok": ok, "status": _status_payload()}


# =============================================================================
# SIGNALS
# =============================================================================


@router.post("/connectivity/signals", status_code=202)
async def post_connectivity_signal(payload: SignalIn):
    signal = event_bridge.emit(payload.signal)
    logger.debug("Queued connectivity signal %s", signal.value)
    return {"accepted": True, "signal": signal.value}
