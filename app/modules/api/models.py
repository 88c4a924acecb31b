from __future__ import annotations
from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.core.services.connectivity.event_bridge import Signal


class SignalIn(BaseModel):
    signal: Signal

    @model_validator(mode="before")
    @classmethod
    def normalize_signal(cls, data: Any) -> Any:
        """Accept the bare browser event names as well (``checkConnection``)."""
        if not isinstance(data, dict):
            return data
        raw = data.get("signal", data.get("type"))
        if isinstance(raw, str):
            value = raw.strip().lower()
            if value in ("checkconnection", "check_connection"):
                value = Signal.CHECK_CONNECTION.value
            if value == "visibilitychange":
                value = Signal.VISIBLE.value
            return {**data, "signal": value}
        return data


class ConnectionStatusOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    internet: str
    api: str
    account: str
    is_online: bool = Field(alias="isOnline")
    is_checking: bool = Field(alias="isChecking")
    attempts: int = 0
    last_checked_at: Optional[str] = Field(default=None, alias="lastCheckedAt")
    last_success_at: Optional[str] = Field(default=None, alias="lastSuccessAt")
    bypass_checks: bool = Field(default=False, alias="bypassChecks")
    force_direct_api: bool = Field(default=False, alias="forceDirectApi")
    offline_mode: bool = Field(default=False, alias="offlineMode")


class NoticeOut(BaseModel):
    kind: str
    level: str = "info"
    message: str
    recommendations: List[str] = []
    created_at: str
