"""Core value types for staged connectivity verification."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional

STAGE_FIELDS = ("internet", "api", "account")


class StageVerdict(str, Enum):
    UNKNOWN = "unknown"
    CHECKING = "checking"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class ConnectionStage:
    internet: StageVerdict = StageVerdict.UNKNOWN
    api: StageVerdict = StageVerdict.UNKNOWN
    account: StageVerdict = StageVerdict.UNKNOWN

    def reset(self) -> None:
        self.internet = StageVerdict.UNKNOWN
        self.api = StageVerdict.UNKNOWN
        self.account = StageVerdict.UNKNOWN

    def force_success(self) -> None:
        self.internet = StageVerdict.SUCCESS
        self.api = StageVerdict.SUCCESS
        self.account = StageVerdict.SUCCESS

    def set(self, name: str, verdict: StageVerdict) -> None:
        if name not in STAGE_FIELDS:
            raise KeyError(name)
        setattr(self, name, StageVerdict(verdict))

    def copy(self) -> "ConnectionStage":
        return replace(self)

    def to_dict(self) -> Dict[str, str]:
        return {name: getattr(self, name).value for name in STAGE_FIELDS}


@dataclass(frozen=True)
class Policy:
    """Override flags read from the policy store for one operation."""

    bypass_checks: bool = False
    force_direct_api: bool = False
    offline_mode: bool = False


@dataclass
class ConnectionState:
    stage: ConnectionStage = field(default_factory=ConnectionStage)
    is_online: bool = False
    is_checking: bool = False
    attempts: int = 0
    last_checked_at: Optional[dt.datetime] = None
    last_success_at: Optional[dt.datetime] = None
    cycle: int = 0

    def derive_online(self) -> bool:
        # Account access is reported but never gates the overall verdict.
        return self.stage.internet == StageVerdict.SUCCESS and self.stage.api == StageVerdict.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.stage.to_dict(),
            "is_online": self.is_online,
            "is_checking": self.is_checking,
            "attempts": self.attempts,
            "last_checked_at": self.last_checked_at.isoformat() if self.last_checked_at else None,
            "last_success_at": self.last_success_at.isoformat() if self.last_success_at else None,
        }
