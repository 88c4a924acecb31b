"""Classification helpers for probe and collaborator errors."""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Optional

import httpx

from app.core.services.connectivity.types import ConnectionStage, StageVerdict
from app.integrations.exchange.errors import AuthenticationRejected, UpstreamTimeout, UpstreamUnavailable


class FailureKind(str, Enum):
    TRANSIENT = "TRANSIENT"
    UPSTREAM_UNREACHABLE = "UPSTREAM_UNREACHABLE"
    AUTH_ERROR = "AUTH_ERROR"
    NOT_APPLICABLE = "NOT_APPLICABLE"
    ERROR = "ERROR"


def classify_error(exc: BaseException, status_code: Optional[int] = None) -> FailureKind:
    """Classify a probe/collaborator failure into a reporting bucket."""
    status = status_code
    if status is None:
        try:
            raw = getattr(exc, "status_code", None)
            if raw is not None:
                status = int(raw)
        except Exception:
            status = None

    if isinstance(exc, AuthenticationRejected) or status in {401, 403}:
        return FailureKind.AUTH_ERROR

    if isinstance(
        exc,
        (
            httpx.TimeoutException,
            httpx.ConnectError,
            httpx.NetworkError,
            asyncio.TimeoutError,
            ConnectionError,
            UpstreamTimeout,
            UpstreamUnavailable,
        ),
    ):
        return FailureKind.TRANSIENT

    if status is not None and (status == 429 or status >= 500):
        return FailureKind.TRANSIENT

    message = f"{type(exc).__name__}: {exc}".lower()
    if any(
        marker in message
        for marker in (
            "invalid api-key",
            "invalid api key",
            "signature for this request is not valid",
            "unauthorized",
            "forbidden",
        )
    ):
        return FailureKind.AUTH_ERROR

    if any(
        marker in message
        for marker in (
            "timeout",
            "timed out",
            "connection reset",
            "connection refused",
            "temporarily unavailable",
            "name or service not known",
        )
    ):
        return FailureKind.TRANSIENT

    return FailureKind.ERROR


def classify_status(status_code: int) -> FailureKind:
    """Classify a non-2xx HTTP status returned by a probe."""
    if status_code in {401, 403}:
        return FailureKind.AUTH_ERROR
    if status_code == 429 or status_code >= 500:
        return FailureKind.TRANSIENT
    return FailureKind.ERROR


def classify_stage_failure(stage: ConnectionStage, *, has_credentials: bool = True) -> Optional[FailureKind]:
    """Return the failure that should be surfaced for a settled stage record.

    Stages are gated in order, so the first failed stage decides. An account
    stage left at unknown without credentials is not an error.
    """
    if stage.internet == StageVerdict.FAILED:
        return FailureKind.TRANSIENT
    if stage.api == StageVerdict.FAILED:
        return FailureKind.UPSTREAM_UNREACHABLE
    if stage.account == StageVerdict.FAILED:
        return FailureKind.AUTH_ERROR
    if (
        stage.api == StageVerdict.SUCCESS
        and stage.account == StageVerdict.UNKNOWN
        and not has_credentials
    ):
        return FailureKind.NOT_APPLICABLE
    return None
