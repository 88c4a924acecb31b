"""Retry and reconnect timing for connectivity checks."""

from __future__ import annotations

from app.core.services.connectivity.error_classifier import FailureKind


def should_retry_account(kind: FailureKind, attempt: int, *, max_attempts: int = 2) -> bool:
    """Return whether another account-info attempt should be made.

    `attempt` is the zero-based index of the attempt that just failed. Every
    failure kind except not-applicable is retried until attempts run out,
    since a default payload or a flaky signature check can clear on the
    next call.
    """
    if kind == FailureKind.NOT_APPLICABLE:
        return False
    return max(0, int(attempt)) + 1 < max(1, int(max_attempts))


def compute_reconnect_delay(
    attempt: int,
    *,
    base_seconds: float = 5.0,
    factor: float = 1.5,
    cap_seconds: float = 30.0,
) -> float:
    """Exponential reconnect delay: base * factor^attempt, capped."""
    cap = max(0.1, float(cap_seconds))
    safe_attempt = max(0, int(attempt))
    wait = max(0.0, float(base_seconds)) * (max(1.0, float(factor)) ** safe_attempt)
    return min(cap, max(0.1, wait))
