"""Connectivity services for the trading bot.

Verifies internet, exchange API and account access in stages and keeps
one published connection status the rest of the application observes.
"""

from app.core.services.connectivity.checker import ConnectivityChecker, RaceOutcome
from app.core.services.connectivity.errors import (
    AuthenticationFailure,
    ConnectivityError,
    TransientNetworkFailure,
    UpstreamUnreachable,
)
from app.core.services.connectivity.event_bridge import Debouncer, EventBridge, Signal
from app.core.services.connectivity.factory import build_checker, build_manager
from app.core.services.connectivity.manager import ConnectionManager
from app.core.services.connectivity.notifier import LogNotifier, Notice, NoticeKind, Notifier
from app.core.services.connectivity.policy_store import PolicyStore
from app.core.services.connectivity.probe import Endpoint, Probe, ProbeResult
from app.core.services.connectivity.publisher import ConnectionStatus, StatusPublisher
from app.core.services.connectivity.types import ConnectionStage, ConnectionState, Policy, StageVerdict

__all__ = [
    "ConnectionManager",
    "ConnectivityChecker",
    "RaceOutcome",
    "Probe",
    "ProbeResult",
    "Endpoint",
    "PolicyStore",
    "Policy",
    "StatusPublisher",
    "ConnectionStatus",
    "ConnectionStage",
    "ConnectionState",
    "StageVerdict",
    "Notifier",
    "LogNotifier",
    "Notice",
    "NoticeKind",
    "EventBridge",
    "Signal",
    "Debouncer",
    "build_checker",
    "build_manager",
    "ConnectivityError",
    "TransientNetworkFailure",
    "UpstreamUnreachable",
    "AuthenticationFailure",
]
