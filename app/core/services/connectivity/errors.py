"""Failure categories surfaced by the connectivity checks."""

from __future__ import annotations

from typing import List, Optional


class ConnectivityError(RuntimeError):
    """Base class for connectivity verification failures."""

    stage: str = ""
    recommendations: List[str] = []


class TransientNetworkFailure(ConnectivityError):
    """Raised when general internet reachability could not be confirmed."""

    stage = "internet"
    recommendations = ["Check your network connection."]

    def __init__(
        self,
        message: str = "No internet connection detected. Please check your network settings.",
        *,
        endpoint: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.endpoint = endpoint


class UpstreamUnreachable(ConnectivityError):
    """Raised when every transport to the exchange API failed."""

    stage = "api"
    recommendations = [
        "Check your network connection.",
        "Try forcing direct API connections.",
        "Consider bypassing connection checks.",
    ]

    def __init__(
        self,
        message: str = (
            "Cannot access the exchange API. The service might be blocked in your "
            "region or there's a temporary outage."
        ),
        *,
        transports_tried: int = 0,
    ) -> None:
        super().__init__(message)
        self.transports_tried = transports_tried


class AuthenticationFailure(ConnectivityError):
    """Raised when account access failed while credentials are configured."""

    stage = "account"
    recommendations = [
        "Check your API key and secret.",
        "Verify the API key has read permission.",
    ]

    def __init__(
        self,
        message: str = "Could not access your exchange account. Please check your API keys and permissions.",
        *,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
