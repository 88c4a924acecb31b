"""
Exchange Integration - Custom Exceptions

SRP: Only error definitions, no logic.
Raised by client.py and classified by the connectivity checker.
"""
from __future__ import annotations

from typing import Optional


class ExchangeError(Exception):
    """Base error for exchange integration."""

    def __init__(self, message: str = "", *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UpstreamUnavailable(ExchangeError):
    """Exchange server is not responding or connection refused."""
    pass


class UpstreamTimeout(ExchangeError):
    """Timeout while connecting to the exchange."""
    pass


class BadUpstreamResponse(ExchangeError):
    """Unexpected response from the exchange (malformed JSON, 5xx, etc.)."""
    pass


class AuthenticationRejected(ExchangeError):
    """The exchange rejected the API key or signature (401/403)."""
    pass
