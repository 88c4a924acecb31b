"""
Exchange Integration - Credentials

SRP: Only credential lookup. The account-stage check receives a provider
explicitly instead of reading a global.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from app.core.config import settings


@dataclass(frozen=True)
class ExchangeCredentials:
    api_key: str
    api_secret: str

    def __repr__(self) -> str:
        masked = f"{self.api_key[:4]}..." if self.api_key else ""
        return f"ExchangeCredentials(api_key={masked!r})"


class CredentialsProvider:
    """Returns configured credentials, or None when none are set."""

    def get(self) -> Optional[ExchangeCredentials]:
        raise NotImplementedError

    def has_credentials(self) -> bool:
        return self.get() is not None


class StaticCredentialsProvider(CredentialsProvider):
    def __init__(self, credentials: Optional[ExchangeCredentials] = None) -> None:
        self._credentials = credentials

    def get(self) -> Optional[ExchangeCredentials]:
        return self._credentials


class EnvCredentialsProvider(CredentialsProvider):
    """Reads EXCHANGE_API_KEY / EXCHANGE_API_SECRET from settings."""

    def __init__(self, *, api_key: Optional[str] = None, api_secret: Optional[str] = None) -> None:
        self._api_key = settings.EXCHANGE_API_KEY if api_key is None else api_key
        self._api_secret = settings.EXCHANGE_API_SECRET if api_secret is None else api_secret

    def get(self) -> Optional[ExchangeCredentials]:
        key = str(self._api_key or "").strip()
        secret = str(self._api_secret or "").strip()
        if not key or not secret:
            return None
        return ExchangeCredentials(api_key=key, api_secret=secret)
