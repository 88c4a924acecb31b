"""
Exchange Integration - HTTP Client

SRP: Only HTTP communication with the exchange REST API.
No connectivity policy, no retries. Just requests and response parsing.

Responsibilities:
- Signed account-info request (HMAC-SHA256, X-MBX-APIKEY header)
- Timeout handling
- Error translation to custom exceptions
"""
from __future__ import annotations

import hashlib
import hmac
import time
from typing import Callable, Dict, Optional
from urllib.parse import urlencode

import httpx

from app.core.config import settings
from .credentials import ExchangeCredentials
from .errors import AuthenticationRejected, BadUpstreamResponse, UpstreamTimeout, UpstreamUnavailable
from .types import AccountInfo


def sign_query(params: Dict[str, object], secret: str) -> str:
    """Return the query string with its HMAC-SHA256 `signature` appended."""
    query = urlencode(params)
    signature = hmac.new(secret.encode("utf-8"), query.encode("utf-8"), hashlib.sha256).hexdigest()
    return f"{query}&signature={signature}"


class ExchangeClient:
    """
    HTTP client for the exchange REST API.

    Endpoints:
    - GET /api/v3/account - Signed account information
    """

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        time_fn: Callable[[], float] = time.time,
    ):
        self.base_url = (base_url or settings.EXCHANGE_API_BASE_URL).rstrip("/")
        self.timeout = settings.CONNECTIVITY_API_TIMEOUT if timeout is None else timeout
        self._transport = transport
        self._time_fn = time_fn

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def get_account_info(self, credentials: ExchangeCredentials) -> AccountInfo:
        """
        GET /api/v3/account (signed)

        A 200 response without a balances list is returned as limited
        access rather than as real account data.
        """
        params: Dict[str, object] = {
            "timestamp": int(self._time_fn() * 1000),
            "recvWindow": settings.EXCHANGE_RECV_WINDOW,
        }
        query = sign_query(params, credentials.api_secret)
        r = await self._get(
            f"{settings.EXCHANGE_ACCOUNT_PATH}?{query}",
            headers={"X-MBX-APIKEY": credentials.api_key},
        )
        try:
            payload = r.json()
        except ValueError as e:
            raise BadUpstreamResponse(f"Malformed account response: {e}", status_code=r.status_code)
        if not isinstance(payload, dict):
            raise BadUpstreamResponse("Account response is not an object", status_code=r.status_code)

        info = AccountInfo.model_validate(payload)
        if "balances" not in payload:
            info = info.model_copy(update={"is_limited_access": True})
        return info

    async def _get(self, path: str, headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            async with self._client() as client:
                r = await client.get(url, headers=headers or {})
        except httpx.ConnectError as e:
            raise UpstreamUnavailable(f"Cannot connect to exchange: {e}")
        except httpx.TimeoutException:
            raise UpstreamTimeout(f"Exchange timeout after {self.timeout}s")
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"Exchange transport error: {e}")

        if r.status_code in (401, 403):
            raise AuthenticationRejected(
                f"Exchange rejected credentials (HTTP {r.status_code})",
                status_code=r.status_code,
            )
        if r.status_code >= 400:
            raise BadUpstreamResponse(
                f"Unexpected response: HTTP {r.status_code}",
                status_code=r.status_code,
            )
        return r
