"""Single bounded reachability request against one endpoint."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Optional

import httpx

from app.core.services.connectivity.error_classifier import FailureKind, classify_error, classify_status

logger = logging.getLogger(__name__)

_NO_CACHE_HEADERS = {"Cache-Control": "no-cache", "Pragma": "no-cache"}


@dataclass(frozen=True)
class Endpoint:
    name: str
    url: str
    method: str = "GET"
    timeout: Optional[float] = None
    headers: Dict[str, str] = field(default_factory=dict, hash=False, compare=False)


@dataclass
class ProbeResult:
    endpoint: Endpoint
    ok: bool
    status_code: Optional[int] = None
    latency_ms: Optional[int] = None
    error: str = ""
    kind: Optional[FailureKind] = None


class Probe:
    """Issues one request per call and folds every failure into a result.

    Timeouts, connection errors and non-2xx responses all come back as
    ``ok=False``. Only cancellation propagates, so a caller racing several
    probes can stop the slower ones.
    """

    def __init__(
        self,
        *,
        default_timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._default_timeout = max(0.01, float(default_timeout))
        self._transport = transport

    async def probe(self, endpoint: Endpoint, timeout: Optional[float] = None) -> ProbeResult:
        limit = float(timeout or endpoint.timeout or self._default_timeout)
        t0 = time.monotonic()
        try:
            status = await asyncio.wait_for(self._request(endpoint, limit), timeout=limit)
        except asyncio.TimeoutError:
            logger.debug("Probe %s timed out after %.1fs", endpoint.url, limit)
            return ProbeResult(
                endpoint=endpoint,
                ok=False,
                latency_ms=self._elapsed_ms(t0),
                error=f"timeout after {limit:.1f}s",
                kind=FailureKind.TRANSIENT,
            )
        except Exception as exc:
            logger.debug("Probe %s failed: %s", endpoint.url, exc)
            return ProbeResult(
                endpoint=endpoint,
                ok=False,
                latency_ms=self._elapsed_ms(t0),
                error=f"{type(exc).__name__}: {exc}"[:240],
                kind=classify_error(exc),
            )

        elapsed = self._elapsed_ms(t0)
        if 200 <= status < 300:
            return ProbeResult(endpoint=endpoint, ok=True, status_code=status, latency_ms=elapsed)
        return ProbeResult(
            endpoint=endpoint,
            ok=False,
            status_code=status,
            latency_ms=elapsed,
            error=f"HTTP {status}",
            kind=classify_status(status),
        )

    async def _request(self, endpoint: Endpoint, limit: float) -> int:
        headers = {**_NO_CACHE_HEADERS, **endpoint.headers}
        async with httpx.AsyncClient(
            timeout=limit,
            transport=self._transport,
            follow_redirects=True,
        ) as client:
            r = await client.request(endpoint.method, endpoint.url, headers=headers)
            return r.status_code

    @staticmethod
    def _elapsed_ms(t0: float) -> int:
        return int((time.monotonic() - t0) * 1000)
