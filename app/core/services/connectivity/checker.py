"""Runs one verification stage by racing probes and reducing to a verdict."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from app.core.services.connectivity.error_classifier import FailureKind, classify_error
from app.core.services.connectivity.probe import Endpoint, Probe, ProbeResult
from app.core.services.connectivity.retry_policy import should_retry_account
from app.core.services.connectivity.types import Policy, StageVerdict
from app.integrations.exchange.credentials import CredentialsProvider

logger = logging.getLogger(__name__)

StageUpdate = Callable[[str, StageVerdict], None]


@dataclass
class RaceOutcome:
    winner: Optional[ProbeResult] = None
    failures: List[ProbeResult] = field(default_factory=list)
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.winner is not None


class ConnectivityChecker:
    """Stage checks for internet, exchange API and account access.

    Each check writes ``checking`` and then its settled verdict through the
    ``update`` callback it is given, and returns the verdict. Checks never
    raise; only cancellation propagates.
    """

    def __init__(
        self,
        *,
        probe: Probe,
        internet_endpoints: Sequence[Endpoint],
        api_endpoints: Sequence[Endpoint],
        proxy_endpoints: Sequence[Endpoint] = (),
        credentials: CredentialsProvider,
        account_client: Any,
        internet_timeout: float = 5.0,
        api_timeout: float = 8.0,
        proxy_timeout: float = 10.0,
        account_attempts: int = 2,
        account_retry_delay: float = 1.0,
        sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if len(internet_endpoints) < 2:
            logger.warning(
                "Only %d internet endpoint(s) configured; a single vendor outage will read as offline",
                len(internet_endpoints),
            )
        self._probe = probe
        self._internet_endpoints = list(internet_endpoints)
        self._api_endpoints = list(api_endpoints)
        self._proxy_endpoints = list(proxy_endpoints)
        self._credentials = credentials
        self._account_client = account_client
        self._internet_timeout = max(0.01, float(internet_timeout))
        self._api_timeout = max(0.01, float(api_timeout))
        self._proxy_timeout = max(0.01, float(proxy_timeout))
        self._account_attempts = max(1, int(account_attempts))
        self._account_retry_delay = max(0.0, float(account_retry_delay))
        self._sleep_fn = sleep_fn
        self.last_api_transport: Optional[str] = None

    def has_credentials(self) -> bool:
        return self._credentials.has_credentials()

    async def race(self, endpoints: Sequence[Endpoint], timeout: float) -> RaceOutcome:
        """Probe all endpoints concurrently; first success wins.

        Slower probes are cancelled as soon as one succeeds or the bounded
        wait runs out.
        """
        outcome = RaceOutcome()
        if not endpoints:
            return outcome

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        pending = {asyncio.create_task(self._probe.probe(ep, timeout)) for ep in endpoints}
        try:
            while pending:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    outcome.timed_out = True
                    break
                done, pending = await asyncio.wait(
                    pending,
                    timeout=remaining,
                    return_when=asyncio.FIRST_COMPLETED,
                )
                for task in done:
                    if task.cancelled():
                        continue
                    exc = task.exception()
                    if exc is not None:
                        logger.warning("Probe raised past its boundary: %s", exc)
                        continue
                    result = task.result()
                    if result.ok:
                        outcome.winner = result
                        return outcome
                    outcome.failures.append(result)
            return outcome
        finally:
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

    async def check_internet(self, policy: Policy, update: StageUpdate) -> StageVerdict:
        if policy.bypass_checks:
            logger.info("Bypassing internet connectivity check")
            update("internet", StageVerdict.SUCCESS)
            return StageVerdict.SUCCESS

        update("internet", StageVerdict.CHECKING)
        try:
            outcome = await self.race(self._internet_endpoints, self._internet_timeout)
        except Exception:
            logger.exception("Internet connectivity check crashed")
            outcome = RaceOutcome()

        if outcome.ok:
            logger.info("Internet connectivity confirmed via %s", outcome.winner.endpoint.url)
            update("internet", StageVerdict.SUCCESS)
            return StageVerdict.SUCCESS

        logger.warning(
            "All internet connectivity probes failed (%d failed, timed_out=%s)",
            len(outcome.failures),
            outcome.timed_out,
        )
        update("internet", StageVerdict.FAILED)
        return StageVerdict.FAILED

    async def check_api_access(self, policy: Policy, update: StageUpdate) -> StageVerdict:
        if policy.bypass_checks:
            logger.info("Bypassing exchange API check")
            update("api", StageVerdict.SUCCESS)
            return StageVerdict.SUCCESS

        update("api", StageVerdict.CHECKING)
        self.last_api_transport = None
        try:
            direct = await self.race(self._api_endpoints, self._api_timeout)
            proxied: Optional[RaceOutcome] = None
            if not direct.ok:
                if policy.force_direct_api:
                    logger.info("Direct exchange API probe failed; proxy fallback skipped (force direct)")
                elif self._proxy_endpoints:
                    logger.info("Direct exchange API probe failed; trying %d proxy transport(s)", len(self._proxy_endpoints))
                    proxied = await self.race(self._proxy_endpoints, self._proxy_timeout)
        except Exception:
            logger.exception("Exchange API check crashed")
            direct, proxied = RaceOutcome(), None

        if direct.ok:
            self.last_api_transport = "direct"
        elif proxied is not None and proxied.ok:
            self.last_api_transport = "proxy"

        if self.last_api_transport:
            logger.info("Exchange API accessible via %s transport", self.last_api_transport)
            update("api", StageVerdict.SUCCESS)
            return StageVerdict.SUCCESS

        logger.warning("Exchange API unreachable on every allowed transport")
        update("api", StageVerdict.FAILED)
        return StageVerdict.FAILED

    async def check_account_access(self, policy: Policy, update: StageUpdate) -> StageVerdict:
        if policy.bypass_checks:
            logger.info("Bypassing account access check")
            update("account", StageVerdict.SUCCESS)
            return StageVerdict.SUCCESS

        update("account", StageVerdict.CHECKING)
        credentials = self._credentials.get()
        if credentials is None:
            logger.info("No API credentials configured; account stage not applicable")
            update("account", StageVerdict.UNKNOWN)
            return StageVerdict.UNKNOWN

        kind = FailureKind.ERROR
        for attempt in range(self._account_attempts):
            try:
                info = await asyncio.wait_for(
                    self._account_client.get_account_info(credentials),
                    timeout=self._api_timeout,
                )
                if getattr(info, "is_real_data", False):
                    logger.info("Account access verified (attempt %d)", attempt + 1)
                    update("account", StageVerdict.SUCCESS)
                    return StageVerdict.SUCCESS
                logger.warning("Received fallback account data, not real API data")
                kind = FailureKind.AUTH_ERROR
            except asyncio.TimeoutError:
                logger.warning("Account access attempt %d timed out", attempt + 1)
                kind = FailureKind.TRANSIENT
            except Exception as exc:
                kind = classify_error(exc)
                logger.warning("Account access attempt %d failed (%s): %s", attempt + 1, kind.value, exc)

            if not should_retry_account(kind, attempt, max_attempts=self._account_attempts):
                break
            await self._sleep_fn(self._account_retry_delay)

        update("account", StageVerdict.FAILED)
        return StageVerdict.FAILED
