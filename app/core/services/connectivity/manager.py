"""Orchestrates the staged connectivity checks and the override policies."""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from typing import Awaitable, Callable, Optional

from app.core.config import settings
from app.core.services.connectivity.checker import ConnectivityChecker, StageUpdate
from app.core.services.connectivity.error_classifier import FailureKind, classify_stage_failure
from app.core.services.connectivity.errors import (
    AuthenticationFailure,
    ConnectivityError,
    TransientNetworkFailure,
    UpstreamUnreachable,
)
from app.core.services.connectivity.notifier import LogNotifier, Notice, NoticeKind, Notifier
from app.core.services.connectivity.policy_store import (
    BYPASS_CHECKS,
    FORCE_DIRECT_API,
    OFFLINE_MODE,
    PolicyStore,
)
from app.core.services.connectivity.publisher import ConnectionStatus, StatusPublisher
from app.core.services.connectivity.retry_policy import compute_reconnect_delay
from app.core.services.connectivity.types import STAGE_FIELDS, ConnectionState, Policy, StageVerdict

logger = logging.getLogger(__name__)

CycleBody = Callable[[int], Awaitable[bool]]


def _utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class ConnectionManager:
    """Owns the connection state and is the only thing that mutates it.

    Check cycles are serialised by a lock, so a second request waits for the
    first instead of interleaving. Every cycle gets a number; stage writes
    from a cycle that is no longer current are dropped. Nothing here raises
    to the caller: failures end up as verdicts and notices.
    """

    def __init__(
        self,
        *,
        policy_store: PolicyStore,
        checker: ConnectivityChecker,
        publisher: Optional[StatusPublisher] = None,
        notifier: Optional[Notifier] = None,
        monitor_interval: float = settings.CONNECTIVITY_MONITOR_INTERVAL,
        initial_delay: float = settings.CONNECTIVITY_INITIAL_DELAY,
        reconnect_base_delay: float = settings.RECONNECT_BASE_DELAY,
        reconnect_factor: float = settings.RECONNECT_BACKOFF_FACTOR,
        reconnect_cap_seconds: float = settings.RECONNECT_CAP_SECONDS,
        reconnect_max_attempts: int = settings.RECONNECT_MAX_ATTEMPTS,
        sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
        now_fn: Callable[[], dt.datetime] = _utc_now,
    ) -> None:
        self._policy_store = policy_store
        self._checker = checker
        self._publisher = publisher or StatusPublisher()
        self._notifier = notifier or LogNotifier()
        self._monitor_interval = max(0.01, float(monitor_interval))
        self._initial_delay = max(0.0, float(initial_delay))
        self._reconnect_base_delay = float(reconnect_base_delay)
        self._reconnect_factor = float(reconnect_factor)
        self._reconnect_cap_seconds = float(reconnect_cap_seconds)
        self._reconnect_max_attempts = max(0, int(reconnect_max_attempts))
        self._sleep_fn = sleep_fn
        self._now_fn = now_fn

        self._state = ConnectionState()
        self._lock = asyncio.Lock()
        self._inflight: Optional[asyncio.Task] = None
        self._monitor_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def publisher(self) -> StatusPublisher:
        return self._publisher

    @property
    def notifier(self) -> Notifier:
        return self._notifier

    def policy(self) -> Policy:
        return self._policy_store.load()

    def status(self) -> ConnectionStatus:
        return self._publisher.current()

    def is_check_in_flight(self) -> bool:
        return self._lock.locked() or self._state.is_checking

    # ------------------------------------------------------------------
    # Check cycles
    # ------------------------------------------------------------------

    async def run_full_check(self) -> bool:
        """Run internet -> API -> account in order and return the online verdict."""
        async with self._lock:
            return await self._run_exclusive(self._full_cycle)

    async def manual_check(self) -> bool:
        self._state.attempts += 1
        attempts = self._state.attempts
        self._publish()
        logger.info("Manual connection check initiated (attempt %d)", attempts)

        ok = await self.run_full_check()
        policy = self.policy()
        if ok:
            self._clear_network_notices()
            self._notifier.clear(NoticeKind.BYPASS_SUGGESTION)
            self._notifier.notify(
                Notice(
                    kind=NoticeKind.INFO,
                    level="success",
                    message="Successfully connected to the exchange API.",
                )
            )
            return True

        if classify_stage_failure(self._state.stage) is None:
            logger.info("Manual connectivity check did not complete (attempt %d)", attempts)
            return False

        logger.info("Manual connectivity check failed (attempt %d)", attempts)
        self._surface_network_problem(policy)
        if attempts >= 2 and not policy.bypass_checks and not policy.offline_mode:
            self._notifier.notify(
                Notice(
                    kind=NoticeKind.BYPASS_SUGGESTION,
                    level="info",
                    message=(
                        "Multiple connection attempts failed. Consider bypassing connection "
                        "checks or enabling offline mode to proceed."
                    ),
                    recommendations=["Bypass connection checks.", "Enable offline mode."],
                )
            )
        return False

    def cancel(self) -> bool:
        """Cancel the in-flight check cycle, if any."""
        task = self._inflight
        if task is None or task.done():
            return False
        logger.info("Cancelling connectivity check cycle %d", self._state.cycle)
        task.cancel()
        return True

    async def _run_exclusive(self, body: CycleBody) -> bool:
        # Caller holds self._lock.
        self._state.cycle += 1
        cycle = self._state.cycle
        task = asyncio.create_task(body(cycle))
        self._inflight = task
        try:
            await asyncio.wait({task})
        finally:
            if not task.done():
                task.cancel()
            if self._inflight is task:
                self._inflight = None

        if task.cancelled():
            logger.info("Connectivity check cycle %d did not complete", cycle)
            return self._state.derive_online()
        return task.result()

    async def _full_cycle(self, cycle: int) -> bool:
        policy = self.policy()
        update = self._stage_writer(cycle)
        try:
            self._state.stage.reset()
            if policy.bypass_checks:
                logger.info("Connection checks are bypassed; reporting success without probing")
                self._state.stage.force_success()
                return self._settle(cycle, policy)

            self._state.is_checking = True
            self._publish(policy)

            internet = await self._checker.check_internet(policy, update)
            if internet != StageVerdict.SUCCESS:
                logger.info("Internet connectivity check failed; later stages not probed")
                return self._settle(cycle)

            api = await self._checker.check_api_access(self.policy(), update)
            if api != StageVerdict.SUCCESS:
                logger.info("Exchange API check failed; account stage not probed")
                return self._settle(cycle)

            await self._checker.check_account_access(self.policy(), update)
            return self._settle(cycle)
        except asyncio.CancelledError:
            self._abandon(cycle)
            raise
        except Exception:
            logger.exception("Connectivity check cycle %d crashed", cycle)
            self._fail_checking_stages(cycle)
            return self._settle(cycle)

    async def _api_cycle(self, cycle: int) -> bool:
        policy = self.policy()
        update = self._stage_writer(cycle)
        try:
            self._state.is_checking = True
            self._state.stage.api = StageVerdict.UNKNOWN
            self._state.stage.account = StageVerdict.UNKNOWN
            self._publish(policy)

            api = await self._checker.check_api_access(policy, update)
            if api == StageVerdict.SUCCESS:
                await self._checker.check_account_access(self.policy(), update)
            return self._settle(cycle)
        except asyncio.CancelledError:
            self._abandon(cycle)
            raise
        except Exception:
            logger.exception("API re-check cycle %d crashed", cycle)
            self._fail_checking_stages(cycle)
            return self._settle(cycle)

    def _stage_writer(self, cycle: int) -> StageUpdate:
        def _update(name: str, verdict: StageVerdict) -> None:
            if cycle != self._state.cycle:
                logger.debug("Dropping %s=%s from superseded cycle %d", name, verdict.value, cycle)
                return
            self._state.stage.set(name, verdict)
            self._publish()

        return _update

    def _settle(self, cycle: int, policy: Optional[Policy] = None) -> bool:
        if cycle != self._state.cycle:
            return self._state.is_online
        now = self._now_fn()
        self._state.is_online = self._state.derive_online()
        self._state.is_checking = False
        self._state.last_checked_at = now
        if self._state.is_online:
            self._state.last_success_at = now
        policy = policy or self.policy()
        self._report_account(policy)
        self._publish(policy)
        return self._state.is_online

    def _abandon(self, cycle: int) -> None:
        if cycle != self._state.cycle:
            return
        # Stages that never settled go back to unknown.
        for name in STAGE_FIELDS:
            if getattr(self._state.stage, name) == StageVerdict.CHECKING:
                self._state.stage.set(name, StageVerdict.UNKNOWN)
        self._state.is_checking = False
        self._state.is_online = self._state.derive_online()
        self._publish()

    def _fail_checking_stages(self, cycle: int) -> None:
        if cycle != self._state.cycle:
            return
        for name in STAGE_FIELDS:
            if getattr(self._state.stage, name) == StageVerdict.CHECKING:
                self._state.stage.set(name, StageVerdict.FAILED)

    def _supersede(self) -> None:
        self._state.cycle += 1
        task = self._inflight
        if task is not None and not task.done():
            task.cancel()

    # ------------------------------------------------------------------
    # Policy operations
    # ------------------------------------------------------------------

    def enable_offline_mode(self) -> Policy:
        policy = self._policy_store.set_flag(OFFLINE_MODE, True)
        self._clear_network_notices()
        self._notifier.notify(
            Notice(
                kind=NoticeKind.INFO,
                level="success",
                message="Offline mode enabled. The application will use simulated trading.",
            )
        )
        self._publish(policy)
        return policy

    def disable_offline_mode(self) -> Policy:
        policy = self._policy_store.set_flag(OFFLINE_MODE, False)
        self._notifier.notify(
            Notice(
                kind=NoticeKind.INFO,
                message="Offline mode disabled. The application will use live exchange data.",
            )
        )
        self._publish(policy)
        return policy

    async def toggle_bypass(self) -> bool:
        policy = self._policy_store.toggle(BYPASS_CHECKS)
        if policy.bypass_checks:
            self._supersede()
            self._state.stage.force_success()
            self._state.is_online = True
            self._state.is_checking = False
            self._state.last_checked_at = self._now_fn()
            self._notifier.clear(NoticeKind.BYPASS_SUGGESTION)
            self._notifier.notify(
                Notice(
                    kind=NoticeKind.INFO,
                    message=(
                        "Connection checks bypassed. The application will proceed without "
                        "verifying exchange connectivity."
                    ),
                )
            )
            self._publish(policy)
            return True

        self._notifier.notify(
            Notice(
                kind=NoticeKind.INFO,
                message="Connection checks re-enabled. The application will verify exchange connectivity.",
            )
        )
        return await self.run_full_check()

    async def toggle_force_direct_api(self) -> bool:
        policy = self._policy_store.toggle(FORCE_DIRECT_API)
        mode = "direct API" if policy.force_direct_api else "proxy"
        logger.info("Force direct API set to %s", policy.force_direct_api)
        self._notifier.notify(
            Notice(
                kind=NoticeKind.INFO,
                message=(
                    "Direct API mode enabled. Bypassing all proxies and connecting directly to the exchange."
                    if policy.force_direct_api
                    else "Direct API mode disabled. Using proxy configuration."
                ),
            )
        )

        async with self._lock:
            if policy.bypass_checks or self._state.stage.internet != StageVerdict.SUCCESS:
                ok = await self._run_exclusive(self._full_cycle)
            else:
                ok = await self._run_exclusive(self._api_cycle)

        if self._state.stage.api == StageVerdict.SUCCESS:
            self._notifier.notify(
                Notice(kind=NoticeKind.INFO, level="success", message=f"Successfully connected using {mode} mode.")
            )
        else:
            self._notifier.notify(
                Notice(kind=NoticeKind.INFO, level="warning", message=f"{mode.capitalize()} connection attempt failed.")
            )
        return ok

    def mark_offline(self) -> bool:
        """Record a confirmed loss of connectivity without probing.

        Ignored while checks are bypassed. Returns whether the state changed.
        """
        policy = self.policy()
        if policy.bypass_checks:
            logger.info("Offline signal ignored; connection checks are bypassed")
            return False
        self._supersede()
        self._state.stage.internet = StageVerdict.FAILED
        self._state.stage.api = StageVerdict.UNKNOWN
        self._state.stage.account = StageVerdict.UNKNOWN
        self._state.is_online = False
        self._state.is_checking = False
        self._state.last_checked_at = self._now_fn()
        self._publish(policy)
        self._surface_network_problem(
            policy,
            TransientNetworkFailure(
                "Your device is offline. Some features will be limited until connection is restored."
            ),
        )
        return True

    # ------------------------------------------------------------------
    # Notices
    # ------------------------------------------------------------------

    def _surface_network_problem(self, policy: Policy, error: Optional[ConnectivityError] = None) -> None:
        if policy.offline_mode:
            logger.debug("Network problem notice suppressed; offline mode is on")
            return
        if error is None:
            if classify_stage_failure(self._state.stage) == FailureKind.UPSTREAM_UNREACHABLE:
                error = UpstreamUnreachable()
            else:
                error = TransientNetworkFailure()
        if isinstance(error, UpstreamUnreachable):
            self._notifier.clear(NoticeKind.NETWORK_PROBLEM)
            self._notifier.notify(Notice.from_error(NoticeKind.UPSTREAM_UNREACHABLE, error))
        else:
            self._notifier.clear(NoticeKind.UPSTREAM_UNREACHABLE)
            self._notifier.notify(Notice.from_error(NoticeKind.NETWORK_PROBLEM, error))

    def _clear_network_notices(self) -> None:
        self._notifier.clear(NoticeKind.NETWORK_PROBLEM)
        self._notifier.clear(NoticeKind.UPSTREAM_UNREACHABLE)

    def _report_account(self, policy: Policy) -> None:
        verdict = self._state.stage.account
        if verdict == StageVerdict.FAILED and not policy.bypass_checks:
            self._notifier.notify(Notice.from_error(NoticeKind.AUTH_FAILURE, AuthenticationFailure()))
        elif verdict == StageVerdict.SUCCESS or not self._checker.has_credentials():
            self._notifier.clear(NoticeKind.AUTH_FAILURE)

    def _publish(self, policy: Optional[Policy] = None) -> None:
        self._publisher.publish(self._state, policy or self.policy())

    # ------------------------------------------------------------------
    # Background monitor
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._monitor_task is not None and not self._monitor_task.done():
            return
        self._monitor_task = asyncio.create_task(self._monitor_loop(), name="connectivity-monitor")

    async def stop(self) -> None:
        tasks = [t for t in (self._monitor_task, self._inflight) if t is not None and not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._monitor_task = None

    async def _monitor_loop(self) -> None:
        logger.info("Connectivity monitor started (interval %.0fs)", self._monitor_interval)
        await self._sleep_fn(self._initial_delay)
        await self._monitor_tick()

        reconnect_attempt = 0
        while True:
            if self._state.is_online:
                reconnect_attempt = 0
                delay = self._monitor_interval
            elif reconnect_attempt < self._reconnect_max_attempts:
                delay = compute_reconnect_delay(
                    reconnect_attempt,
                    base_seconds=self._reconnect_base_delay,
                    factor=self._reconnect_factor,
                    cap_seconds=self._reconnect_cap_seconds,
                )
                reconnect_attempt += 1
                logger.info("Offline; reconnect check %d in %.1fs", reconnect_attempt, delay)
            else:
                delay = self._monitor_interval
            await self._sleep_fn(delay)
            await self._monitor_tick()

    async def _monitor_tick(self) -> None:
        if self.is_check_in_flight():
            logger.debug("Skipping periodic connectivity check; a check is in flight")
            return
        was_online = self._state.is_online
        ok = await self.run_full_check()
        if was_online and not ok:
            self._surface_network_problem(self.policy())
