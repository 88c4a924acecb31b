"""Tests for stage checks and probe racing."""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Tuple

from app.core.services.connectivity.checker import ConnectivityChecker
from app.core.services.connectivity.error_classifier import FailureKind
from app.core.services.connectivity.probe import Endpoint, ProbeResult
from app.core.services.connectivity.types import Policy, StageVerdict
from app.integrations.exchange.credentials import ExchangeCredentials, StaticCredentialsProvider
from app.integrations.exchange.errors import AuthenticationRejected, UpstreamTimeout
from app.integrations.exchange.types import AccountBalance, AccountInfo

INTERNET = [Endpoint(name="a", url="https://a.test/"), Endpoint(name="b", url="https://b.test/")]
API = [Endpoint(name="ping", url="https://api.test/ping")]
PROXY = [Endpoint(name="proxy", url="https://proxy.test/ping")]
REAL_ACCOUNT = AccountInfo(balances=[AccountBalance(asset="BTC", free="1")])


class _StubProbe:
    """Answers per URL with (ok, delay); unknown URLs fail at once."""

    def __init__(self, plan: Optional[Dict[str, Tuple[bool, float]]] = None) -> None:
        self.plan = plan or {}
        self.calls: List[str] = []
        self.cancelled: List[str] = []

    async def probe(self, endpoint: Endpoint, timeout: Optional[float] = None) -> ProbeResult:
        self.calls.append(endpoint.url)
        ok, delay = self.plan.get(endpoint.url, (False, 0.0))
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            self.cancelled.append(endpoint.url)
            raise
        return ProbeResult(endpoint=endpoint, ok=ok, kind=None if ok else FailureKind.TRANSIENT)


class _StubAccountClient:
    def __init__(self, results: List[object]) -> None:
        self.results = list(results)
        self.calls = 0

    async def get_account_info(self, credentials):
        self.calls += 1
        result = self.results.pop(0) if self.results else AccountInfo(is_default=True)
        if isinstance(result, Exception):
            raise result
        return result


class _Recorder:
    def __init__(self) -> None:
        self.writes: List[Tuple[str, StageVerdict]] = []

    def __call__(self, name: str, verdict: StageVerdict) -> None:
        self.writes.append((name, verdict))


def _checker(probe, *, account=None, credentials=True, sleeps=None) -> ConnectivityChecker:
    async def _sleep(delay: float) -> None:
        if sleeps is not None:
            sleeps.append(delay)

    creds = ExchangeCredentials(api_key="k", api_secret="s") if credentials else None
    return ConnectivityChecker(
        probe=probe,
        internet_endpoints=INTERNET,
        api_endpoints=API,
        proxy_endpoints=PROXY,
        credentials=StaticCredentialsProvider(creds),
        account_client=account or _StubAccountClient([REAL_ACCOUNT]),
        internet_timeout=0.5,
        api_timeout=0.5,
        proxy_timeout=0.5,
        account_attempts=2,
        account_retry_delay=1.0,
        sleep_fn=_sleep,
    )


def test_race_first_success_wins_and_cancels_slower_probe():
    probe = _StubProbe({"https://a.test/": (True, 0.0), "https://b.test/": (True, 5.0)})
    checker = _checker(probe)

    outcome = asyncio.run(checker.race(INTERNET, timeout=1.0))

    assert outcome.ok is True
    assert outcome.winner.endpoint.url == "https://a.test/"
    assert probe.cancelled == ["https://b.test/"]


def test_race_any_success_beats_failures():
    probe = _StubProbe({"https://a.test/": (False, 0.0), "https://b.test/": (True, 0.02)})
    outcome = asyncio.run(_checker(probe).race(INTERNET, timeout=1.0))

    assert outcome.ok is True
    assert len(outcome.failures) == 1


def test_race_times_out_when_all_hang():
    probe = _StubProbe({"https://a.test/": (True, 5.0), "https://b.test/": (True, 5.0)})

    async def run():
        loop = asyncio.get_running_loop()
        t0 = loop.time()
        outcome = await _checker(probe).race(INTERNET, timeout=0.05)
        return outcome, loop.time() - t0

    outcome, elapsed = asyncio.run(run())

    assert outcome.ok is False
    assert outcome.timed_out is True
    assert elapsed < 1.0
    assert sorted(probe.cancelled) == ["https://a.test/", "https://b.test/"]


def test_check_internet_writes_checking_then_verdict():
    probe = _StubProbe({"https://b.test/": (True, 0.0)})
    update = _Recorder()

    verdict = asyncio.run(_checker(probe).check_internet(Policy(), update))

    assert verdict == StageVerdict.SUCCESS
    assert update.writes == [("internet", StageVerdict.CHECKING), ("internet", StageVerdict.SUCCESS)]


def test_check_internet_all_fail():
    checker = _checker(_StubProbe())
    update = _Recorder()

    verdict = asyncio.run(checker.check_internet(Policy(), update))

    assert verdict == StageVerdict.FAILED
    assert update.writes[-1] == ("internet", StageVerdict.FAILED)


def test_bypass_short_circuits_every_stage_without_probing():
    probe = _StubProbe()
    account = _StubAccountClient([])
    checker = _checker(probe, account=account)
    update = _Recorder()
    policy = Policy(bypass_checks=True)

    async def run():
        return (
            await checker.check_internet(policy, update),
            await checker.check_api_access(policy, update),
            await checker.check_account_access(policy, update),
        )

    assert asyncio.run(run()) == (StageVerdict.SUCCESS,) * 3
    assert probe.calls == []
    assert account.calls == 0
    assert update.writes == [
        ("internet", StageVerdict.SUCCESS),
        ("api", StageVerdict.SUCCESS),
        ("account", StageVerdict.SUCCESS),
    ]


def test_api_falls_back_to_proxy_when_direct_fails():
    probe = _StubProbe({"https://proxy.test/ping": (True, 0.0)})
    checker = _checker(probe)

    verdict = asyncio.run(checker.check_api_access(Policy(), _Recorder()))

    assert verdict == StageVerdict.SUCCESS
    assert checker.last_api_transport == "proxy"
    assert probe.calls == ["https://api.test/ping", "https://proxy.test/ping"]


def test_force_direct_api_never_touches_proxy():
    probe = _StubProbe({"https://proxy.test/ping": (True, 0.0)})
    checker = _checker(probe)

    verdict = asyncio.run(checker.check_api_access(Policy(force_direct_api=True), _Recorder()))

    assert verdict == StageVerdict.FAILED
    assert "https://proxy.test/ping" not in probe.calls
    assert checker.last_api_transport is None


def test_account_without_credentials_is_unknown_and_not_called():
    account = _StubAccountClient([])
    checker = _checker(_StubProbe(), account=account, credentials=False)
    update = _Recorder()

    verdict = asyncio.run(checker.check_account_access(Policy(), update))

    assert verdict == StageVerdict.UNKNOWN
    assert update.writes[-1] == ("account", StageVerdict.UNKNOWN)
    assert account.calls == 0


def test_account_default_payload_then_real_data_succeeds_on_retry():
    sleeps: List[float] = []
    account = _StubAccountClient([AccountInfo(is_default=True), REAL_ACCOUNT])
    checker = _checker(_StubProbe(), account=account, sleeps=sleeps)

    verdict = asyncio.run(checker.check_account_access(Policy(), _Recorder()))

    assert verdict == StageVerdict.SUCCESS
    assert account.calls == 2
    assert sleeps == [1.0]


def test_account_fails_after_two_attempts():
    account = _StubAccountClient([UpstreamTimeout("slow"), AuthenticationRejected("bad key", status_code=401)])
    checker = _checker(_StubProbe(), account=account, sleeps=[])

    update = _Recorder()

    verdict = asyncio.run(checker.check_account_access(Policy(), update))

    assert verdict == StageVerdict.FAILED
    assert account.calls == 2
    assert update.writes == [("account", StageVerdict.CHECKING), ("account", StageVerdict.FAILED)]


def test_limited_access_payload_counts_as_failure():
    account = _StubAccountClient([AccountInfo(is_limited_access=True), AccountInfo(is_limited_access=True)])
    checker = _checker(_StubProbe(), account=account, sleeps=[])

    verdict = asyncio.run(checker.check_account_access(Policy(), _Recorder()))

    assert verdict == StageVerdict.FAILED
    assert account.calls == 2
