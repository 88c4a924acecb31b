"""Builds the connectivity stack from application settings."""

from __future__ import annotations

from typing import List, Optional, Sequence
from urllib.parse import urlparse

import httpx

from app.core.config import Settings, settings as default_settings
from app.core.services.connectivity.checker import ConnectivityChecker
from app.core.services.connectivity.manager import ConnectionManager
from app.core.services.connectivity.notifier import LogNotifier, Notifier
from app.core.services.connectivity.policy_store import PolicyStore
from app.core.services.connectivity.probe import Endpoint, Probe
from app.core.services.connectivity.publisher import StatusPublisher
from app.integrations.exchange.client import ExchangeClient
from app.integrations.exchange.credentials import CredentialsProvider, EnvCredentialsProvider


def _endpoints(urls: Sequence[str]) -> List[Endpoint]:
    return [Endpoint(name=urlparse(url).netloc or url, url=url) for url in urls if url]


def internet_endpoints(cfg: Settings) -> List[Endpoint]:
    return _endpoints(cfg.CONNECTIVITY_INTERNET_ENDPOINTS)


def api_endpoints(cfg: Settings) -> List[Endpoint]:
    base = cfg.EXCHANGE_API_BASE_URL.rstrip("/")
    return _endpoints([f"{base}{cfg.EXCHANGE_PING_PATH}", f"{base}{cfg.EXCHANGE_TIME_PATH}"])


def proxy_endpoints(cfg: Settings) -> List[Endpoint]:
    return _endpoints(cfg.EXCHANGE_PROXY_URLS)


def build_checker(
    cfg: Settings = default_settings,
    *,
    credentials: Optional[CredentialsProvider] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ConnectivityChecker:
    return ConnectivityChecker(
        probe=Probe(default_timeout=cfg.CONNECTIVITY_INTERNET_TIMEOUT, transport=transport),
        internet_endpoints=internet_endpoints(cfg),
        api_endpoints=api_endpoints(cfg),
        proxy_endpoints=proxy_endpoints(cfg),
        credentials=credentials or EnvCredentialsProvider(),
        account_client=ExchangeClient(
            base_url=cfg.EXCHANGE_API_BASE_URL,
            timeout=cfg.CONNECTIVITY_API_TIMEOUT,
            transport=transport,
        ),
        internet_timeout=cfg.CONNECTIVITY_INTERNET_TIMEOUT,
        api_timeout=cfg.CONNECTIVITY_API_TIMEOUT,
        proxy_timeout=cfg.CONNECTIVITY_PROXY_TIMEOUT,
        account_attempts=cfg.ACCOUNT_CHECK_ATTEMPTS,
        account_retry_delay=cfg.ACCOUNT_RETRY_DELAY,
    )


def build_manager(
    cfg: Settings = default_settings,
    *,
    policy_store: Optional[PolicyStore] = None,
    checker: Optional[ConnectivityChecker] = None,
    publisher: Optional[StatusPublisher] = None,
    notifier: Optional[Notifier] = None,
) -> ConnectionManager:
    return ConnectionManager(
        policy_store=policy_store or PolicyStore(cfg.POLICY_STORE_PATH),
        checker=checker or build_checker(cfg),
        publisher=publisher or StatusPublisher(),
        notifier=notifier or LogNotifier(),
        monitor_interval=cfg.CONNECTIVITY_MONITOR_INTERVAL,
        initial_delay=cfg.CONNECTIVITY_INITIAL_DELAY,
        reconnect_base_delay=cfg.RECONNECT_BASE_DELAY,
        reconnect_factor=cfg.RECONNECT_BACKOFF_FACTOR,
        reconnect_cap_seconds=cfg.RECONNECT_CAP_SECONDS,
        reconnect_max_attempts=cfg.RECONNECT_MAX_ATTEMPTS,
    )
