from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Tuple

from dotenv import load_dotenv

load_dotenv()  # Load .env file if present


def _get(key: str, default: str = "") -> str:
    return os.getenv(key, default)


def _get_bool(key: str, default: bool = False) -> bool:
    raw = _get(key, "1" if default else "0").strip().lower()
    return raw in {"1", "true", "yes", "on"}


def _get_list(key: str, default: str = "") -> Tuple[str, ...]:
    raw = _get(key, default)
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    APP_NAME: str = _get("APP_NAME", "Tradebot Connectivity")
    APP_ENV: str = _get("APP_ENV", "dev")
    APP_HOST: str = _get("APP_HOST", "127.0.0.1")
    APP_PORT: int = int(_get("APP_PORT", "8001"))

    # Internet stage
    CONNECTIVITY_INTERNET_ENDPOINTS: Tuple[str, ...] = _get_list(
        "CONNECTIVITY_INTERNET_ENDPOINTS",
        "https://www.google.com/generate_204,"
        "https://www.cloudflare.com/cdn-cgi/trace,"
        "https://httpbin.org/status/200",
    )
    CONNECTIVITY_INTERNET_TIMEOUT: float = float(_get("CONNECTIVITY_INTERNET_TIMEOUT", "5"))

    # Exchange API stage
    EXCHANGE_API_BASE_URL: str = _get("EXCHANGE_API_BASE_URL", "https://api.binance.com")
    EXCHANGE_PING_PATH: str = _get("EXCHANGE_PING_PATH", "/api/v3/ping")
    EXCHANGE_TIME_PATH: str = _get("EXCHANGE_TIME_PATH", "/api/v3/time")
    EXCHANGE_ACCOUNT_PATH: str = _get("EXCHANGE_ACCOUNT_PATH", "/api/v3/account")
    EXCHANGE_PROXY_URLS: Tuple[str, ...] = _get_list(
        "EXCHANGE_PROXY_URLS", "https://binance-proxy.vercel.app/api/ping"
    )
    CONNECTIVITY_API_TIMEOUT: float = float(_get("CONNECTIVITY_API_TIMEOUT", "8"))
    CONNECTIVITY_PROXY_TIMEOUT: float = float(_get("CONNECTIVITY_PROXY_TIMEOUT", "10"))

    # Account stage
    EXCHANGE_API_KEY: str = _get("EXCHANGE_API_KEY", "")
    EXCHANGE_API_SECRET: str = _get("EXCHANGE_API_SECRET", "")
    EXCHANGE_RECV_WINDOW: int = int(_get("EXCHANGE_RECV_WINDOW", "5000"))
    ACCOUNT_CHECK_ATTEMPTS: int = int(_get("ACCOUNT_CHECK_ATTEMPTS", "2"))
    ACCOUNT_RETRY_DELAY: float = float(_get("ACCOUNT_RETRY_DELAY", "1.0"))

    # Scheduling
    CONNECTIVITY_SETTLE_DELAY: float = float(_get("CONNECTIVITY_SETTLE_DELAY", "1.0"))
    CONNECTIVITY_INITIAL_DELAY: float = float(_get("CONNECTIVITY_INITIAL_DELAY", "1.0"))
    CONNECTIVITY_MONITOR_INTERVAL: float = float(_get("CONNECTIVITY_MONITOR_INTERVAL", "30"))
    CONNECTIVITY_MONITOR_ENABLED: bool = _get_bool("CONNECTIVITY_MONITOR_ENABLED", True)
    RECONNECT_BASE_DELAY: float = float(_get("RECONNECT_BASE_DELAY", "5"))
    RECONNECT_BACKOFF_FACTOR: float = float(_get("RECONNECT_BACKOFF_FACTOR", "1.5"))
    RECONNECT_CAP_SECONDS: float = float(_get("RECONNECT_CAP_SECONDS", "30"))
    RECONNECT_MAX_ATTEMPTS: int = int(_get("RECONNECT_MAX_ATTEMPTS", "5"))

    # Policy persistence
    POLICY_STORE_PATH: str = _get("POLICY_STORE_PATH", "data/connectivity_policy.json")


settings = Settings()
