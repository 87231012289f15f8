"""
Client configuration parsing and validation for the learning lifecycle.

Intent:
    Provide a single place to read environment variables that control the
    backend base URL, credentials, timeouts, refresh backoff and quiz timer
    cadence.

Why:
    Centralising configuration reduces drift across modules and makes
    validation and defaults explicit. Tests exercise config behaviour without
    building an HTTP client.
"""
from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Optional
from urllib.parse import urlparse

from coursework.learning.retry import DEFAULT_REFRESH_DELAYS


@dataclass(frozen=True)
class LearningClientConfig:
    api_base_url: str
    api_token: Optional[str]
    http_timeout_seconds: float
    refresh_delays: tuple[float, ...]
    timer_tick_seconds: float
    active_store_path: Optional[str]


def _float_env(name: str, default: float, *, low: float, high: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got: {raw!r}")
    if value < low or value > high:
        raise ValueError(f"{name} out of range ({low:g}..{high:g}), got: {value:g}")
    return value


def _delays_env(name: str, default: tuple[float, ...]) -> tuple[float, ...]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    parts = [p.strip() for p in raw.split(",") if p.strip()]
    if len(parts) > 5:
        raise ValueError(f"{name} allows at most 5 delays, got: {len(parts)}")
    delays: list[float] = []
    for part in parts:
        try:
            value = float(part)
        except ValueError:
            raise ValueError(f"{name} must be a comma separated list of numbers, got: {raw!r}")
        if value < 0 or value > 30:
            raise ValueError(f"{name} delays must be within 0..30 seconds, got: {value:g}")
        delays.append(value)
    return tuple(delays)


def _validate_base_url(url: str) -> str:
    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError("LMS_API_BASE_URL must start with http:// or https:// and include a host")
    return url.rstrip("/")


def load_client_config() -> LearningClientConfig:
    """
    Parse and validate client configuration from environment variables.

    Behavior:
        - `LMS_API_BASE_URL` is required shape-wise; defaults to localhost.
        - `LMS_HTTP_TIMEOUT_SECONDS` within 1..120 (default 15).
        - `LMS_REFRESH_DELAYS` comma list, at most 5 entries (default 1.0,1.5).
        - `QUIZ_TIMER_TICK_SECONDS` within 0.1..10 (default 1.0).
    """
    base_url = _validate_base_url((os.getenv("LMS_API_BASE_URL") or "http://localhost:8000").strip())
    token = (os.getenv("LMS_API_TOKEN") or "").strip() or None
    store_path = (os.getenv("LMS_ACTIVE_STORE_PATH") or "").strip() or None
    return LearningClientConfig(
        api_base_url=base_url,
        api_token=token,
        http_timeout_seconds=_float_env("LMS_HTTP_TIMEOUT_SECONDS", 15.0, low=1.0, high=120.0),
        refresh_delays=_delays_env("LMS_REFRESH_DELAYS", DEFAULT_REFRESH_DELAYS),
        timer_tick_seconds=_float_env("QUIZ_TIMER_TICK_SECONDS", 1.0, low=0.1, high=10.0),
        active_store_path=store_path,
    )


__all__ = ["LearningClientConfig", "load_client_config"]
