"""
Centralized storage configuration for submission uploads.

Intent:
    Provide a single source of truth for upload size limits and storage
    timeouts, with environment-variable overrides clamped to the contract so
    local validation and the backend never disagree.

Behavior:
    - get_submission_max_upload_bytes(): SUBMISSION_MAX_UPLOAD_BYTES, default
      and ceiling 50 MiB.
    - get_upload_timeout_seconds(): STORAGE_UPLOAD_TIMEOUT_SECONDS, 5..300,
      default 60.
    - get_upload_url_ttl_seconds(): STORAGE_UPLOAD_URL_TTL_SECONDS, 60..3600,
      default 900.

Permissions:
    Pure configuration; no external calls or privileges required.
"""
from __future__ import annotations

import os

SUBMISSION_MAX_UPLOAD_BYTES_CONTRACT = 50 * 1024 * 1024


def _parse_int_env(name: str, default: int, *, contract_max: int | None = None) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if value <= 0:
        return default
    if isinstance(contract_max, int) and contract_max > 0:
        value = min(value, contract_max)
    return value


def get_submission_max_upload_bytes() -> int:
    """Maximum upload size for learner submissions (default/clamped 50 MiB)."""
    contract_max = SUBMISSION_MAX_UPLOAD_BYTES_CONTRACT
    return _parse_int_env("SUBMISSION_MAX_UPLOAD_BYTES", contract_max, contract_max=contract_max)


def get_upload_timeout_seconds() -> float:
    raw = (os.getenv("STORAGE_UPLOAD_TIMEOUT_SECONDS") or "").strip()
    try:
        value = float(raw)
    except ValueError:
        value = 60.0
    return max(5.0, min(value, 300.0))


def get_upload_url_ttl_seconds() -> int:
    """Lifetime of presigned upload targets issued by the development backend."""
    value = _parse_int_env("STORAGE_UPLOAD_URL_TTL_SECONDS", 900)
    return max(60, min(value, 3600))


__all__ = [
    "SUBMISSION_MAX_UPLOAD_BYTES_CONTRACT",
    "get_submission_max_upload_bytes",
    "get_upload_timeout_seconds",
    "get_upload_url_ttl_seconds",
]
