"""
Helpers for submission file names and log-safe URLs.

Why:
    Keep generated file names consistent and free of path components or
    exotic characters, and never leak presigned URL signatures into logs.

Conventions:
    - Generated submissions: {safe_title}_Submission_{epoch_ms}.{ext}
    - Sanitization keeps [A-Za-z0-9._-]; extensions are lowercased.
"""
from __future__ import annotations

import os
import re
import unicodedata
from urllib.parse import urlsplit, urlunsplit

_SEGMENT_RE = re.compile(r"[^A-Za-z0-9._-]+")
_TITLE_RE = re.compile(r"[^A-Za-z0-9]")
MAX_FILENAME_LENGTH = 255


def _ascii(value: str) -> str:
    normalized = unicodedata.normalize("NFKD", value or "")
    return normalized.encode("ascii", "ignore").decode("ascii")


def file_extension(filename: str | None) -> str:
    """Return the lowercased extension without the dot ('' when absent)."""
    if not filename:
        return ""
    _, ext = os.path.splitext(os.path.basename(filename.replace("\\", "/")))
    ext = ext.lower().lstrip(".")
    return "".join(ch for ch in ext if ch.isalnum())


def sanitize_filename(filename: str, *, fallback: str = "submission") -> str:
    """Strip directories and unsafe characters from a user supplied file name."""
    base = os.path.basename((filename or "").replace("\\", "/"))
    stem, _ = os.path.splitext(base)
    ext = file_extension(base)
    safe_stem = _SEGMENT_RE.sub("-", _ascii(stem)).strip("-_.") or fallback
    suffix = f".{ext}" if ext else ""
    return safe_stem[: MAX_FILENAME_LENGTH - len(suffix)] + suffix


def make_submission_filename(*, title: str, ext: str, epoch_ms: int) -> str:
    """Build a file name for work rendered on the client (e.g. writing editor).

    Returns: {safe_title}_Submission_{epoch_ms}.{ext}
    """
    safe_title = _TITLE_RE.sub("_", _ascii(title))[:50] or "Assignment"
    ext_norm = file_extension(f"x.{ext.lstrip('.')}") if ext else ""
    suffix = f".{ext_norm}" if ext_norm else ""
    return f"{safe_title}_Submission_{epoch_ms}{suffix}"


def redact_url(url: str) -> str:
    """Drop query and fragment (presigned signatures) for logging."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return "<invalid-url>"
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


__all__ = [
    "MAX_FILENAME_LENGTH",
    "file_extension",
    "sanitize_filename",
    "make_submission_filename",
    "redact_url",
]
