"""
Direct-to-storage upload client (phase 2 of the submission commit).

Intent:
    PUT the payload to the presigned URL obtained at registration. The request
    carries no API credentials and exactly the Content-Type used to sign the
    URL; a mismatch is reported separately from transport failures.

Behavior:
    - 2xx → UploadReceipt.
    - 400/403 mentioning a signature/content-type mismatch → content_type_mismatch.
    - 403 mentioning expiry → url_expired.
    - Any other non-2xx → http_status (status code attached).
    - httpx transport exceptions → transport.
    - Cancellation propagates after logging; the registered record simply
      stays payload-less.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

import httpx

from coursework.learning.adapters.ports import UploadError
from coursework.storage.config import get_upload_timeout_seconds
from coursework.storage.keys import redact_url
from coursework.storage.ports import UploadReceipt

LOG = logging.getLogger(__name__)

_MISMATCH_MARKERS = ("signaturedoesnotmatch", "signature does not match", "content-type", "content type")
_EXPIRED_MARKERS = ("expired", "request has expired")


def _classify_rejection(status_code: int, body: str) -> str:
    lowered = body.lower()
    if status_code in (400, 403) and any(m in lowered for m in _EXPIRED_MARKERS):
        return "url_expired"
    if status_code in (400, 403) and any(m in lowered for m in _MISMATCH_MARKERS):
        return "content_type_mismatch"
    return "http_status"


class StorageUploadClient:
    """Upload bytes to presigned URLs with httpx."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, *, timeout: Optional[float] = None) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout if timeout is not None else get_upload_timeout_seconds(),
            follow_redirects=False,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "StorageUploadClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def upload(self, upload_url: str, body: bytes, content_type: str) -> UploadReceipt:
        target = redact_url(upload_url)
        try:
            resp = await self._client.put(upload_url, content=body, headers={"Content-Type": content_type})
        except asyncio.CancelledError:
            LOG.info("storage.upload.cancelled url=%s", target)
            raise
        except httpx.TransportError as exc:
            LOG.warning("storage.upload.failed reason=transport url=%s error=%s", target, exc.__class__.__name__)
            raise UploadError("transport") from exc
        code = resp.status_code
        if 200 <= code < 300:
            LOG.info("storage.upload.ok url=%s status=%s size=%s", target, code, len(body))
            return UploadReceipt(status_code=code, etag=resp.headers.get("etag"))
        reason = _classify_rejection(code, resp.text or "")
        LOG.warning("storage.upload.failed reason=%s status=%s url=%s", reason, code, target)
        raise UploadError(reason, status_code=code)


__all__ = ["StorageUploadClient"]
