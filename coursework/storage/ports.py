"""
Storage ports used by the submission flow.

Keep these small and framework-agnostic so tests can supply simple fakes.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True)
class UploadReceipt:
    status_code: int
    etag: Optional[str] = None


class BinaryUploadProtocol(Protocol):
    """Minimal interface to PUT bytes to a presigned object-storage URL.

    Intent:
        Allow the submission use cases to fill a registered record's payload
        without depending on a specific HTTP client or cloud SDK.

    Errors:
        Implementations raise `UploadError` with a diagnosable reason.
    """

    async def upload(self, upload_url: str, body: bytes, content_type: str) -> UploadReceipt: ...


__all__ = ["UploadReceipt", "BinaryUploadProtocol"]
