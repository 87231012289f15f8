"""
Storage: direct PUT to presigned URLs

Scenarios:
- Exactly the registered Content-Type is sent, without API credentials
- Signature mismatch, expiry, other HTTP errors and transport failures are
  reported with distinct reasons
"""
from __future__ import annotations

import httpx
import pytest

from coursework.learning.adapters.ports import UploadError
from coursework.storage.upload_client import StorageUploadClient

pytestmark = pytest.mark.anyio("asyncio")

URL = "https://storage.example/sub/essay.pdf?X-Amz-Signature=abc"


def _client(handler) -> StorageUploadClient:
    return StorageUploadClient(httpx.AsyncClient(transport=httpx.MockTransport(handler)))


async def test_success_sends_content_type_and_no_authorization():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, headers={"ETag": '"abc123"'})

    receipt = await _client(handler).upload(URL, b"%PDF-1.7", "application/pdf")
    assert receipt.status_code == 200
    assert receipt.etag == '"abc123"'
    req = seen[0]
    assert req.method == "PUT"
    assert req.headers["content-type"] == "application/pdf"
    assert "authorization" not in req.headers
    assert req.content == b"%PDF-1.7"


@pytest.mark.parametrize(
    "status,body,reason",
    [
        (403, "<Error><Code>SignatureDoesNotMatch</Code></Error>", "content_type_mismatch"),
        (403, "<Error><Code>AccessDenied</Code><Message>Request has expired</Message></Error>", "url_expired"),
        (500, "internal", "http_status"),
        (403, "AccessDenied", "http_status"),
    ],
)
async def test_rejections_are_classified(status, body, reason):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, text=body)

    with pytest.raises(UploadError) as exc:
        await _client(handler).upload(URL, b"x", "application/pdf")
    assert exc.value.reason == reason
    assert exc.value.status_code == status


async def test_transport_failure_is_reported_as_transport():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(UploadError) as exc:
        await _client(handler).upload(URL, b"x", "application/pdf")
    assert exc.value.reason == "transport"
    assert exc.value.status_code is None


async def test_presigned_signature_is_not_logged(caplog: pytest.LogCaptureFixture):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    caplog.set_level("INFO")
    with pytest.raises(UploadError):
        await _client(handler).upload(URL, b"x", "application/pdf")
    assert "X-Amz-Signature" not in caplog.text
    assert "storage.upload.failed" in caplog.text
