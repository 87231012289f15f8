"""
Use cases for file submissions: two-phase submit, listing, score refresh and
download.

Registering a submission (phase 1) and uploading its bytes (phase 2) are two
separate operations; a record is only treated as submitted once its stored
reference exists.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, Sequence

import httpx

from coursework.learning.adapters.ports import (
    LearningBackendProtocol,
    NetworkError,
    UploadError,
    ValidationError,
)
from coursework.learning.domain import Assignment, RegisteredSubmission, Submission
from coursework.learning.retry import DEFAULT_REFRESH_DELAYS, retry_until
from coursework.learning.status import StatusView
from coursework.storage.config import get_submission_max_upload_bytes
from coursework.storage.keys import redact_url
from coursework.storage.ports import BinaryUploadProtocol, UploadReceipt
from coursework.storage.upload_policy import UploadPolicy, policy_for_assignment, validate_upload

LOG = logging.getLogger(__name__)

OnRegistered = Callable[[RegisteredSubmission], None]

PAYLOAD_MISSING = "payload_missing"
UPLOADED = "uploaded"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class FileSubmissionRequest:
    assignment: Assignment
    learner_id: str
    file_name: str
    body: bytes
    content_type: Optional[str] = None


@dataclass(frozen=True)
class PendingUpload:
    """Outcome of the two-phase submission.

    `state == "payload_missing"` means phase 1 succeeded but the bytes never
    arrived; the record exists server-side and counts as no submission until
    `SubmitFileUseCase.resume` completes phase 2.
    """

    request: FileSubmissionRequest
    registration: RegisteredSubmission
    state: str
    error: Optional[UploadError] = None
    receipt: Optional[UploadReceipt] = None

    @property
    def is_complete(self) -> bool:
        return self.state == UPLOADED


class SubmissionRegistrar:
    def __init__(
        self,
        backend: LearningBackendProtocol,
        *,
        policy_for: Callable[[Assignment], UploadPolicy] = policy_for_assignment,
    ) -> None:
        self._backend = backend
        self._policy_for = policy_for

    def validate(self, request: FileSubmissionRequest) -> str:
        """Run local checks and return the content type to register."""
        if not request.learner_id:
            raise ValidationError("missing_field", "learner_id")
        return validate_upload(
            self._policy_for(request.assignment),
            file_name=request.file_name,
            size_bytes=len(request.body),
            content_type=request.content_type,
        )

    async def register(self, request: FileSubmissionRequest) -> RegisteredSubmission:
        """Record the intent to submit and obtain the presigned upload target.

        Intent:
            Phase 1 of the submission commit. Creates a durable, payload-less
            record; it must complete before any byte is uploaded.

        Behavior:
            - Validation failures raise ValidationError without touching the
              network.
            - Backend failures propagate as AuthError/ValidationError/NetworkError.
        """
        content_type = self.validate(request)
        registration = await self._backend.register_submission(
            request.assignment.id,
            request.learner_id,
            file_name=request.file_name,
            content_type=content_type,
        )
        LOG.info(
            "learning.submission.registered assignment=%s submission=%s content_type=%s",
            request.assignment.id,
            registration.submission_id,
            content_type,
        )
        return registration


class SubmitFileUseCase:
    def __init__(
        self,
        backend: LearningBackendProtocol,
        uploader: BinaryUploadProtocol,
        *,
        registrar: Optional[SubmissionRegistrar] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._registrar = registrar or SubmissionRegistrar(backend)
        self._uploader = uploader
        self._clock = clock

    async def execute(
        self,
        request: FileSubmissionRequest,
        *,
        status: Optional[StatusView] = None,
        on_registered: Optional[OnRegistered] = None,
    ) -> PendingUpload:
        """Register a submission and upload its payload, strictly in that order.

        Parameters:
            request: assignment, learner and file payload.
            status: optional freshly derived status; when given and the window
                is closed the call fails locally with `submission_closed`.
            on_registered: called with the phase-1 result before any byte is
                sent, so the caller can persist a resumable pointer.

        Behavior:
            - Phase 2 starts only after phase 1's response arrived.
            - An UploadError does not raise: the returned PendingUpload carries
              it with state `payload_missing` so the caller can offer a retry.
            - Cancellation during phase 2 propagates; the registration already
              went to `on_registered` and stays resumable.
        """
        if status is not None and not status.can_submit:
            raise ValidationError("submission_closed", status.status.value)
        registration = await self._registrar.register(request)
        if on_registered is not None:
            on_registered(registration)
        return await self._upload(request, registration)

    async def resume(self, pending: PendingUpload, *, on_registered: Optional[OnRegistered] = None) -> PendingUpload:
        """Retry phase 2, re-registering when the upload URL has expired."""
        if pending.is_complete:
            return pending
        registration = pending.registration
        expired = registration.is_expired(self._clock()) or (
            pending.error is not None and pending.error.reason == "url_expired"
        )
        if expired:
            LOG.info("learning.submission.reregister submission=%s", registration.submission_id)
            registration = await self._registrar.register(pending.request)
            if on_registered is not None:
                on_registered(registration)
        return await self._upload(pending.request, registration)

    async def _upload(self, request: FileSubmissionRequest, registration: RegisteredSubmission) -> PendingUpload:
        try:
            receipt = await self._uploader.upload(registration.upload_url, request.body, registration.content_type)
        except asyncio.CancelledError:
            LOG.info("learning.submission.upload_cancelled submission=%s", registration.submission_id)
            raise
        except UploadError as exc:
            LOG.warning(
                "learning.submission.payload_missing submission=%s reason=%s status=%s",
                registration.submission_id,
                exc.reason,
                exc.status_code,
            )
            return PendingUpload(request=request, registration=registration, state=PAYLOAD_MISSING, error=exc)
        return PendingUpload(request=request, registration=registration, state=UPLOADED, receipt=receipt)


class ListSubmissionsUseCase:
    def __init__(self, backend: LearningBackendProtocol) -> None:
        self._backend = backend

    async def execute(self, assignment_id: str, learner_id: Optional[str] = None) -> list[Submission]:
        """Return submissions for an assignment, newest first.

        Behavior:
            - Filters by learner when given (the endpoint may return the whole
              class for instructors).
            - Always hits the server; there is no client-side cache.
        """
        items = await self._backend.list_submissions(assignment_id)
        if learner_id is not None:
            items = [s for s in items if s.learner_id == learner_id]
        return sorted(items, key=lambda s: s.created_at, reverse=True)


@dataclass(frozen=True)
class RefreshResult:
    submissions: list[Submission]
    stale: bool
    attempts: int


class RefreshAfterScoreUseCase:
    def __init__(
        self,
        backend: LearningBackendProtocol,
        *,
        delays: Sequence[float] = DEFAULT_REFRESH_DELAYS,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        self._list = ListSubmissionsUseCase(backend)
        self._delays = tuple(delays)
        self._sleep = sleep

    async def execute(self, scored: Submission) -> RefreshResult:
        """Re-read the list until the freshly scored submission shows its score.

        A stale result (`stale=True`) is a soft condition: the UI should offer
        a manual reload rather than fail.
        """

        async def _fetch() -> list[Submission]:
            return await self._list.execute(scored.assignment_id, scored.learner_id)

        def _visible(items: list[Submission]) -> bool:
            return any(s.id == scored.id and s.score is not None for s in items)

        kwargs = {"predicate": _visible, "delays": self._delays}
        if self._sleep is not None:
            kwargs["sleep"] = self._sleep
        outcome = await retry_until(_fetch, **kwargs)
        return RefreshResult(submissions=outcome.value, stale=not outcome.satisfied, attempts=outcome.attempts)


class DownloadSubmissionUseCase:
    def __init__(self, backend: LearningBackendProtocol, client: Optional[httpx.AsyncClient] = None) -> None:
        self._backend = backend
        self._client = client

    async def execute(self, submission_id: str) -> str:
        """Resolve the short-lived presigned download URL for a submission."""
        return await self._backend.get_download_url(submission_id)

    async def fetch(self, submission_id: str, *, max_bytes: Optional[int] = None) -> bytes:
        """Download the stored payload with a hard size cap."""
        url = await self.execute(submission_id)
        limit = max_bytes if isinstance(max_bytes, int) and max_bytes > 0 else get_submission_max_upload_bytes()
        client = self._client or httpx.AsyncClient(follow_redirects=False)
        chunks: list[bytes] = []
        total = 0
        try:
            async with client.stream("GET", url) as resp:
                if resp.status_code >= 400:
                    LOG.warning("learning.download.failed status=%s url=%s", resp.status_code, redact_url(url))
                    raise NetworkError("download: HTTP error", reached_server=True, status_code=resp.status_code)
                async for chunk in resp.aiter_bytes():
                    total += len(chunk)
                    if total > limit:
                        raise ValidationError("size_exceeded", f"download > {limit}")
                    chunks.append(chunk)
        except httpx.TransportError as exc:
            LOG.warning("learning.download.failed reason=transport url=%s", redact_url(url))
            raise NetworkError("download: transport error", reached_server=None) from exc
        finally:
            if self._client is None:
                await client.aclose()
        return b"".join(chunks)


__all__ = [
    "PAYLOAD_MISSING",
    "UPLOADED",
    "FileSubmissionRequest",
    "PendingUpload",
    "SubmissionRegistrar",
    "SubmitFileUseCase",
    "ListSubmissionsUseCase",
    "RefreshResult",
    "RefreshAfterScoreUseCase",
    "DownloadSubmissionUseCase",
]
