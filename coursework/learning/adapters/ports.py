"""
Ports for the learning backend: protocols and the error taxonomy.

Intent:
    Provide framework-agnostic contracts between use cases and concrete
    adapters (HTTP client, in-memory fakes). Keeping these definitions in a
    dedicated module avoids circular imports and clarifies boundaries.

Design:
    - Protocol: LearningBackendProtocol (async)
    - Errors: local validation vs. server verdicts vs. retryable I/O

Notes:
    Only `ValidationError` and `AttemptConflict` are terminal for the current
    action. Every I/O error is retryable.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol, Sequence

from coursework.learning.domain import Assignment, Attempt, RegisteredSubmission, Submission


# ------------------------------ Errors --------------------------------------


class LearningClientError(Exception):
    """Base class for submission lifecycle failures."""


class ValidationError(LearningClientError):
    """Input rejected before (or, for `server_rejected`, by) the backend."""

    def __init__(self, reason: str, detail: Optional[str] = None) -> None:
        super().__init__(reason if detail is None else f"{reason}: {detail}")
        self.reason = reason
        self.detail = detail


class AuthError(LearningClientError):
    """Credentials missing, expired or not allowed for this resource."""


class AttemptConflict(LearningClientError):
    """Attempts are exhausted or already consumed; refresh the count from the server."""


class NetworkError(LearningClientError):
    """Registrar/listing call failed in transport or with a server error.

    `reached_server` is False when the request provably never left the client
    (connect failures), True for server 5xx answers, and None when the outcome
    is unknown (the request may have been processed but the response was lost).
    """

    def __init__(self, message: str, *, reached_server: Optional[bool] = None, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.reached_server = reached_server
        self.status_code = status_code

    @property
    def is_ambiguous(self) -> bool:
        return self.reached_server is None


class AttemptOutcomeUnknown(NetworkError):
    """StartAttempt may or may not have been recorded; re-read history before retrying."""


class UploadError(LearningClientError):
    """Storage PUT failed after registration; retry phase 2 or re-register.

    Reasons:
        http_status            storage answered with a non-2xx status
        content_type_mismatch  signature rejected because Content-Type differs
        url_expired            presigned URL no longer valid
        transport              local exception before a status was received

    Cancelling the in-flight PUT is not an UploadError: `asyncio.CancelledError`
    propagates and the registered record stays payload-less and resumable.
    """

    def __init__(self, reason: str, *, status_code: Optional[int] = None) -> None:
        msg = reason if status_code is None else f"{reason} (HTTP {status_code})"
        super().__init__(msg)
        self.reason = reason
        self.status_code = status_code


# ----------------------------- Protocols ------------------------------------


class LearningBackendProtocol(Protocol):
    """Backend operations the submission lifecycle depends on."""

    async def get_assignment(self, assignment_id: str) -> Assignment:
        ...

    async def list_attempts(self, assignment_id: str, learner_id: str) -> list[Attempt]:
        ...

    async def start_attempt(self, assignment_id: str, learner_id: str, *, idempotency_key: str) -> Attempt:
        ...

    async def register_submission(
        self,
        assignment_id: str,
        learner_id: str,
        *,
        file_name: str,
        content_type: str,
    ) -> RegisteredSubmission:
        ...

    async def list_submissions(self, assignment_id: str) -> list[Submission]:
        ...

    async def submit_answers(
        self,
        assignment_id: str,
        learner_id: str,
        *,
        attempt_id: str,
        answers: Sequence[Mapping[str, Any]],
        idempotency_key: str,
    ) -> Submission:
        ...

    async def get_download_url(self, submission_id: str) -> str:
        ...

    async def get_question_data_url(self, assignment_id: str) -> str:
        """Short-lived URL of the assignment's question-set document."""
        ...


__all__ = [
    "LearningClientError",
    "ValidationError",
    "AuthError",
    "AttemptConflict",
    "NetworkError",
    "AttemptOutcomeUnknown",
    "UploadError",
    "LearningBackendProtocol",
]
