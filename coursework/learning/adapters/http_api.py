"""
HTTP adapter for the learning backend (REST API, JSON over httpx).

Intent:
    Implement `LearningBackendProtocol` against the platform API and translate
    transport/status failures into the lifecycle error taxonomy so use cases
    never see httpx exceptions.

Behavior:
    - 400/422 → ValidationError("server_rejected"), 401/403 → AuthError,
      404 → LookupError, 409 → AttemptConflict, 5xx → NetworkError(reached_server=True).
    - Connect failures → NetworkError(reached_server=False); read timeouts and
      dropped connections → NetworkError(reached_server=None).
    - StartAttempt turns every failure that might have reached the server into
      AttemptOutcomeUnknown.

Security:
    Bearer token is sent to the API only; presigned storage URLs are handled
    by `coursework.storage.upload_client` without credentials.
"""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence

import httpx

from coursework.learning.adapters.ports import (
    AttemptConflict,
    AttemptOutcomeUnknown,
    AuthError,
    NetworkError,
    ValidationError,
)
from coursework.learning.config import LearningClientConfig
from coursework.learning.domain import Assignment, Attempt, RegisteredSubmission, Submission

LOG = logging.getLogger(__name__)


def _unwrap(payload: Any) -> Any:
    # Listings may come wrapped, e.g. {"items": [...], "total": .., "page": ..}.
    if isinstance(payload, dict):
        for key in ("data", "items"):
            if isinstance(payload.get(key), (list, dict)) and "id" not in payload:
                return payload[key]
    return payload


def _error_detail(resp: httpx.Response) -> Optional[str]:
    try:
        body = resp.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        for key in ("detail", "message", "title", "error"):
            if body.get(key):
                return str(body[key])
    return None


class HttpLearningBackend:
    """Learning backend reached through the platform REST API."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @classmethod
    def from_config(
        cls,
        config: LearningClientConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "HttpLearningBackend":
        headers = {"Accept": "application/json"}
        if config.api_token:
            headers["Authorization"] = f"Bearer {config.api_token}"
        client = httpx.AsyncClient(
            base_url=config.api_base_url,
            headers=headers,
            timeout=config.http_timeout_seconds,
            transport=transport,
        )
        return cls(client)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpLearningBackend":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # --- Transport ---------------------------------------------------------------

    async def _request(self, op: str, method: str, path: str, **kwargs: Any) -> Any:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except (httpx.ConnectError, httpx.ConnectTimeout, httpx.PoolTimeout) as exc:
            LOG.warning("learning.api.unreachable op=%s error=%s", op, exc.__class__.__name__)
            raise NetworkError(f"{op}: server unreachable", reached_server=False) from exc
        except httpx.TransportError as exc:
            LOG.warning("learning.api.outcome_unknown op=%s error=%s", op, exc.__class__.__name__)
            raise NetworkError(f"{op}: response lost", reached_server=None) from exc
        self._raise_for_status(op, resp)
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return _unwrap(resp.json())
        except ValueError as exc:
            LOG.warning("learning.api.invalid_json op=%s status=%s", op, resp.status_code)
            raise NetworkError(f"{op}: invalid JSON response", reached_server=True, status_code=resp.status_code) from exc

    @staticmethod
    def _raise_for_status(op: str, resp: httpx.Response) -> None:
        code = resp.status_code
        if code < 400:
            return
        detail = _error_detail(resp)
        LOG.warning("learning.api.error op=%s status=%s detail=%s", op, code, detail)
        if code in (400, 422):
            raise ValidationError("server_rejected", detail)
        if code in (401, 403):
            raise AuthError(detail or f"{op}: not authorized")
        if code == 404:
            raise LookupError(detail or f"{op}: not found")
        if code == 409:
            raise AttemptConflict(detail or f"{op}: conflict")
        raise NetworkError(f"{op}: HTTP {code}", reached_server=True, status_code=code)

    # --- Protocol methods --------------------------------------------------------

    async def get_assignment(self, assignment_id: str) -> Assignment:
        data = await self._request("get_assignment", "GET", f"/api/assignments/{assignment_id}")
        return Assignment.from_api(data)

    async def list_attempts(self, assignment_id: str, learner_id: str) -> list[Attempt]:
        data = await self._request(
            "list_attempts",
            "GET",
            f"/api/assignments/{assignment_id}/attempts",
            params={"studentId": learner_id},
        )
        return [Attempt.from_api(item) for item in (data or [])]

    async def start_attempt(self, assignment_id: str, learner_id: str, *, idempotency_key: str) -> Attempt:
        try:
            data = await self._request(
                "start_attempt",
                "POST",
                f"/api/assignments/{assignment_id}/attempts",
                json={"studentID": learner_id},
                headers={"Idempotency-Key": idempotency_key},
            )
        except NetworkError as exc:
            if exc.reached_server is False:
                raise
            raise AttemptOutcomeUnknown(
                "start_attempt: outcome unknown",
                reached_server=exc.reached_server,
                status_code=exc.status_code,
            ) from exc
        return Attempt.from_api(data)

    async def register_submission(
        self,
        assignment_id: str,
        learner_id: str,
        *,
        file_name: str,
        content_type: str,
    ) -> RegisteredSubmission:
        data = await self._request(
            "register_submission",
            "POST",
            "/api/submissions/presigned-url",
            json={
                "assignmentID": assignment_id,
                "studentID": learner_id,
                "fileName": file_name,
                "contentType": content_type,
            },
        )
        try:
            return RegisteredSubmission.from_api(data or {}, content_type=content_type)
        except ValueError as exc:
            raise NetworkError("register_submission: incomplete response", reached_server=True) from exc

    async def list_submissions(self, assignment_id: str) -> list[Submission]:
        data = await self._request("list_submissions", "GET", f"/api/submissions/assignment/{assignment_id}")
        return [Submission.from_api(item) for item in (data or [])]

    async def submit_answers(
        self,
        assignment_id: str,
        learner_id: str,
        *,
        attempt_id: str,
        answers: Sequence[Mapping[str, Any]],
        idempotency_key: str,
    ) -> Submission:
        data = await self._request(
            "submit_answers",
            "POST",
            "/api/submissions/answers",
            json={
                "assignmentID": assignment_id,
                "studentID": learner_id,
                "attemptID": attempt_id,
                "answers": [dict(a) for a in answers],
            },
            headers={"Idempotency-Key": idempotency_key},
        )
        return Submission.from_api(data)

    async def get_download_url(self, submission_id: str) -> str:
        data = await self._request("download_submission", "GET", f"/api/submissions/{submission_id}/download")
        url = (data or {}).get("downloadUrl") or (data or {}).get("url")
        if not url:
            raise NetworkError("download_submission: missing downloadUrl", reached_server=True)
        return str(url)

    async def get_question_data_url(self, assignment_id: str) -> str:
        data = await self._request(
            "question_data_url",
            "GET",
            f"/api/assignments/{assignment_id}/question-data-url",
        )
        url = (data or {}).get("questionDataUrl")
        if not url:
            raise NetworkError("question_data_url: missing questionDataUrl", reached_server=True)
        return str(url)


__all__ = ["HttpLearningBackend"]
