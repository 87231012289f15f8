"""
In-memory development backend for the submission lifecycle API.

Why:
    Local development and the end-to-end tests need a backend that behaves
    like the platform (two-phase submissions, attempt limits, idempotent quiz
    submits, AI advisory scores) without a database or object storage.

Behavior:
    - REST endpoints mirror the platform contract used by
      `coursework.learning.adapters.http_api.HttpLearningBackend`.
    - Presigned uploads point at `PUT /storage/{key}` on this app. The stub
      enforces the Content-Type registered in phase 1 (403
      SignatureDoesNotMatch otherwise) and rejects expired targets.
    - A submission only receives its `storeUrl` once the bytes arrived.
    - Auto-gradable quiz answers are scored immediately with `isAiScore=true`.
    - Question-set documents are served behind a presigned-style URL from
      `GET /api/assignments/{id}/question-data-url`.
    - Knobs for tests: `fail_next_puts` answers the next N uploads with 503,
      `hide_scores_for_reads` delays score visibility on the listing.

Run locally:
    uvicorn coursework.web.stub_backend:app --reload
"""
from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

from fastapi import FastAPI, Header, Query, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field

from coursework.storage.config import get_submission_max_upload_bytes, get_upload_url_ttl_seconds
from coursework.storage.keys import sanitize_filename

LOG = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _no_store() -> dict[str, str]:
    return {"Cache-Control": "private, no-store"}


def _error(status_code: int, error: str, detail: Optional[str] = None) -> JSONResponse:
    body: dict[str, Any] = {"error": error}
    if detail:
        body["detail"] = detail
    return JSONResponse(body, status_code=status_code, headers=_no_store())


# ------------------------------ Payloads --------------------------------------


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class StartAttemptIn(_CamelModel):
    student_id: str = Field(alias="studentID", min_length=1)


class RegisterSubmissionIn(_CamelModel):
    assignment_id: str = Field(alias="assignmentID", min_length=1)
    student_id: str = Field(alias="studentID", min_length=1)
    file_name: str = Field(alias="fileName", min_length=1, max_length=255)
    content_type: str = Field(alias="contentType", min_length=1)


class AnswerIn(_CamelModel):
    question_id: str = Field(alias="questionId")
    answer: Any = None


class SubmitAnswersIn(_CamelModel):
    assignment_id: str = Field(alias="assignmentID", min_length=1)
    student_id: str = Field(alias="studentID", min_length=1)
    attempt_id: str = Field(alias="attemptID", min_length=1)
    answers: List[AnswerIn] = Field(default_factory=list)


# ------------------------------- State ----------------------------------------


@dataclass
class StubState:
    """Everything the stub remembers, kept in plain dicts of wire-shaped records."""

    clock: Callable[[], datetime] = _utcnow
    upload_ttl_seconds: int = field(default_factory=get_upload_url_ttl_seconds)
    fail_next_puts: int = 0
    hide_scores_for_reads: int = 0
    assignments: Dict[str, dict] = field(default_factory=dict)
    answer_keys: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    question_sets: Dict[str, dict] = field(default_factory=dict)
    attempts: Dict[str, dict] = field(default_factory=dict)
    attempt_keys: Dict[str, str] = field(default_factory=dict)
    submissions: Dict[str, dict] = field(default_factory=dict)
    answer_keys_seen: Dict[str, str] = field(default_factory=dict)
    uploads: Dict[str, dict] = field(default_factory=dict)
    blobs: Dict[str, bytes] = field(default_factory=dict)
    _last_created: Optional[datetime] = None

    def add_assignment(
        self,
        assignment_id: str,
        *,
        title: str,
        due_at: datetime,
        skill_name: Optional[str] = None,
        total_points: float = 100.0,
        max_attempts: int = 1,
        time_limit_minutes: Optional[int] = None,
        auto_gradable: bool = False,
        answer_visibility: str = "never",
        question_url: Optional[str] = None,
    ) -> dict:
        record = {
            "id": assignment_id,
            "title": title,
            "dueDate": _iso(due_at),
            "skillName": skill_name,
            "totalPoints": total_points,
            "maxAttempts": max_attempts,
            "timeLimitMinutes": time_limit_minutes,
            "autoGradable": auto_gradable,
            "answerVisibility": answer_visibility,
            "questionUrl": question_url,
        }
        self.assignments[assignment_id] = record
        return record

    def set_answer_key(self, assignment_id: str, key: Dict[str, Any]) -> None:
        self.answer_keys[assignment_id] = dict(key)

    def set_question_set(self, assignment_id: str, document: dict) -> None:
        self.question_sets[assignment_id] = dict(document)
        record = self.assignments.get(assignment_id)
        if record is not None and not record.get("questionUrl"):
            record["questionUrl"] = f"question-sets/{assignment_id}.json"

    def now(self) -> datetime:
        return self.clock()

    def next_created_at(self) -> datetime:
        # Strictly increasing so "latest" is unambiguous even with a frozen clock.
        now = self.now()
        if self._last_created is not None and now <= self._last_created:
            now = self._last_created + timedelta(milliseconds=1)
        self._last_created = now
        return now

    def attempts_for(self, assignment_id: str, student_id: str) -> list[dict]:
        items = [
            a for a in self.attempts.values()
            if a["assignmentID"] == assignment_id and a["studentID"] == student_id
        ]
        return sorted(items, key=lambda a: a["ordinal"])

    def submission_for_attempt(self, attempt_id: str) -> Optional[dict]:
        for sub in self.submissions.values():
            if sub.get("attemptID") == attempt_id:
                return sub
        return None


def _grade(assignment: dict, key: Dict[str, Any], answers: List[AnswerIn]) -> tuple[float, str]:
    given = {a.question_id: a.answer for a in answers}
    correct = 0
    for question_id, expected in key.items():
        if str(given.get(question_id, "")).strip().lower() == str(expected).strip().lower():
            correct += 1
    total = len(key) or 1
    points = float(assignment.get("totalPoints") or 100.0)
    score = round(points * correct / total, 2)
    return score, f"Auto-graded: {correct}/{len(key)} correct."


# -------------------------------- App -----------------------------------------


def create_app(state: Optional[StubState] = None) -> FastAPI:
    """Build a fresh stub app; tests pass their own `StubState` to seed and inspect it."""
    app = FastAPI(title="Coursework lifecycle stub")
    app.state.stub = state or StubState()

    def _state(request: Request) -> StubState:
        return request.app.state.stub

    @app.get("/api/assignments/{assignment_id}")
    async def get_assignment(request: Request, assignment_id: str):
        record = _state(request).assignments.get(assignment_id)
        if record is None:
            return _error(404, "not_found")
        return JSONResponse(record, headers=_no_store())

    @app.get("/api/assignments/{assignment_id}/attempts")
    async def list_attempts(request: Request, assignment_id: str, student_id: str = Query(alias="studentId")):
        st = _state(request)
        if assignment_id not in st.assignments:
            return _error(404, "not_found")
        return JSONResponse(st.attempts_for(assignment_id, student_id), headers=_no_store())

    @app.get("/api/assignments/{assignment_id}/question-data-url")
    async def question_data_url(request: Request, assignment_id: str):
        st = _state(request)
        if assignment_id not in st.assignments or assignment_id not in st.question_sets:
            return _error(404, "not_found")
        url = f"{str(request.base_url).rstrip('/')}/question-sets/{assignment_id}?X-Stub-Signature={uuid4().hex}"
        return JSONResponse({"questionDataUrl": url}, headers=_no_store())

    @app.get("/question-sets/{assignment_id}")
    async def get_question_set(request: Request, assignment_id: str):
        document = _state(request).question_sets.get(assignment_id)
        if document is None:
            return Response("NoSuchKey", status_code=404)
        return JSONResponse(document)

    @app.post("/api/assignments/{assignment_id}/attempts")
    async def start_attempt(
        request: Request,
        assignment_id: str,
        payload: StartAttemptIn,
        idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
    ):
        st = _state(request)
        assignment = st.assignments.get(assignment_id)
        if assignment is None:
            return _error(404, "not_found")
        if idempotency_key and idempotency_key in st.attempt_keys:
            return JSONResponse(st.attempts[st.attempt_keys[idempotency_key]], headers=_no_store())
        existing = st.attempts_for(assignment_id, payload.student_id)
        max_attempts = int(assignment.get("maxAttempts") or 1)
        if max_attempts != -1 and len(existing) >= max_attempts:
            LOG.info("stub.attempt.exhausted assignment=%s used=%s", assignment_id, len(existing))
            return _error(409, "conflict", "max_attempts_reached")
        attempt = {
            "id": str(uuid4()),
            "assignmentID": assignment_id,
            "studentID": payload.student_id,
            "ordinal": len(existing) + 1,
            "startedAt": _iso(st.now()),
        }
        st.attempts[attempt["id"]] = attempt
        if idempotency_key:
            st.attempt_keys[idempotency_key] = attempt["id"]
        return JSONResponse(attempt, status_code=201, headers=_no_store())

    @app.post("/api/submissions/presigned-url")
    async def register_submission(request: Request, payload: RegisterSubmissionIn):
        st = _state(request)
        if payload.assignment_id not in st.assignments:
            return _error(404, "not_found")
        file_name = sanitize_filename(payload.file_name)
        storage_key = f"submissions/{payload.assignment_id}/{payload.student_id}/{uuid4().hex}/{file_name}"
        submission = {
            "id": str(uuid4()),
            "assignmentID": payload.assignment_id,
            "studentID": payload.student_id,
            "createdAt": _iso(st.next_created_at()),
            "storeUrl": None,
            "fileName": file_name,
            "contentType": payload.content_type,
            "score": None,
            "feedback": None,
            "isAiScore": False,
        }
        st.submissions[submission["id"]] = submission
        expires_at = st.now() + timedelta(seconds=st.upload_ttl_seconds)
        st.uploads[storage_key] = {
            "submissionId": submission["id"],
            "contentType": payload.content_type,
            "expiresAt": expires_at,
        }
        upload_url = f"{str(request.base_url).rstrip('/')}/storage/{storage_key}?X-Stub-Signature={uuid4().hex}"
        return JSONResponse(
            {
                "submissionId": submission["id"],
                "uploadUrl": upload_url,
                "storageKey": storage_key,
                "expiresAt": _iso(expires_at),
            },
            headers=_no_store(),
        )

    @app.put("/storage/{storage_key:path}")
    async def put_object(request: Request, storage_key: str):
        st = _state(request)
        upload = st.uploads.get(storage_key)
        if upload is None:
            return Response("NoSuchUpload", status_code=404)
        if st.fail_next_puts > 0:
            st.fail_next_puts -= 1
            return Response("ServiceUnavailable", status_code=503)
        if st.now() >= upload["expiresAt"]:
            return Response("AccessDenied: Request has expired", status_code=403)
        sent = (request.headers.get("content-type") or "").strip().lower()
        if sent != upload["contentType"].strip().lower():
            LOG.info("stub.upload.content_type_mismatch key=%s", storage_key)
            return Response("SignatureDoesNotMatch: content-type differs from signed value", status_code=403)
        body = await request.body()
        if len(body) > get_submission_max_upload_bytes():
            return Response("EntityTooLarge", status_code=400)
        st.blobs[storage_key] = body
        st.submissions[upload["submissionId"]]["storeUrl"] = storage_key
        etag = hashlib.sha256(body).hexdigest()
        return Response(status_code=200, headers={"ETag": f'"{etag}"'})

    @app.get("/storage/{storage_key:path}")
    async def get_object(request: Request, storage_key: str):
        st = _state(request)
        blob = st.blobs.get(storage_key)
        if blob is None:
            return Response("NoSuchKey", status_code=404)
        upload = st.uploads.get(storage_key) or {}
        return Response(blob, media_type=upload.get("contentType") or "application/octet-stream")

    @app.get("/api/submissions/assignment/{assignment_id}")
    async def list_submissions(request: Request, assignment_id: str):
        st = _state(request)
        if assignment_id not in st.assignments:
            return _error(404, "not_found")
        items = [dict(s) for s in st.submissions.values() if s["assignmentID"] == assignment_id]
        if st.hide_scores_for_reads > 0:
            st.hide_scores_for_reads -= 1
            for item in items:
                item.update(score=None, feedback=None, isAiScore=False)
        return JSONResponse(items, headers=_no_store())

    @app.post("/api/submissions/answers")
    async def submit_answers(
        request: Request,
        payload: SubmitAnswersIn,
        idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
    ):
        st = _state(request)
        assignment = st.assignments.get(payload.assignment_id)
        attempt = st.attempts.get(payload.attempt_id)
        if assignment is None or attempt is None or attempt["studentID"] != payload.student_id:
            return _error(404, "not_found")
        if idempotency_key and idempotency_key in st.answer_keys_seen:
            return JSONResponse(st.submissions[st.answer_keys_seen[idempotency_key]], headers=_no_store())
        # One accepted submission per attempt, with or without a key.
        existing = st.submission_for_attempt(payload.attempt_id)
        if existing is not None:
            return JSONResponse(existing, headers=_no_store())
        score: Optional[float] = None
        feedback: Optional[str] = None
        key = st.answer_keys.get(payload.assignment_id)
        is_ai = bool(assignment.get("autoGradable")) and bool(key)
        if is_ai:
            score, feedback = _grade(assignment, key or {}, payload.answers)
        submission = {
            "id": str(uuid4()),
            "assignmentID": payload.assignment_id,
            "studentID": payload.student_id,
            "attemptID": payload.attempt_id,
            "createdAt": _iso(st.next_created_at()),
            "storeUrl": f"answers/{payload.attempt_id}",
            "fileName": None,
            "contentType": "application/json",
            "score": score,
            "feedback": feedback,
            "isAiScore": is_ai,
        }
        st.submissions[submission["id"]] = submission
        if idempotency_key:
            st.answer_keys_seen[idempotency_key] = submission["id"]
        return JSONResponse(submission, status_code=201, headers=_no_store())

    @app.get("/api/submissions/{submission_id}/download")
    async def download_submission(request: Request, submission_id: str):
        st = _state(request)
        submission = st.submissions.get(submission_id)
        if submission is None or not submission.get("storeUrl") or submission["storeUrl"] not in st.blobs:
            return _error(404, "not_found")
        url = f"{str(request.base_url).rstrip('/')}/storage/{submission['storeUrl']}?X-Stub-Signature={uuid4().hex}"
        return JSONResponse({"downloadUrl": url}, headers=_no_store())

    return app


app = create_app()


__all__ = ["StubState", "create_app", "app"]
