"""
Domain records for the learning submission lifecycle.

Intent:
    Keep the learner-facing data model small, typed and independent of the
    HTTP layer. Adapters translate wire payloads (camelCase, ISO strings) into
    these records via the `from_api` constructors.

Conventions:
    - All timestamps are timezone-aware UTC datetimes.
    - `max_attempts == UNLIMITED_ATTEMPTS` (-1) means unlimited; a missing or
      zero value from the backend defaults to a single attempt.
    - `Submission.is_ai_score` is a closed boolean: absence means the score is
      instructor-authoritative.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

UNLIMITED_ATTEMPTS = -1
DEFAULT_MAX_ATTEMPTS = 1


class AnswerVisibility(str, Enum):
    IMMEDIATELY = "immediately"
    AFTER_DUE_DATE = "after_due_date"
    NEVER = "never"


class SubmissionStatus(str, Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    GRADED = "graded"
    NOT_SUBMITTED = "not_submitted"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string (or datetime) into an aware UTC datetime.

    A trailing `Z` is accepted; naive values are interpreted as UTC.
    Returns None for empty input and raises ValueError for garbage.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        raw = str(value).strip()
        if raw.endswith("Z") or raw.endswith("z"):
            raw = raw[:-1] + "+00:00"
        parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _first(data: Mapping[str, Any], *keys: str) -> Any:
    for k in keys:
        if k in data and data[k] is not None:
            return data[k]
    return None


def _normalize_max_attempts(value: Any) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return DEFAULT_MAX_ATTEMPTS
    if parsed == UNLIMITED_ATTEMPTS:
        return UNLIMITED_ATTEMPTS
    if parsed <= 0:
        return DEFAULT_MAX_ATTEMPTS
    return parsed


def _normalize_time_limit(value: Any) -> Optional[int]:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return None
    return parsed if parsed > 0 else None


def _parse_visibility(value: Any) -> AnswerVisibility:
    try:
        return AnswerVisibility(str(value))
    except ValueError:
        return AnswerVisibility.NEVER


@dataclass(frozen=True)
class Assignment:
    id: str
    title: str
    due_at: datetime
    description: Optional[str] = None
    skill_id: Optional[str] = None
    skill_name: Optional[str] = None
    total_points: float = 100.0
    time_limit_minutes: Optional[int] = None
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    auto_gradable: bool = False
    answer_visibility: AnswerVisibility = AnswerVisibility.NEVER
    store_url: Optional[str] = None
    question_url: Optional[str] = None

    @property
    def is_timed(self) -> bool:
        return self.time_limit_minutes is not None and self.time_limit_minutes > 0

    @property
    def has_unlimited_attempts(self) -> bool:
        return self.max_attempts == UNLIMITED_ATTEMPTS

    @property
    def has_question_set(self) -> bool:
        return bool(self.question_url)

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "Assignment":
        due_at = parse_timestamp(_first(data, "dueAt", "dueDate", "due_at"))
        if due_at is None:
            raise ValueError("assignment_missing_due_date")
        points = _first(data, "totalPoints", "total_points")
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or ""),
            due_at=due_at,
            description=data.get("description"),
            skill_id=_first(data, "skillID", "skillId", "skill_id"),
            skill_name=_first(data, "skillName", "skill_name"),
            total_points=float(points) if points is not None else 100.0,
            time_limit_minutes=_normalize_time_limit(_first(data, "timeLimitMinutes", "time_limit_minutes")),
            max_attempts=_normalize_max_attempts(_first(data, "maxAttempts", "max_attempts")),
            auto_gradable=bool(_first(data, "autoGradable", "isAutoGradable", "auto_gradable")),
            answer_visibility=_parse_visibility(_first(data, "answerVisibility", "answer_visibility")),
            store_url=_first(data, "storeUrl", "store_url"),
            question_url=_first(data, "questionUrl", "questionJsonUrl", "question_url"),
        )


@dataclass(frozen=True)
class Attempt:
    id: str
    assignment_id: str
    learner_id: str
    ordinal: int
    started_at: datetime

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "Attempt":
        started = parse_timestamp(_first(data, "startedAt", "createdAt", "started_at"))
        return cls(
            id=str(data["id"]),
            assignment_id=str(_first(data, "assignmentID", "assignmentId", "assignment_id")),
            learner_id=str(_first(data, "studentID", "studentId", "learner_id")),
            ordinal=int(_first(data, "ordinal", "attemptNumber") or 1),
            started_at=started or datetime.now(timezone.utc),
        )


@dataclass(frozen=True)
class Submission:
    id: str
    assignment_id: str
    learner_id: str
    created_at: datetime
    store_url: Optional[str] = None
    file_name: Optional[str] = None
    content_type: Optional[str] = None
    score: Optional[float] = None
    feedback: Optional[str] = None
    is_ai_score: bool = False

    @property
    def has_payload(self) -> bool:
        return bool(self.store_url)

    @property
    def is_scored(self) -> bool:
        return self.score is not None

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "Submission":
        score = data.get("score")
        created = parse_timestamp(_first(data, "createdAt", "created_at"))
        return cls(
            id=str(data["id"]),
            assignment_id=str(_first(data, "assignmentID", "assignmentId", "assignment_id")),
            learner_id=str(_first(data, "studentID", "studentId", "learner_id")),
            created_at=created or datetime.now(timezone.utc),
            store_url=_first(data, "storeUrl", "store_url") or None,
            file_name=_first(data, "fileName", "file_name"),
            content_type=_first(data, "contentType", "content_type"),
            score=float(score) if score is not None else None,
            feedback=data.get("feedback"),
            # API returns lowercase 'i'; anything but an explicit true is manual.
            is_ai_score=_first(data, "isAiScore", "isAIScore", "is_ai_score") is True,
        )


@dataclass(frozen=True)
class RegisteredSubmission:
    """Phase-1 result: a durable record without payload plus its upload target."""

    submission_id: str
    upload_url: str
    store_url: str
    content_type: str
    expires_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at

    @classmethod
    def from_api(cls, data: Mapping[str, Any], *, content_type: str) -> "RegisteredSubmission":
        submission_id = _first(data, "submissionId", "submissionID", "id")
        upload_url = _first(data, "uploadUrl", "presignedUrl", "url")
        if not submission_id or not upload_url:
            raise ValueError("registration_response_incomplete")
        return cls(
            submission_id=str(submission_id),
            upload_url=str(upload_url),
            store_url=str(_first(data, "storeUrl", "storageKey") or ""),
            content_type=content_type,
            expires_at=parse_timestamp(_first(data, "expiresAt", "expires_at")),
        )


def latest_submission(submissions: Iterable[Submission]) -> Optional[Submission]:
    """Return the record the UI treats as "latest" (newest `created_at`).

    Registered records that never received a payload and carry no score are
    skipped: an unfinished resubmission must not hide earlier delivered work.
    """
    latest: Optional[Submission] = None
    for sub in submissions:
        if not sub.has_payload and not sub.is_scored:
            continue
        if latest is None or sub.created_at > latest.created_at:
            latest = sub
    return latest


__all__ = [
    "UNLIMITED_ATTEMPTS",
    "DEFAULT_MAX_ATTEMPTS",
    "AnswerVisibility",
    "SubmissionStatus",
    "Assignment",
    "Attempt",
    "Submission",
    "RegisteredSubmission",
    "latest_submission",
    "parse_timestamp",
]
