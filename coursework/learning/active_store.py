"""
Client-persisted pointers to unfinished file submissions.

Why: Phase 1 of a submission can succeed while the upload never completes
(tab closed, network lost). Keeping the registration locally lets the learner
resume the upload later. The pointer is advisory only; the server's record is
always re-read before acting on it.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, Optional

from coursework.learning.domain import RegisteredSubmission, Submission, parse_timestamp

LOG = logging.getLogger(__name__)

DEFAULT_STORE_PATH = "~/.coursework/active.json"


@dataclass
class ActivePointer:
    assignment_id: str
    learner_id: str
    submission_id: str
    upload_url: str
    content_type: str
    file_path: Optional[str] = None
    store_url: str = ""
    expires_at: Optional[str] = None

    @classmethod
    def from_registration(
        cls,
        registration: RegisteredSubmission,
        *,
        assignment_id: str,
        learner_id: str,
        file_path: Optional[str] = None,
    ) -> "ActivePointer":
        return cls(
            assignment_id=assignment_id,
            learner_id=learner_id,
            submission_id=registration.submission_id,
            upload_url=registration.upload_url,
            content_type=registration.content_type,
            file_path=file_path,
            store_url=registration.store_url,
            expires_at=registration.expires_at.isoformat() if registration.expires_at else None,
        )

    def to_registration(self) -> RegisteredSubmission:
        return RegisteredSubmission(
            submission_id=self.submission_id,
            upload_url=self.upload_url,
            store_url=self.store_url,
            content_type=self.content_type,
            expires_at=parse_timestamp(self.expires_at),
        )

    def is_expired(self, now: datetime) -> bool:
        return self.to_registration().is_expired(now)


class ActiveSubmissionStore:
    """JSON file keyed by assignment id. One pointer per assignment."""

    def __init__(self, path: str | os.PathLike[str] = DEFAULT_STORE_PATH):
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> Dict[str, dict]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError:
            LOG.warning("learning.active_store.corrupt path=%s", self._path)
            return {}
        return raw if isinstance(raw, dict) else {}

    def _write(self, data: Dict[str, dict]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp, self._path)

    def save(self, pointer: ActivePointer) -> None:
        data = self._read()
        data[pointer.assignment_id] = asdict(pointer)
        self._write(data)

    def load(self, assignment_id: str) -> Optional[ActivePointer]:
        entry = self._read().get(assignment_id)
        if not isinstance(entry, dict):
            return None
        try:
            return ActivePointer(**entry)
        except TypeError:
            LOG.warning("learning.active_store.invalid_entry assignment=%s", assignment_id)
            return None

    def all(self) -> list[ActivePointer]:
        out: list[ActivePointer] = []
        for assignment_id in sorted(self._read()):
            pointer = self.load(assignment_id)
            if pointer is not None:
                out.append(pointer)
        return out

    def discard(self, assignment_id: str) -> None:
        data = self._read()
        if data.pop(assignment_id, None) is not None:
            self._write(data)


POINTER_PENDING = "pending"
POINTER_COMPLETE = "complete"
POINTER_GONE = "gone"


def pointer_state(pointer: ActivePointer, submissions: Iterable[Submission]) -> str:
    """Classify a pointer against the server list: pending, complete or gone."""
    for sub in submissions:
        if sub.id == pointer.submission_id:
            return POINTER_COMPLETE if sub.has_payload else POINTER_PENDING
    return POINTER_GONE


def reconcile(pointer: Optional[ActivePointer], submissions: Iterable[Submission]) -> Optional[ActivePointer]:
    """Return the pointer only if it still refers to unfinished server-side work.

    A pointer is dropped when the server record already has its payload or
    does not exist anymore.
    """
    if pointer is None:
        return None
    return pointer if pointer_state(pointer, submissions) == POINTER_PENDING else None


__all__ = [
    "ActivePointer",
    "ActiveSubmissionStore",
    "DEFAULT_STORE_PATH",
    "POINTER_COMPLETE",
    "POINTER_GONE",
    "POINTER_PENDING",
    "pointer_state",
    "reconcile",
]
