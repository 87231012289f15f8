"""Use case layer for the learner submission lifecycle.

Re-export common use cases for convenient imports in tests and tools.
"""

from .attempts import AttemptController, AttemptHandle, attempt_idempotency_key, can_start
from .quiz import ActiveSubmissionContext, QuizSession, quiz_idempotency_key
from .quiz_content import LoadQuizContentUseCase, QuizContent
from .submissions import (
    PAYLOAD_MISSING,
    UPLOADED,
    DownloadSubmissionUseCase,
    FileSubmissionRequest,
    ListSubmissionsUseCase,
    PendingUpload,
    RefreshAfterScoreUseCase,
    RefreshResult,
    SubmissionRegistrar,
    SubmitFileUseCase,
)

__all__ = [
    "AttemptController",
    "AttemptHandle",
    "attempt_idempotency_key",
    "can_start",
    "ActiveSubmissionContext",
    "QuizSession",
    "quiz_idempotency_key",
    "LoadQuizContentUseCase",
    "QuizContent",
    "PAYLOAD_MISSING",
    "UPLOADED",
    "DownloadSubmissionUseCase",
    "FileSubmissionRequest",
    "ListSubmissionsUseCase",
    "PendingUpload",
    "RefreshAfterScoreUseCase",
    "RefreshResult",
    "SubmissionRegistrar",
    "SubmitFileUseCase",
]
