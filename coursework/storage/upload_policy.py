"""
Shared upload policy for learner submissions.

Centralises extension/type/size constraints so use cases stay slim and both
tests and documentation can reference a single source of truth. Every check
here runs before any network call.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from coursework.learning.adapters.ports import ValidationError
from coursework.learning.domain import Assignment
from coursework.learning.skills import SkillKind, skill_kind
from coursework.storage.config import get_submission_max_upload_bytes
from coursework.storage.keys import MAX_FILENAME_LENGTH, file_extension

CONTENT_TYPES_BY_EXTENSION: Mapping[str, frozenset[str]] = {
    "pdf": frozenset({"application/pdf"}),
    "doc": frozenset({"application/msword"}),
    "docx": frozenset({"application/vnd.openxmlformats-officedocument.wordprocessingml.document"}),
    "png": frozenset({"image/png"}),
    "jpg": frozenset({"image/jpeg"}),
    "jpeg": frozenset({"image/jpeg"}),
    "webm": frozenset({"audio/webm", "video/webm"}),
    "mp3": frozenset({"audio/mpeg", "audio/mp3"}),
    "wav": frozenset({"audio/wav", "audio/x-wav", "audio/wave"}),
    "m4a": frozenset({"audio/mp4", "audio/x-m4a"}),
    "ogg": frozenset({"audio/ogg"}),
}

WRITING_EXTENSIONS = frozenset({"docx", "doc", "pdf"})
SPEAKING_EXTENSIONS = frozenset({"webm", "mp3", "wav", "m4a", "ogg"})
FILE_EXTENSIONS = frozenset({"pdf", "doc", "docx", "png", "jpg", "jpeg"})


@dataclass(frozen=True, slots=True)
class UploadPolicy:
    """Immutable policy object used right before registration."""

    allowed_extensions: frozenset[str]
    max_size_bytes: int

    def accepted_content_types(self) -> list[str]:
        types: set[str] = set()
        for ext in self.allowed_extensions:
            types |= CONTENT_TYPES_BY_EXTENSION.get(ext, frozenset())
        return sorted(types)


def policy_for_assignment(assignment: Assignment) -> UploadPolicy:
    kind = skill_kind(assignment.skill_name)
    if kind is SkillKind.WRITING:
        allowed = WRITING_EXTENSIONS
    elif kind is SkillKind.SPEAKING:
        allowed = SPEAKING_EXTENSIONS
    else:
        allowed = FILE_EXTENSIONS
    # Resolve the limit at call time to honor env overrides in tests.
    return UploadPolicy(allowed_extensions=allowed, max_size_bytes=get_submission_max_upload_bytes())


def guess_content_type(filename: str) -> Optional[str]:
    types = CONTENT_TYPES_BY_EXTENSION.get(file_extension(filename))
    if not types:
        return None
    return sorted(types)[0]


def validate_upload(
    policy: UploadPolicy,
    *,
    file_name: str,
    size_bytes: int,
    content_type: Optional[str] = None,
) -> str:
    """Validate an upload locally and return the content type to register.

    Raises:
        ValidationError with reason missing_field | filename_too_long |
        extension_not_allowed | empty_file | size_exceeded | content_type_mismatch.
    """
    name = (file_name or "").strip()
    if not name:
        raise ValidationError("missing_field", "file_name")
    if len(name) > MAX_FILENAME_LENGTH:
        raise ValidationError("filename_too_long")
    ext = file_extension(name)
    if ext not in policy.allowed_extensions:
        allowed = "|".join(sorted(policy.allowed_extensions))
        raise ValidationError("extension_not_allowed", f".{ext or '?'} (allowed: {allowed})")
    if size_bytes <= 0:
        raise ValidationError("empty_file")
    if size_bytes > policy.max_size_bytes:
        raise ValidationError("size_exceeded", f"{size_bytes} > {policy.max_size_bytes}")
    expected = CONTENT_TYPES_BY_EXTENSION.get(ext, frozenset())
    if content_type:
        declared = content_type.split(";", 1)[0].strip().lower()
        if declared not in expected:
            raise ValidationError("content_type_mismatch", f"{content_type} for .{ext}")
        return content_type.strip()
    return sorted(expected)[0]


__all__ = [
    "CONTENT_TYPES_BY_EXTENSION",
    "WRITING_EXTENSIONS",
    "SPEAKING_EXTENSIONS",
    "FILE_EXTENSIONS",
    "UploadPolicy",
    "policy_for_assignment",
    "guess_content_type",
    "validate_upload",
]
