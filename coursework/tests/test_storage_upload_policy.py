"""
Storage: local upload validation before registration

Scenarios:
- Writing assignments accept only docx|doc|pdf
- Size, emptiness and Content-Type consistency are checked without I/O
- SUBMISSION_MAX_UPLOAD_BYTES is clamped to the 50 MiB contract
"""
from __future__ import annotations

import pytest

from coursework.learning.adapters.ports import ValidationError
from coursework.storage.config import (
    SUBMISSION_MAX_UPLOAD_BYTES_CONTRACT,
    get_submission_max_upload_bytes,
    get_upload_timeout_seconds,
    get_upload_url_ttl_seconds,
)
from coursework.storage.upload_policy import (
    FILE_EXTENSIONS,
    SPEAKING_EXTENSIONS,
    WRITING_EXTENSIONS,
    UploadPolicy,
    guess_content_type,
    policy_for_assignment,
    validate_upload,
)

from conftest import make_assignment

PDF = "application/pdf"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def _policy(exts=WRITING_EXTENSIONS, max_size=1024):
    return UploadPolicy(allowed_extensions=exts, max_size_bytes=max_size)


def test_policy_follows_skill_kind():
    assert policy_for_assignment(make_assignment(skill_name="Writing Task 2")).allowed_extensions == WRITING_EXTENSIONS
    assert policy_for_assignment(make_assignment(skill_name="Speaking")).allowed_extensions == SPEAKING_EXTENSIONS
    assert policy_for_assignment(make_assignment()).allowed_extensions == FILE_EXTENSIONS


def test_valid_upload_returns_content_type_to_register():
    assert validate_upload(_policy(), file_name="essay.DOCX", size_bytes=10) == DOCX
    assert validate_upload(_policy(), file_name="essay.pdf", size_bytes=10, content_type=PDF) == PDF


@pytest.mark.parametrize(
    "file_name,size,content_type,reason",
    [
        ("", 10, None, "missing_field"),
        ("a" * 260 + ".pdf", 10, None, "filename_too_long"),
        ("essay.png", 10, None, "extension_not_allowed"),
        ("essay", 10, None, "extension_not_allowed"),
        ("essay.pdf", 0, None, "empty_file"),
        ("essay.pdf", 2048, None, "size_exceeded"),
        ("essay.pdf", 10, "image/png", "content_type_mismatch"),
    ],
)
def test_rejections_carry_reason(file_name, size, content_type, reason):
    with pytest.raises(ValidationError) as exc:
        validate_upload(_policy(), file_name=file_name, size_bytes=size, content_type=content_type)
    assert exc.value.reason == reason


def test_accepted_content_types_are_sorted_and_unique():
    types = _policy(exts=frozenset({"jpg", "jpeg", "png"})).accepted_content_types()
    assert types == ["image/jpeg", "image/png"]


def test_guess_content_type():
    assert guess_content_type("talk.MP3") in {"audio/mpeg", "audio/mp3"}
    assert guess_content_type("notes.txt") is None


def test_max_upload_bytes_env_is_clamped(monkeypatch: pytest.MonkeyPatch):
    assert get_submission_max_upload_bytes() == SUBMISSION_MAX_UPLOAD_BYTES_CONTRACT
    monkeypatch.setenv("SUBMISSION_MAX_UPLOAD_BYTES", "1000")
    assert get_submission_max_upload_bytes() == 1000
    assert policy_for_assignment(make_assignment()).max_size_bytes == 1000
    monkeypatch.setenv("SUBMISSION_MAX_UPLOAD_BYTES", str(SUBMISSION_MAX_UPLOAD_BYTES_CONTRACT * 4))
    assert get_submission_max_upload_bytes() == SUBMISSION_MAX_UPLOAD_BYTES_CONTRACT
    monkeypatch.setenv("SUBMISSION_MAX_UPLOAD_BYTES", "garbage")
    assert get_submission_max_upload_bytes() == SUBMISSION_MAX_UPLOAD_BYTES_CONTRACT


def test_upload_timeout_is_bounded(monkeypatch: pytest.MonkeyPatch):
    assert get_upload_timeout_seconds() == 60.0
    monkeypatch.setenv("STORAGE_UPLOAD_TIMEOUT_SECONDS", "1")
    assert get_upload_timeout_seconds() == 5.0
    monkeypatch.setenv("STORAGE_UPLOAD_TIMEOUT_SECONDS", "9999")
    assert get_upload_timeout_seconds() == 300.0


def test_upload_url_ttl_is_bounded(monkeypatch: pytest.MonkeyPatch):
    assert get_upload_url_ttl_seconds() == 900
    monkeypatch.setenv("STORAGE_UPLOAD_URL_TTL_SECONDS", "10")
    assert get_upload_url_ttl_seconds() == 60
    monkeypatch.setenv("STORAGE_UPLOAD_URL_TTL_SECONDS", "86400")
    assert get_upload_url_ttl_seconds() == 3600
