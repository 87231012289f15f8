"""
Command-line client for the submission lifecycle.

Usage:
    coursework status ASSIGNMENT_ID --learner ID
    coursework submit ASSIGNMENT_ID FILE --learner ID
    coursework resume [ASSIGNMENT_ID] --learner ID

Configuration comes from the environment (see `coursework.learning.config`);
a local `.env` is loaded outside of test runs. Unfinished uploads are kept in
the active pointer store so `resume` can finish phase 2 later.
"""
from __future__ import annotations

import asyncio
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import click
import httpx

from coursework.learning.active_store import (
    DEFAULT_STORE_PATH,
    POINTER_COMPLETE,
    POINTER_GONE,
    ActivePointer,
    ActiveSubmissionStore,
    pointer_state,
    reconcile,
)
from coursework.learning.adapters.http_api import HttpLearningBackend
from coursework.learning.adapters.ports import AuthError, LearningClientError, NetworkError, ValidationError
from coursework.learning.config import LearningClientConfig, load_client_config
from coursework.learning.domain import RegisteredSubmission
from coursework.learning.scoring import present_score
from coursework.learning.status import build_status_view
from coursework.learning.usecases.submissions import (
    PAYLOAD_MISSING,
    FileSubmissionRequest,
    ListSubmissionsUseCase,
    PendingUpload,
    SubmitFileUseCase,
)
from coursework.storage.upload_client import StorageUploadClient

LOG = logging.getLogger(__name__)

EXIT_UPLOAD_INCOMPLETE = 2


def _should_load_dotenv() -> bool:
    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = (os.getenv("COURSEWORK_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


def _configure_logging() -> None:
    level = (os.getenv("LOG_LEVEL") or "WARNING").strip().upper()
    logging.basicConfig(level=getattr(logging, level, logging.WARNING), format="%(levelname)s %(name)s %(message)s")


def _describe(exc: BaseException) -> str:
    if isinstance(exc, ValidationError):
        return f"Rejected: {exc.reason}" + (f" ({exc.detail})" if exc.detail else "")
    if isinstance(exc, AuthError):
        return "Not authorized. Check LMS_API_TOKEN."
    if isinstance(exc, NetworkError):
        return "Network error while talking to the server. Please retry."
    if isinstance(exc, LookupError):
        return "Not found."
    return str(exc) or exc.__class__.__name__


class _Runtime:
    """Backend, uploader and pointer store for one command invocation."""

    def __init__(self, config: LearningClientConfig, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.config = config
        self.backend = HttpLearningBackend.from_config(config, transport=transport)
        self._upload_http: Optional[httpx.AsyncClient] = None
        if transport is not None:
            self._upload_http = httpx.AsyncClient(transport=transport, follow_redirects=False)
        self.uploader = StorageUploadClient(self._upload_http)
        self.store = ActiveSubmissionStore(config.active_store_path or DEFAULT_STORE_PATH)

    async def aclose(self) -> None:
        await self.backend.aclose()
        await self.uploader.aclose()
        if self._upload_http is not None:
            await self._upload_http.aclose()


def _run(ctx: click.Context, coro_factory) -> Any:
    async def _main():
        runtime = _Runtime(ctx.obj["config"], ctx.obj.get("transport"))
        try:
            return await coro_factory(runtime)
        finally:
            await runtime.aclose()

    try:
        return asyncio.run(_main())
    except (LearningClientError, LookupError) as exc:
        LOG.debug("cli.command_failed error=%s", exc.__class__.__name__)
        raise click.ClickException(_describe(exc)) from exc


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Check and submit coursework from the terminal."""
    if _should_load_dotenv():
        from dotenv import load_dotenv

        load_dotenv()
    _configure_logging()
    ctx.ensure_object(dict)
    if "config" not in ctx.obj:
        try:
            ctx.obj["config"] = load_client_config()
        except ValueError as exc:
            raise click.ClickException(str(exc)) from exc


@cli.command()
@click.argument("assignment_id")
@click.option("--learner", required=True, help="Learner (student) id.")
@click.pass_context
def status(ctx: click.Context, assignment_id: str, learner: str) -> None:
    """Show the derived status and latest score for an assignment."""

    async def _status(rt: _Runtime):
        assignment = await rt.backend.get_assignment(assignment_id)
        submissions = await ListSubmissionsUseCase(rt.backend).execute(assignment_id, learner)
        unfinished = reconcile(rt.store.load(assignment_id), submissions)
        return assignment, build_status_view(assignment, submissions, datetime.now(timezone.utc)), unfinished

    assignment, view, unfinished = _run(ctx, _status)
    click.echo(f"Assignment: {assignment.title}")
    click.echo(f"Due: {assignment.due_at.isoformat()}")
    click.echo(f"Status: {view.status.value}")
    click.echo(f"Can submit: {'yes' if view.can_submit else 'no'}")
    presentation = present_score(view.submission) if view.submission is not None else None
    if presentation is not None:
        click.echo(f"Score: {presentation.score:g}/{assignment.total_points:g} ({presentation.origin.value})")
        if presentation.label:
            click.echo(presentation.label)
        if presentation.feedback:
            click.echo(f"{presentation.feedback_heading}: {presentation.feedback}")
    if unfinished is not None:
        click.echo(f"Unfinished upload: run `coursework resume {assignment_id}` to complete it.")


@cli.command()
@click.argument("assignment_id")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--learner", required=True, help="Learner (student) id.")
@click.option("--content-type", default=None, help="Override the detected content type.")
@click.pass_context
def submit(ctx: click.Context, assignment_id: str, file: Path, learner: str, content_type: Optional[str]) -> None:
    """Register FILE as a submission and upload it."""

    async def _submit(rt: _Runtime) -> PendingUpload:
        assignment = await rt.backend.get_assignment(assignment_id)
        submissions = await ListSubmissionsUseCase(rt.backend).execute(assignment_id, learner)
        view = build_status_view(assignment, submissions, datetime.now(timezone.utc))
        request = FileSubmissionRequest(
            assignment=assignment,
            learner_id=learner,
            file_name=file.name,
            body=file.read_bytes(),
            content_type=content_type,
        )

        def _remember(registration: RegisteredSubmission) -> None:
            # Saved before the PUT so an interrupted upload can be resumed.
            rt.store.save(
                ActivePointer.from_registration(
                    registration,
                    assignment_id=assignment_id,
                    learner_id=learner,
                    file_path=str(file.resolve()),
                )
            )

        result = await SubmitFileUseCase(rt.backend, rt.uploader).execute(
            request, status=view, on_registered=_remember
        )
        if result.is_complete:
            rt.store.discard(assignment_id)
        return result

    result = _run(ctx, _submit)
    if result.state == PAYLOAD_MISSING:
        reason = result.error.reason if result.error is not None else "unknown"
        click.echo(f"Upload incomplete ({reason}). Run `coursework resume {assignment_id}` to retry.", err=True)
        ctx.exit(EXIT_UPLOAD_INCOMPLETE)
    click.echo(f"Submitted {file.name} (submission {result.registration.submission_id}).")


@cli.command()
@click.argument("assignment_id", required=False)
@click.option("--learner", required=True, help="Learner (student) id.")
@click.pass_context
def resume(ctx: click.Context, assignment_id: Optional[str], learner: str) -> None:
    """Finish uploads that were registered but never completed."""

    async def _resume(rt: _Runtime) -> list[tuple[str, str]]:
        if assignment_id is not None:
            pointer = rt.store.load(assignment_id)
            pointers = [pointer] if pointer is not None else []
        else:
            pointers = rt.store.all()
        outcomes: list[tuple[str, str]] = []
        use_case = SubmitFileUseCase(rt.backend, rt.uploader)
        for pointer in pointers:
            if pointer.learner_id != learner:
                continue
            submissions = await rt.backend.list_submissions(pointer.assignment_id)
            state = pointer_state(pointer, submissions)
            if state == POINTER_COMPLETE:
                rt.store.discard(pointer.assignment_id)
                outcomes.append((pointer.assignment_id, "already complete"))
                continue
            if state == POINTER_GONE:
                rt.store.discard(pointer.assignment_id)
                outcomes.append((pointer.assignment_id, "record no longer exists, submit again"))
                continue
            if not pointer.file_path or not Path(pointer.file_path).is_file():
                outcomes.append((pointer.assignment_id, "file missing, submit again"))
                continue
            assignment = await rt.backend.get_assignment(pointer.assignment_id)
            request = FileSubmissionRequest(
                assignment=assignment,
                learner_id=learner,
                file_name=Path(pointer.file_path).name,
                body=Path(pointer.file_path).read_bytes(),
                content_type=pointer.content_type,
            )
            pending = PendingUpload(
                request=request,
                registration=pointer.to_registration(),
                state=PAYLOAD_MISSING,
            )

            def _remember(registration: RegisteredSubmission, pointer: ActivePointer = pointer) -> None:
                rt.store.save(
                    ActivePointer.from_registration(
                        registration,
                        assignment_id=pointer.assignment_id,
                        learner_id=learner,
                        file_path=pointer.file_path,
                    )
                )

            result = await use_case.resume(pending, on_registered=_remember)
            if result.is_complete:
                rt.store.discard(pointer.assignment_id)
                outcomes.append((pointer.assignment_id, "uploaded"))
            else:
                reason = result.error.reason if result.error is not None else "unknown"
                outcomes.append((pointer.assignment_id, f"still incomplete ({reason})"))
        return outcomes

    outcomes = _run(ctx, _resume)
    if not outcomes:
        click.echo("Nothing to resume.")
        return
    for aid, outcome in outcomes:
        click.echo(f"{aid}: {outcome}")
    if any(o.startswith("still incomplete") for _, o in outcomes):
        ctx.exit(EXIT_UPLOAD_INCOMPLETE)


def main() -> None:  # pragma: no cover
    cli(obj={})


if __name__ == "__main__":  # pragma: no cover
    main()
