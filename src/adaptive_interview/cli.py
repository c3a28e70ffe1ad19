"""Command line entry-point for the adaptive interview engine."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import AppSettings
from .context import Category, Stage
from .document_agent import DocumentGenerationError
from .draft_store import DraftRepository, ResumeTokenError
from .interview_engine import EnginePhase, Segment
from .observability import initialize_tracing
from .quality_gate import BusinessCaseDocument, check_quality, quality_summary
from .segments import SegmentKind
from .sessions import InterviewSession

logger = logging.getLogger(__name__)

TERMINATION_TOKENS = {"quit", "exit", "save"}


def _add_logging_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: WARNING)",
    )


def _parse_interview_args(argv: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="adaptive-interview",
        description=(
            "Run an adaptive business interview and validate the resulting "
            "business case"
        ),
    )
    parser.add_argument(
        "--session-id",
        help="Resume (or create) the draft stored under this session id.",
    )
    parser.add_argument(
        "--resume-token",
        help="Resume the draft referenced by a previously issued token.",
    )
    parser.add_argument(
        "--tracing",
        action="store_true",
        help="Enable OpenTelemetry tracing for collaborator calls.",
    )
    _add_logging_option(parser)
    return parser.parse_args(argv)


def _parse_quality_args(argv: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="adaptive-interview quality",
        description="Score a saved business-case document.",
    )
    parser.add_argument("document", help="Path to a business case JSON file")
    parser.add_argument(
        "--category",
        choices=[category.value for category in Category],
        help="Industry category used for metric vocabulary checks",
    )
    parser.add_argument(
        "--stage",
        choices=[stage.value for stage in Stage],
        help="Business stage used for timeline suggestions",
    )
    _add_logging_option(parser)
    return parser.parse_args(argv)


def _parse_token_args(argv: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="adaptive-interview resume-token",
        description="Issue a resume token for a saved interview draft.",
    )
    parser.add_argument("session_id", help="Session identifier of the draft")
    _add_logging_option(parser)
    return parser.parse_args(argv)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def run_cli(argv: Optional[List[str]] = None) -> None:
    """Entry-point invoked from ``python -m adaptive_interview``."""

    arg_list = list(argv) if argv is not None else sys.argv[1:]
    if arg_list:
        command = arg_list[0]
        if command == "quality":
            raise SystemExit(_handle_quality(_parse_quality_args(arg_list[1:])))
        if command in {"resume-token", "resume_token"}:
            raise SystemExit(_handle_token(_parse_token_args(arg_list[1:])))

    args = _parse_interview_args(arg_list)
    _configure_logging(args.log_level)
    settings = AppSettings.load()
    if args.tracing:
        initialize_tracing()
    try:
        asyncio.run(
            run_interview(
                settings,
                session_id=args.session_id,
                resume_token=args.resume_token,
            )
        )
    except ResumeTokenError as exc:
        raise SystemExit(str(exc)) from exc


def _handle_quality(args: argparse.Namespace) -> int:
    _configure_logging(args.log_level)
    path = Path(args.document)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        print(f"Unable to read {path}: {exc}", file=sys.stderr)  # noqa: T201
        return 2
    if not isinstance(payload, dict):
        print(f"{path} does not contain a JSON object.", file=sys.stderr)  # noqa: T201
        return 2
    document = BusinessCaseDocument.from_dict(payload)
    result = check_quality(
        document,
        category=Category.from_string(args.category) if args.category else None,
        stage=Stage.from_string(args.stage) if args.stage else None,
    )
    print(json.dumps(result.to_dict(), indent=2))  # noqa: T201 - CLI output
    return 0 if result.passed else 1


def _handle_token(args: argparse.Namespace) -> int:
    _configure_logging(args.log_level)
    settings = AppSettings.load()
    repository = DraftRepository(
        settings.drafts_dir,
        settings.submission_log,
        settings.redis_url,
        max_age_days=settings.draft_max_age_days,
    )
    try:
        token = repository.issue_resume_token(args.session_id)
    except ResumeTokenError as exc:
        print(str(exc), file=sys.stderr)  # noqa: T201
        return 1
    print(token)  # noqa: T201 - CLI output
    return 0


async def _prompt(label: str) -> str:
    # Reading stdin in a worker thread keeps the auto-save task running.
    return await asyncio.to_thread(input, label)


def _parse_choices(raw: str, options: List[str]) -> List[str]:
    chosen: List[str] = []
    for token in raw.split(","):
        value = token.strip()
        if not value:
            continue
        if value.isdigit() and 1 <= int(value) <= len(options):
            chosen.append(options[int(value) - 1])
        else:
            chosen.append(value)
    return chosen


async def _ask_selection(segment: Segment) -> List[str]:
    options = list(segment.definition.options)
    for number, option in enumerate(options, start=1):
        print(f"  {number}. {option}")  # noqa: T201
    raw = await _prompt("Choose (comma separated numbers): ")
    return _parse_choices(raw, options)


async def run_interview(
    settings: AppSettings,
    *,
    session_id: Optional[str] = None,
    resume_token: Optional[str] = None,
) -> Optional[InterviewSession]:
    """Conduct the interview via the terminal and validate the document."""

    session = InterviewSession.create(
        settings,
        session_id,
        resume_token=resume_token,
    )
    engine = session.engine
    if session.resumed:
        print("\nWelcome back! Picking up where you left off.")  # noqa: T201
    question = session.start()
    if question:
        print()  # noqa: T201 - CLI UX newline
        print(f"Interviewer: {question}")  # noqa: T201 - CLI output

    while engine.phase is EnginePhase.INTERVIEW:
        segment = engine.current_segment
        if segment is None:
            break
        if segment.definition.kind is SegmentKind.SELECTION:
            try:
                question = session.confirm_selection(
                    await _ask_selection(segment)
                )
            except ValueError as exc:
                print(f"  {exc}")  # noqa: T201
                continue
        else:
            answer = await _prompt("You: ")
            if answer.strip().lower() in TERMINATION_TOKENS:
                token = session.issue_resume_token()
                await session.close()
                print(  # noqa: T201
                    "\nProgress saved. Resume later with "
                    f"--resume-token {token}"
                )
                return session
            if not answer.strip():
                continue
            outcome = await session.handle_answer(answer)
            question = outcome.follow_up_question or outcome.next_question
        if question:
            print()  # noqa: T201
            print(f"Interviewer: {question}")  # noqa: T201

    await _review(session)
    submission = await session.submit()
    print("\nThanks! Generating your business case...")  # noqa: T201

    while True:
        try:
            result = await session.finalize()
            break
        except DocumentGenerationError as exc:
            logger.warning("Document generation failed: %s", exc)
            retry = await _prompt("Document generation failed. Retry? [y/N] ")
            if retry.strip().lower() not in {"y", "yes"}:
                print(  # noqa: T201
                    "Your answers were saved to "
                    f"{session.repository.submission_log}"
                )
                return session

    output_path = settings.output_dir / f"business_case_{session.session_id}.json"
    output_path.write_text(
        json.dumps(
            {
                "submission": submission.to_dict(),
                "document": result.document.to_dict(),
                "quality": result.quality.to_dict(),
            },
            indent=2,
            ensure_ascii=False,
        ),
        encoding="utf-8",
    )
    print()  # noqa: T201
    print(quality_summary(result.quality))  # noqa: T201
    for issue in result.outstanding_issues:
        print(f" - {issue}")  # noqa: T201
    print(f"Business case saved to: {output_path}")  # noqa: T201
    return session


async def _review(session: InterviewSession) -> None:
    engine = session.engine
    while True:
        print("\nReview your answers:")  # noqa: T201
        for view in session.review():
            print(f"  {view.index + 1}. {view.title}: {view.answer}")  # noqa: T201
        raw = await _prompt("Edit a number, or press Enter to submit: ")
        choice = raw.strip()
        if not choice:
            return
        if not choice.isdigit():
            continue
        index = int(choice) - 1
        try:
            view = engine.reopen_segment(index)
        except IndexError as exc:
            print(f"  {exc}")  # noqa: T201
            continue
        segment = engine.segments[index]
        print(f"\n{view.question}")  # noqa: T201
        try:
            if segment.definition.kind is SegmentKind.SELECTION:
                engine.edit_selection(index, await _ask_selection(segment))
            else:
                engine.edit_answer(index, await _prompt("New answer: "))
        except ValueError as exc:
            print(f"  {exc}")  # noqa: T201


if __name__ == "__main__":  # pragma: no cover - manual execution hook
    run_cli()
