"""Shared session orchestration for adaptive interviews."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional, Sequence, Set
from uuid import uuid4

from .config import AppSettings
from .document_agent import DocumentGenerationAgent
from .draft_store import DraftAutoSaver, DraftRepository
from .drafts import capture_snapshot, reconcile
from .evaluation_agent import ResponseEvaluationAgent
from .follow_up_agent import FollowUpGenerationAgent
from .interview_engine import (
    EnginePhase,
    InterviewEngine,
    InterviewSubmission,
    SegmentView,
    TurnOutcome,
)
from .maf_client import ChatCompletionClient, MAFChatClient
from .quality_gate import (
    BusinessCaseDocument,
    QualityCheckResult,
    check_quality,
    quality_summary,
)

logger = logging.getLogger(__name__)


def _empty_issues() -> List[str]:
    return []


@dataclass(slots=True)
class FinalizedDocument:
    """Last generated business case with its quality verdict."""

    document: BusinessCaseDocument
    quality: QualityCheckResult
    passes: int
    outstanding_issues: List[str] = field(default_factory=_empty_issues)


@dataclass(slots=True)
class InterviewSession:
    """Encapsulates one interview run from first question to document."""

    session_id: str
    engine: InterviewEngine
    repository: DraftRepository
    document_agent: DocumentGenerationAgent
    autosaver: DraftAutoSaver
    quality_max_passes: int = 2
    resumed: bool = False
    submission: Optional[InterviewSubmission] = None
    result: Optional[FinalizedDocument] = None

    @classmethod
    def create(
        cls,
        settings: AppSettings,
        session_id: Optional[str] = None,
        *,
        resume_token: Optional[str] = None,
        chat_client: Optional[ChatCompletionClient] = None,
        repository: Optional[DraftRepository] = None,
    ) -> "InterviewSession":
        """Build a session, restoring any saved draft for ``session_id``."""

        repository = repository or DraftRepository(
            settings.drafts_dir,
            settings.submission_log,
            settings.redis_url,
            max_age_days=settings.draft_max_age_days,
        )
        if resume_token:
            session_id = repository.resolve_resume_token(resume_token)
        session_id = session_id or uuid4().hex
        client = chat_client or MAFChatClient(settings.model)
        timeout = settings.collaborator_timeout
        plan = settings.segment_plan

        snapshot = repository.load_snapshot(session_id)
        state = reconcile(snapshot, plan)
        engine = state.build_engine(
            plan,
            evaluator=ResponseEvaluationAgent(
                chat_client=client, timeout=timeout
            ),
            follow_up_agent=FollowUpGenerationAgent(
                chat_client=client, timeout=timeout
            ),
        )
        resumed = snapshot is not None and not state.fresh_start
        if resumed:
            logger.info(
                "Resuming session %s at segment %s.",
                session_id,
                engine.current_index,
            )
        autosaver = DraftAutoSaver(
            repository,
            session_id,
            lambda: capture_snapshot(engine),
            interval=settings.autosave_interval,
        )
        return cls(
            session_id=session_id,
            engine=engine,
            repository=repository,
            document_agent=DocumentGenerationAgent(
                chat_client=client, timeout=timeout
            ),
            autosaver=autosaver,
            quality_max_passes=settings.quality_max_passes,
            resumed=resumed,
        )

    def start(self) -> Optional[str]:
        """Begin auto-saving and return the question to show first.

        Must be called from inside a running event loop.
        """

        self.autosaver.start()
        if self.engine.phase is not EnginePhase.INTERVIEW:
            return None
        return self.engine.start()

    async def handle_answer(self, text: str) -> TurnOutcome:
        return await self.engine.submit_answer(text)

    def confirm_selection(self, options: Sequence[str]) -> Optional[str]:
        return self.engine.confirm_selection(options)

    def review(self) -> List[SegmentView]:
        return self.engine.review()

    async def submit(self) -> InterviewSubmission:
        """Freeze the interview and archive the submission."""

        submission = self.engine.submit()
        self.submission = submission
        await self.autosaver.stop()
        self.repository.delete_snapshot(self.session_id)
        self.repository.archive_submission(self.session_id, submission)
        return submission

    async def finalize(self) -> FinalizedDocument:
        """Generate the business case and run it through the quality gate.

        Failed checks are fed back as corrections until the document passes,
        ``quality_max_passes`` regenerations have been made, or the gate
        repeats an issue set it already reported. ``DocumentGenerationError``
        propagates unchanged so callers may retry.
        """

        submission = self.submission
        if submission is None:
            raise RuntimeError("Submit the interview before finalizing.")
        corrections: List[str] = []
        seen_signatures: Set[FrozenSet[str]] = set()
        passes = 0
        while True:
            document = await self.document_agent.generate(
                submission, corrections
            )
            passes += 1
            quality = check_quality(
                document,
                category=submission.category,
                stage=submission.stage,
            )
            logger.info("%s", quality_summary(quality))
            if quality.passed:
                break
            signature = frozenset(quality.issues)
            if signature in seen_signatures:
                logger.info(
                    "Quality gate repeated the same issues; stopping retries."
                )
                break
            seen_signatures.add(signature)
            if passes > self.quality_max_passes:
                logger.info(
                    "Maximum quality passes reached (%d).",
                    self.quality_max_passes,
                )
                break
            corrections = list(quality.issues)

        result = FinalizedDocument(
            document=document,
            quality=quality,
            passes=passes,
            outstanding_issues=[] if quality.passed else list(quality.issues),
        )
        self.result = result
        self.repository.archive_submission(
            self.session_id,
            submission,
            document=document.to_dict(),
            quality=quality.to_dict(),
        )
        return result

    def issue_resume_token(self) -> str:
        self.autosaver.save_now()
        return self.repository.issue_resume_token(self.session_id)

    async def close(self) -> None:
        """Stop auto-saving; unfinished interviews are saved one last time."""

        await self.autosaver.stop()
        if self.engine.phase is EnginePhase.SUBMITTED:
            return
        self.autosaver.save_now()
        self.engine.discard()
