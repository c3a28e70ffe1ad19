"""Segment state machine driving the adaptive interview."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import (
    Any,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Tuple,
)
from uuid import uuid4

from .context import (
    Category,
    ContextFragment,
    Stage,
    build_collaborator_context,
    infer_fragment,
    merge_context,
)
from .decision_policy import Verdict, decide
from .evaluation_agent import EvaluationResult
from .segments import SegmentDefinition, SegmentKind

logger = logging.getLogger(__name__)


class EnginePhase(str, Enum):
    """Lifecycle of an interview."""

    INTERVIEW = "interview"
    REVIEW = "review"
    SUBMITTED = "submitted"


class EngineStateError(RuntimeError):
    """Raised when an operation is not valid in the engine's current state."""


class EngineBusyError(EngineStateError):
    """Raised when an answer arrives while another is still being evaluated."""


class InterviewClosedError(EngineStateError):
    """Raised for any change requested after submission or teardown."""


class AnswerEvaluator(Protocol):
    async def evaluate(
        self,
        question: str,
        answer: str,
        context: Mapping[str, Any] | None = None,
    ) -> EvaluationResult:
        ...


class FollowUpGenerator(Protocol):
    async def generate(
        self,
        original_question: str,
        user_response: str,
        context: Mapping[str, Any] | None = None,
        *,
        improvements: Sequence[str] = (),
    ) -> Optional[str]:
        ...


@dataclass(frozen=True, slots=True)
class Message:
    """A single entry of a segment's conversation log."""

    id: str
    role: str
    content: str
    timestamp: datetime

    @classmethod
    def create(cls, role: str, content: str) -> "Message":
        return cls(
            id=f"msg-{uuid4().hex[:12]}",
            role=role,
            content=content,
            timestamp=datetime.now(timezone.utc),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }


def _empty_messages() -> List[Message]:
    return []


@dataclass(slots=True)
class Segment:
    """Runtime state of one interview topic."""

    definition: SegmentDefinition
    messages: List[Message] = field(default_factory=_empty_messages)
    is_complete: bool = False
    follow_up_count: int = 0
    context: ContextFragment = field(default_factory=ContextFragment)
    final_answer: str = ""

    @property
    def id(self) -> str:
        return self.definition.id

    @property
    def title(self) -> str:
        return self.definition.title

    @property
    def initial_question(self) -> str:
        return self.definition.initial_question

    @property
    def max_follow_ups(self) -> int:
        return self.definition.max_follow_ups

    def latest_question(self) -> str:
        for message in reversed(self.messages):
            if message.role == "assistant":
                return message.content
        return self.initial_question

    def user_replies(self) -> List[str]:
        return [
            message.content
            for message in self.messages
            if message.role == "user"
        ]


def create_segments(plan: Sequence[SegmentDefinition]) -> List[Segment]:
    return [Segment(definition=definition) for definition in plan]


@dataclass(slots=True)
class TurnOutcome:
    """What the engine did with one user answer."""

    segment_id: str
    verdict: Optional[Verdict] = None
    evaluation: Optional[EvaluationResult] = None
    follow_up_question: Optional[str] = None
    next_question: Optional[str] = None
    entered_review: bool = False
    discarded: bool = False


@dataclass(frozen=True, slots=True)
class SegmentView:
    """Editable view of a completed segment shown during review."""

    index: int
    segment_id: str
    title: str
    question: str
    answer: str
    follow_up_count: int


@dataclass(frozen=True, slots=True)
class InterviewSubmission:
    """Answers handed to the document generation collaborator."""

    answers: Dict[str, str]
    selections: Tuple[str, ...]
    category: Optional[Category]
    stage: Optional[Stage]
    submitted_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "answers": dict(self.answers),
            "selections": list(self.selections),
            "category": self.category.value if self.category else None,
            "stage": self.stage.value if self.stage else None,
            "submitted_at": self.submitted_at.isoformat(),
        }


class InterviewEngine:
    """Owns the segments of one interview and applies each turn's verdict."""

    def __init__(
        self,
        plan: Sequence[SegmentDefinition],
        *,
        evaluator: AnswerEvaluator,
        follow_up_agent: FollowUpGenerator,
        segments: Optional[List[Segment]] = None,
        current_index: int = 0,
        selections: Sequence[str] = (),
    ) -> None:
        self._plan = list(plan)
        self._segments = segments if segments is not None else create_segments(plan)
        if len(self._segments) != len(self._plan):
            raise ValueError("Segments do not match the configured plan.")
        self._evaluator = evaluator
        self._follow_up_agent = follow_up_agent
        self._selections: List[str] = list(selections)
        self._phase = EnginePhase.INTERVIEW
        self._current_index: Optional[int] = current_index
        self._pending = False
        self._epoch = 0
        self._closed = False
        self._editing_index: Optional[int] = None
        if not 0 <= current_index < len(self._segments):
            raise ValueError(f"Invalid current segment index: {current_index}")
        if self._segments[current_index].is_complete:
            self._advance()

    @property
    def phase(self) -> EnginePhase:
        return self._phase

    @property
    def segments(self) -> Tuple[Segment, ...]:
        return tuple(self._segments)

    @property
    def current_index(self) -> Optional[int]:
        return self._current_index

    @property
    def current_segment(self) -> Optional[Segment]:
        if self._current_index is None:
            return None
        return self._segments[self._current_index]

    @property
    def selections(self) -> Tuple[str, ...]:
        return tuple(self._selections)

    @property
    def is_busy(self) -> bool:
        return self._pending

    @property
    def is_closed(self) -> bool:
        return self._closed or self._phase is EnginePhase.SUBMITTED

    @property
    def editing_index(self) -> Optional[int]:
        return self._editing_index

    @property
    def context(self) -> ContextFragment:
        merged = ContextFragment()
        for segment in self._segments:
            merged = merge_context(merged, segment.context)
        return merged

    def start(self) -> Optional[str]:
        """Seed the current segment with its opening question."""

        self._ensure_open()
        segment = self.current_segment
        if segment is None:
            return None
        if not segment.messages:
            segment.messages.append(
                Message.create("assistant", segment.initial_question)
            )
        return segment.latest_question()

    async def submit_answer(self, text: str) -> TurnOutcome:
        """Evaluate a free-text answer for the current segment."""

        self._ensure_phase(EnginePhase.INTERVIEW)
        if self._pending:
            raise EngineBusyError(
                "An answer for this segment is still being evaluated."
            )
        answer = text.strip()
        if not answer:
            raise ValueError("Answer must not be blank.")
        index = self._require_current_index()
        segment = self._segments[index]
        if segment.definition.kind is SegmentKind.SELECTION:
            raise EngineStateError(
                f"Segment '{segment.id}' expects a selection, not free text."
            )
        if not segment.messages:
            self.start()
        question = segment.latest_question()
        saved_contexts = [item.context for item in self._segments[index:]]
        reply = Message.create("user", answer)
        segment.messages.append(reply)
        if segment.definition.seeds_context:
            self._absorb_context(index, answer)
        collaborator_context = build_collaborator_context(
            self._segments, index
        )

        epoch = self._epoch
        self._pending = True
        try:
            evaluation = await self._evaluator.evaluate(
                question, answer, collaborator_context
            )
            if self._epoch != epoch:
                return self._discarded(segment)
            verdict = decide(
                evaluation,
                len(answer),
                segment.definition.threshold,
                segment.follow_up_count,
                segment.max_follow_ups,
            )
            follow_up: Optional[str] = None
            if verdict.asks_follow_up:
                follow_up = await self._follow_up_agent.generate(
                    question,
                    answer,
                    collaborator_context,
                    improvements=evaluation.suggested_improvements,
                )
                if self._epoch != epoch:
                    return self._discarded(segment)
                if follow_up is None:
                    follow_up = evaluation.follow_up_question
                if follow_up is None:
                    logger.info(
                        "No follow-up available for '%s'; advancing.",
                        segment.id,
                    )
                    verdict = Verdict.ADVANCE
        except BaseException:
            if self._epoch == epoch:
                self._rollback_turn(index, reply, saved_contexts)
            raise
        finally:
            self._pending = False

        outcome = TurnOutcome(
            segment_id=segment.id,
            verdict=verdict,
            evaluation=evaluation,
        )
        logger.debug(
            "Segment '%s' scored %s (%s) -> %s",
            segment.id,
            evaluation.detail_score,
            evaluation.source,
            verdict.value,
        )
        if follow_up is not None and verdict.asks_follow_up:
            segment.messages.append(Message.create("assistant", follow_up))
            segment.follow_up_count += 1
            assert segment.follow_up_count <= segment.max_follow_ups, (
                f"Follow-up budget exceeded for segment '{segment.id}'"
            )
            outcome.follow_up_question = follow_up
            return outcome

        self._complete_segment(segment)
        outcome.next_question = self._advance()
        outcome.entered_review = self._phase is EnginePhase.REVIEW
        return outcome

    def confirm_selection(self, options: Sequence[str]) -> Optional[str]:
        """Complete a selection segment with the chosen options."""

        self._ensure_phase(EnginePhase.INTERVIEW)
        if self._pending:
            raise EngineBusyError("An evaluation is still in flight.")
        index = self._require_current_index()
        segment = self._segments[index]
        if segment.definition.kind is not SegmentKind.SELECTION:
            raise EngineStateError(
                f"Segment '{segment.id}' does not accept a selection."
            )
        chosen = self._validate_selection(segment, options)
        if not segment.messages:
            self.start()
        self._selections = chosen
        segment.messages.append(Message.create("user", ", ".join(chosen)))
        self._complete_segment(segment)
        return self._advance()

    def reopen_segment(self, index: int) -> SegmentView:
        """Return a completed segment for editing during review."""

        self._ensure_phase(EnginePhase.REVIEW)
        view = self._view(index)
        self._editing_index = index
        return view

    def edit_answer(self, index: int, text: str) -> SegmentView:
        """Replace a reviewed free-text answer without re-evaluating it."""

        self._ensure_phase(EnginePhase.REVIEW)
        segment = self._segment_at(index)
        if segment.definition.kind is SegmentKind.SELECTION:
            raise EngineStateError(
                f"Use edit_selection for segment '{segment.id}'."
            )
        answer = text.strip()
        if not answer:
            raise ValueError("Answer must not be blank.")
        segment.final_answer = answer
        self._editing_index = None
        return self._view(index)

    def edit_selection(self, index: int, options: Sequence[str]) -> SegmentView:
        self._ensure_phase(EnginePhase.REVIEW)
        segment = self._segment_at(index)
        if segment.definition.kind is not SegmentKind.SELECTION:
            raise EngineStateError(
                f"Segment '{segment.id}' does not accept a selection."
            )
        self._selections = self._validate_selection(segment, options)
        segment.final_answer = ", ".join(self._selections)
        self._editing_index = None
        return self._view(index)

    def _view(self, index: int) -> SegmentView:
        segment = self._segment_at(index)
        return SegmentView(
            index=index,
            segment_id=segment.id,
            title=segment.title,
            question=segment.initial_question,
            answer=segment.final_answer,
            follow_up_count=segment.follow_up_count,
        )

    def review(self) -> List[SegmentView]:
        """List every segment's frozen answer for the final review."""

        self._ensure_phase(EnginePhase.REVIEW)
        return [
            self._view(index)
            for index in range(len(self._segments))
        ]

    def submit(self) -> InterviewSubmission:
        """Leave the engine; no further changes are accepted afterwards."""

        self._ensure_phase(EnginePhase.REVIEW)
        context = self.context
        submission = InterviewSubmission(
            answers={
                segment.definition.answer_key: segment.final_answer
                for segment in self._segments
            },
            selections=tuple(self._selections),
            category=context.inferred_category,
            stage=context.inferred_stage,
            submitted_at=datetime.now(timezone.utc),
        )
        self._phase = EnginePhase.SUBMITTED
        self._editing_index = None
        logger.info("Interview submitted with %d segments.", len(self._segments))
        return submission

    def discard(self) -> None:
        """Tear the engine down; late collaborator results are dropped."""

        self._epoch += 1
        self._closed = True

    def _discarded(self, segment: Segment) -> TurnOutcome:
        logger.debug(
            "Dropping stale evaluation for discarded segment '%s'.",
            segment.id,
        )
        return TurnOutcome(segment_id=segment.id, discarded=True)

    def _rollback_turn(
        self,
        index: int,
        reply: Message,
        saved_contexts: Sequence[ContextFragment],
    ) -> None:
        segment = self._segments[index]
        if segment.messages and segment.messages[-1] is reply:
            segment.messages.pop()
        for item, context in zip(self._segments[index:], saved_contexts):
            item.context = context
        logger.debug("Rolled back failed turn for segment '%s'.", segment.id)

    def _absorb_context(self, index: int, answer: str) -> None:
        fragment = infer_fragment(self._segments[index].id, answer)
        for segment in self._segments[index:]:
            segment.context = merge_context(segment.context, fragment)

    def _complete_segment(self, segment: Segment) -> None:
        if segment.definition.kind is SegmentKind.SELECTION:
            segment.final_answer = ", ".join(self._selections)
        else:
            segment.final_answer = "\n\n".join(segment.user_replies())
        segment.is_complete = True

    def _advance(self) -> Optional[str]:
        start = -1 if self._current_index is None else self._current_index
        next_idx = start + 1
        while (
            next_idx < len(self._segments)
            and self._segments[next_idx].is_complete
        ):
            next_idx += 1
        if next_idx >= len(self._segments):
            self._current_index = None
            self._phase = EnginePhase.REVIEW
            logger.info("All segments complete; entering review.")
            return None
        self._current_index = next_idx
        return self.start()

    @staticmethod
    def _validate_selection(
        segment: Segment,
        options: Sequence[str],
    ) -> List[str]:
        chosen: List[str] = []
        allowed = set(segment.definition.options)
        for option in options:
            value = option.strip()
            if not value or value in chosen:
                continue
            if allowed and value not in allowed:
                raise ValueError(f"Unknown option for '{segment.id}': {value}")
            chosen.append(value)
        if not chosen:
            raise ValueError("Select at least one option.")
        return chosen

    def _segment_at(self, index: int) -> Segment:
        if not 0 <= index < len(self._segments):
            raise IndexError(f"No segment at index {index}")
        return self._segments[index]

    def _require_current_index(self) -> int:
        if self._current_index is None:
            raise EngineStateError("No segment is currently active.")
        return self._current_index

    def _ensure_open(self) -> None:
        if self.is_closed:
            raise InterviewClosedError("The interview no longer accepts changes.")

    def _ensure_phase(self, phase: EnginePhase) -> None:
        self._ensure_open()
        if self._phase is not phase:
            raise EngineStateError(
                f"Operation requires the {phase.value} phase; engine is in "
                f"{self._phase.value}."
            )
