"""Rebuild interview state from a persisted, partially completed draft."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, cast

from .context import ContextFragment, Stage, infer_fragment, merge_context
from .interview_engine import InterviewEngine, Message, Segment, create_segments
from .segments import SegmentDefinition, SegmentKind

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Keys written by the legacy web form before segment ids existed.
_LEGACY_ANSWER_KEYS = ("business_idea", "current_challenges", "immediate_goals")
_LEGACY_SELECTION_KEYS = ("service_interest",)
_LEGACY_STAGE_KEYS = ("business_stage", "stage_hint")
_LEGACY_STEP_KEYS = ("currentStep", "current_step", "current_step_hint")


def _empty_answers() -> Dict[str, str]:
    return {}


def _empty_selections() -> List[str]:
    return []


@dataclass(slots=True)
class DraftSnapshot:
    """Externally persisted progress of an unfinished interview."""

    per_segment_answers: Dict[str, str] = field(default_factory=_empty_answers)
    partial_answers: Dict[str, str] = field(default_factory=_empty_answers)
    selections: List[str] = field(default_factory=_empty_selections)
    current_step_hint: Optional[int] = None
    last_saved_at: Optional[datetime] = None
    stage_hint: Optional[Stage] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "DraftSnapshot":
        """Build a snapshot, treating anything unreadable as unanswered."""

        if not data:
            return cls()
        answers: Dict[str, str] = {}
        raw_answers = data.get("per_segment_answers")
        if isinstance(raw_answers, dict):
            for key, value in cast(Dict[Any, Any], raw_answers).items():
                if isinstance(value, str) and value.strip():
                    answers[str(key)] = value.strip()
        partials: Dict[str, str] = {}
        raw_partials = data.get("partial_answers")
        if isinstance(raw_partials, dict):
            for key, value in cast(Dict[Any, Any], raw_partials).items():
                if isinstance(value, str) and value.strip():
                    partials[str(key)] = value.strip()
        for key in _LEGACY_ANSWER_KEYS:
            value = data.get(key)
            if key not in answers and isinstance(value, str) and value.strip():
                answers[key] = value.strip()

        selections: List[str] = []
        raw_selections = data.get("selections")
        if raw_selections is None:
            for key in _LEGACY_SELECTION_KEYS:
                if key in data:
                    raw_selections = data.get(key)
                    break
        if isinstance(raw_selections, list):
            selections = [
                str(item).strip()
                for item in cast(List[Any], raw_selections)
                if str(item).strip()
            ]

        step_hint: Optional[int] = None
        for key in _LEGACY_STEP_KEYS:
            raw_step = data.get(key)
            if raw_step is None or isinstance(raw_step, bool):
                continue
            try:
                step_hint = int(raw_step)
            except (TypeError, ValueError):
                continue
            break

        stage_hint: Optional[Stage] = None
        for key in _LEGACY_STAGE_KEYS:
            raw_stage = data.get(key)
            if isinstance(raw_stage, str):
                stage_hint = Stage.from_string(raw_stage)
                if stage_hint is not None:
                    break

        return cls(
            per_segment_answers=answers,
            partial_answers=partials,
            selections=selections,
            current_step_hint=step_hint,
            last_saved_at=parse_timestamp(
                data.get("last_saved_at") or data.get("updated_at")
            ),
            stage_hint=stage_hint,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "per_segment_answers": dict(self.per_segment_answers),
            "partial_answers": dict(self.partial_answers),
            "selections": list(self.selections),
            "current_step_hint": self.current_step_hint,
            "last_saved_at": (
                self.last_saved_at.isoformat() if self.last_saved_at else None
            ),
            "stage_hint": self.stage_hint.value if self.stage_hint else None,
        }

    def answer_for(self, definition: SegmentDefinition) -> Optional[str]:
        if definition.kind is SegmentKind.SELECTION:
            if self.selections:
                return ", ".join(self.selections)
            return None
        for key in (definition.id, definition.answer_key):
            value = self.per_segment_answers.get(key, "").strip()
            if value:
                return value
        return None

    def partial_for(self, definition: SegmentDefinition) -> Optional[str]:
        for key in (definition.id, definition.answer_key):
            value = self.partial_answers.get(key, "").strip()
            if value:
                return value
        return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(slots=True)
class ReconciledState:
    """Segments and resume point rebuilt from a draft."""

    segments: List[Segment]
    current_index: int
    selections: Tuple[str, ...] = ()
    fresh_start: bool = False

    def build_engine(
        self,
        plan: Sequence[SegmentDefinition],
        **collaborators: Any,
    ) -> InterviewEngine:
        return InterviewEngine(
            plan,
            segments=self.segments,
            current_index=self.current_index,
            selections=self.selections,
            **collaborators,
        )


def _restore_partial(
    segment: Segment,
    snapshot: DraftSnapshot,
    restored_at: datetime,
) -> None:
    definition = segment.definition
    partial = snapshot.partial_for(definition)
    if partial is None or definition.kind is SegmentKind.SELECTION:
        return
    # Left incomplete so the resumed turn is still evaluated.
    segment.messages = [
        Message(
            id=f"{definition.id}-restored-question",
            role="assistant",
            content=definition.initial_question,
            timestamp=restored_at,
        ),
        Message(
            id=f"{definition.id}-restored-partial",
            role="user",
            content=partial,
            timestamp=restored_at,
        ),
    ]


def reconcile(
    snapshot: DraftSnapshot | None,
    plan: Sequence[SegmentDefinition],
) -> ReconciledState:
    """Rebuild segment state from ``snapshot`` and find where to resume.

    Answered segments are marked complete with a two-message log. The first
    unanswered segment becomes current and gets back any partial reply, still
    incomplete. A draft that answers every segment is treated as abandoned
    and produces a fresh interview.
    """

    if snapshot is None:
        return ReconciledState(segments=create_segments(plan), current_index=0)

    answers = [snapshot.answer_for(definition) for definition in plan]
    if all(answer is not None for answer in answers):
        logger.info(
            "Draft saved at %s already answers every segment; starting fresh.",
            snapshot.last_saved_at,
        )
        return ReconciledState(
            segments=create_segments(plan),
            current_index=0,
            fresh_start=True,
        )

    restored_at = snapshot.last_saved_at or _EPOCH
    seed = ContextFragment()
    if snapshot.stage_hint is not None:
        seed = ContextFragment(inferred_stage=snapshot.stage_hint)
    segments: List[Segment] = []
    resume_index: Optional[int] = None
    for index, (definition, answer) in enumerate(zip(plan, answers)):
        segment = Segment(definition=definition)
        if answer is None:
            if resume_index is None:
                resume_index = index
                _restore_partial(segment, snapshot, restored_at)
            segments.append(segment)
            continue
        segment.messages = [
            Message(
                id=f"{definition.id}-restored-question",
                role="assistant",
                content=definition.initial_question,
                timestamp=restored_at,
            ),
            Message(
                id=f"{definition.id}-restored-answer",
                role="user",
                content=answer,
                timestamp=restored_at,
            ),
        ]
        segment.final_answer = answer
        segment.is_complete = True
        segments.append(segment)

    context = seed
    for definition, answer in zip(plan, answers):
        text = answer or snapshot.partial_for(definition)
        if definition.seeds_context and text:
            context = merge_context(context, infer_fragment(definition.id, text))
            break
    if not context.is_empty:
        for segment in segments:
            segment.context = merge_context(segment.context, context)

    assert resume_index is not None
    logger.debug("Resuming draft at segment index %d.", resume_index)
    return ReconciledState(
        segments=segments,
        current_index=resume_index,
        selections=tuple(snapshot.selections),
    )


def capture_snapshot(engine: InterviewEngine) -> DraftSnapshot:
    """Describe the engine's progress for the auto-saver."""

    answers: Dict[str, str] = {}
    for segment in engine.segments:
        if segment.is_complete and segment.final_answer:
            if segment.definition.kind is SegmentKind.SELECTION:
                continue
            answers[segment.definition.answer_key] = segment.final_answer
    partials: Dict[str, str] = {}
    active = engine.current_segment
    if (
        active is not None
        and not active.is_complete
        and active.definition.kind is not SegmentKind.SELECTION
    ):
        replies = active.user_replies()
        if replies:
            partials[active.definition.answer_key] = "\n\n".join(replies)
    current = engine.current_index
    step_hint = (current if current is not None else len(engine.segments)) + 1
    return DraftSnapshot(
        per_segment_answers=answers,
        partial_answers=partials,
        selections=list(engine.selections),
        current_step_hint=step_hint,
        last_saved_at=datetime.now(timezone.utc),
        stage_hint=engine.context.inferred_stage,
    )
