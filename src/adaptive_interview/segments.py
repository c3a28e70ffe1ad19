"""Segment plan and per-segment detail thresholds for the interview."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Sequence, cast


class SegmentKind(str, Enum):
    """How a segment collects its answer."""

    FREE_TEXT = "free_text"
    SELECTION = "selection"


@dataclass(frozen=True, slots=True)
class SegmentThreshold:
    """Detail demanded from an answer before the segment may advance."""

    detail_threshold: int
    max_length: int


@dataclass(frozen=True, slots=True)
class SegmentDefinition:
    """Represents one configured interview topic."""

    id: str
    title: str
    initial_question: str
    answer_key: str
    threshold: SegmentThreshold
    max_follow_ups: int
    kind: SegmentKind = SegmentKind.FREE_TEXT
    seeds_context: bool = False
    options: tuple[str, ...] = ()


SERVICE_OPTIONS: tuple[str, ...] = (
    "Strategy & Planning",
    "Product Development",
    "Marketing & Growth",
    "Operations & Systems",
    "Technology & Automation",
)


DEFAULT_SEGMENT_PLAN: List[SegmentDefinition] = [
    SegmentDefinition(
        id="business_idea",
        title="Your Business",
        initial_question=(
            "Let's start with the basics. What's your business idea or "
            "current venture?"
        ),
        answer_key="business_idea",
        threshold=SegmentThreshold(detail_threshold=7, max_length=150),
        max_follow_ups=3,
        seeds_context=True,
    ),
    SegmentDefinition(
        id="challenges",
        title="Current Challenges",
        initial_question=(
            "Now, what are your biggest operational challenges right now?"
        ),
        answer_key="current_challenges",
        threshold=SegmentThreshold(detail_threshold=6, max_length=200),
        max_follow_ups=3,
    ),
    SegmentDefinition(
        id="goals",
        title="Your Goals",
        initial_question="What do you want to achieve in the next 3-6 months?",
        answer_key="immediate_goals",
        threshold=SegmentThreshold(detail_threshold=5, max_length=150),
        max_follow_ups=3,
    ),
    SegmentDefinition(
        id="services",
        title="How We Can Help",
        initial_question=(
            "Which of our service areas would be most valuable to you?"
        ),
        answer_key="service_interest",
        threshold=SegmentThreshold(detail_threshold=1, max_length=0),
        max_follow_ups=0,
        kind=SegmentKind.SELECTION,
        options=SERVICE_OPTIONS,
    ),
]


def validate_segment_plan(plan: Sequence[SegmentDefinition]) -> None:
    """Reject plans that would break the engine's invariants."""

    if not plan:
        raise ValueError("Segment plan must contain at least one segment.")
    seen_ids: set[str] = set()
    seen_keys: set[str] = set()
    for definition in plan:
        if not definition.id.strip():
            raise ValueError("Segment ids must not be blank.")
        if definition.id in seen_ids:
            raise ValueError(f"Duplicate segment id: {definition.id}")
        if definition.answer_key in seen_keys:
            raise ValueError(
                f"Duplicate answer key: {definition.answer_key}"
            )
        seen_ids.add(definition.id)
        seen_keys.add(definition.answer_key)
        if not definition.initial_question.strip():
            raise ValueError(
                f"Segment '{definition.id}' needs an initial question."
            )
        threshold = definition.threshold
        if not 1 <= threshold.detail_threshold <= 10:
            raise ValueError(
                f"Segment '{definition.id}' detail threshold must be "
                "between 1 and 10."
            )
        if threshold.max_length < 0:
            raise ValueError(
                f"Segment '{definition.id}' max length must be >= 0."
            )
        if definition.max_follow_ups < 0:
            raise ValueError(
                f"Segment '{definition.id}' max follow-ups must be >= 0."
            )
        if definition.kind is SegmentKind.SELECTION:
            if definition.max_follow_ups != 0:
                raise ValueError(
                    f"Selection segment '{definition.id}' cannot ask "
                    "follow-up questions."
                )
            if not definition.options:
                raise ValueError(
                    f"Selection segment '{definition.id}' needs options."
                )


def load_segment_plan(path: Path) -> List[SegmentDefinition]:
    """Read a segment plan from a JSON file and validate it."""

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ValueError(f"Unable to read segment plan {path}: {exc}") from exc
    if isinstance(raw, dict):
        raw = cast(Dict[str, Any], raw).get("segments")
    if not isinstance(raw, list):
        raise ValueError("Segment plan must be a JSON list of segments.")
    plan: List[SegmentDefinition] = []
    for entry in cast(List[Any], raw):
        if not isinstance(entry, dict):
            raise ValueError("Each segment entry must be a JSON object.")
        plan.append(_definition_from_dict(cast(Dict[str, Any], entry)))
    validate_segment_plan(plan)
    return plan


def _definition_from_dict(data: Dict[str, Any]) -> SegmentDefinition:
    try:
        segment_id = str(data["id"]).strip()
        kind = SegmentKind(str(data.get("kind", SegmentKind.FREE_TEXT.value)))
        return SegmentDefinition(
            id=segment_id,
            title=str(data.get("title", segment_id)).strip(),
            initial_question=str(data["initial_question"]).strip(),
            answer_key=str(data.get("answer_key", segment_id)).strip(),
            threshold=SegmentThreshold(
                detail_threshold=int(data.get("detail_threshold", 1)),
                max_length=int(data.get("max_length", 0)),
            ),
            max_follow_ups=int(data.get("max_follow_ups", 0)),
            kind=kind,
            seeds_context=bool(data.get("seeds_context", False)),
            options=tuple(
                str(option).strip()
                for option in data.get("options", [])
                if str(option).strip()
            ),
        )
    except KeyError as exc:
        raise ValueError(f"Segment entry is missing {exc}.") from exc
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid segment entry: {exc}") from exc
