"""Infer categorical context from free-text answers and carry it forward."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    FrozenSet,
    Optional,
    Sequence,
    Tuple,
)

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .interview_engine import Segment


class Category(str, Enum):
    """Business domain categories recognised by the engine."""

    TECH_SAAS = "tech_saas"
    RETAIL_ECOMMERCE = "retail_ecommerce"
    SERVICE = "service"
    OTHER = "other"

    @classmethod
    def from_string(cls, value: str | None) -> Optional["Category"]:
        if not value:
            return None
        normalized = value.strip().lower().replace("-", "_")
        for candidate in cls:
            if candidate.value == normalized:
                return candidate
        return None


class Stage(str, Enum):
    """Maturity stages recognised by the engine."""

    IDEA = "idea"
    EARLY = "early"
    GROWING = "growing"
    ESTABLISHED = "established"

    @classmethod
    def from_string(cls, value: str | None) -> Optional["Stage"]:
        if not value:
            return None
        normalized = value.strip().lower()
        for candidate in cls:
            if candidate.value == normalized:
                return candidate
        return None


# Priority order matters: the first entry with a matching keyword wins.
CATEGORY_KEYWORDS: Tuple[Tuple[Category, Tuple[str, ...]], ...] = (
    (
        Category.TECH_SAAS,
        ("saas", "software", "app", "tech", "platform", "api"),
    ),
    (
        Category.RETAIL_ECOMMERCE,
        (
            "shop",
            "store",
            "retail",
            "ecommerce",
            "e-commerce",
            "product",
            "sell",
        ),
    ),
    (
        Category.SERVICE,
        ("service", "consulting", "agency", "freelance", "client"),
    ),
)

STAGE_KEYWORDS: Tuple[Tuple[Stage, Tuple[str, ...]], ...] = (
    (Stage.IDEA, ("idea", "starting", "planning", "concept")),
    (Stage.ESTABLISHED, ("established", "mature", "years", "existing")),
    (Stage.GROWING, ("growing", "scaling", "expanding", "growth")),
)


def infer_category(text: str) -> Category:
    """Classify free text into a business category."""

    lower = text.lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in lower for keyword in keywords):
            return category
    return Category.OTHER


def infer_stage(text: str) -> Stage:
    """Classify free text into a maturity stage."""

    lower = text.lower()
    for stage, keywords in STAGE_KEYWORDS:
        if any(keyword in lower for keyword in keywords):
            return stage
    return Stage.EARLY


@dataclass(frozen=True, slots=True)
class ContextFragment:
    """Inferred categorical metadata carried between segments."""

    inferred_category: Optional[Category] = None
    inferred_stage: Optional[Stage] = None
    source_segment_ids: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_empty(self) -> bool:
        return self.inferred_category is None and self.inferred_stage is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "inferred_category": (
                self.inferred_category.value
                if self.inferred_category
                else None
            ),
            "inferred_stage": (
                self.inferred_stage.value if self.inferred_stage else None
            ),
            "source_segment_ids": sorted(self.source_segment_ids),
        }


def infer_fragment(segment_id: str, text: str) -> ContextFragment:
    """Build a context fragment from one segment's answer."""

    if not text.strip():
        return ContextFragment()
    return ContextFragment(
        inferred_category=infer_category(text),
        inferred_stage=infer_stage(text),
        source_segment_ids=frozenset({segment_id}),
    )


def merge_context(
    existing: ContextFragment,
    new_fragment: ContextFragment,
) -> ContextFragment:
    """Fill only the gaps of ``existing``; earlier inferences win."""

    if new_fragment.is_empty:
        return existing
    category = existing.inferred_category or new_fragment.inferred_category
    stage = existing.inferred_stage or new_fragment.inferred_stage
    return ContextFragment(
        inferred_category=category,
        inferred_stage=stage,
        source_segment_ids=(
            existing.source_segment_ids | new_fragment.source_segment_ids
        ),
    )


def build_collaborator_context(
    segments: Sequence["Segment"],
    index: int,
) -> Dict[str, Any]:
    """Assemble the context payload shared with the LLM collaborators."""

    previous_answers: Dict[str, str] = {}
    business_idea: Optional[str] = None
    for segment in segments[:index]:
        if not segment.final_answer:
            continue
        previous_answers[segment.definition.answer_key] = segment.final_answer
        if business_idea is None and segment.definition.seeds_context:
            business_idea = segment.final_answer
    fragment = segments[index].context if segments else ContextFragment()
    payload: Dict[str, Any] = {"previousAnswers": previous_answers}
    if business_idea:
        payload["businessIdea"] = business_idea
    if fragment.inferred_category is not None:
        payload["industry"] = fragment.inferred_category.value
    if fragment.inferred_stage is not None:
        payload["businessStage"] = fragment.inferred_stage.value
    return payload
