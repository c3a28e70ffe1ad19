"""Decide what happens after each evaluated answer."""

from __future__ import annotations

from enum import Enum

from .evaluation_agent import EvaluationResult
from .segments import SegmentThreshold

OPTIONAL_BAND_LOW = 6
OPTIONAL_BAND_HIGH = 8


class Verdict(str, Enum):
    """Outcome of a single interview turn."""

    MANDATORY_FOLLOWUP = "mandatory_followup"
    OPTIONAL_FOLLOWUP = "optional_followup"
    ADVANCE = "advance"

    @property
    def asks_follow_up(self) -> bool:
        return self is not Verdict.ADVANCE


def decide(
    evaluation: EvaluationResult,
    response_length: int,
    threshold: SegmentThreshold,
    follow_up_count: int,
    max_follow_ups: int,
) -> Verdict:
    """Classify a turn; the rules are checked in order.

    A mandatory follow-up needs an insufficient answer that is still short.
    An optional follow-up is offered at most once, on the first turn of a
    segment, for an acceptable answer that the evaluator thinks can improve.
    The two rules cannot both hold because they require opposite values of
    ``has_enough_detail``.
    """

    budget_left = follow_up_count < max_follow_ups
    if (
        not evaluation.has_enough_detail
        and evaluation.detail_score < threshold.detail_threshold
        and response_length < threshold.max_length
        and budget_left
    ):
        return Verdict.MANDATORY_FOLLOWUP
    if (
        evaluation.has_enough_detail
        and OPTIONAL_BAND_LOW <= evaluation.detail_score < OPTIONAL_BAND_HIGH
        and follow_up_count == 0
        and evaluation.suggested_improvements
        and budget_left
    ):
        return Verdict.OPTIONAL_FOLLOWUP
    return Verdict.ADVANCE
