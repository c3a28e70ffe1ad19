"""Tests for the follow-on decision policy."""

import pytest

from adaptive_interview.decision_policy import Verdict, decide
from adaptive_interview.segments import DEFAULT_SEGMENT_PLAN, SegmentThreshold

from .fakes import evaluation

FIRST = DEFAULT_SEGMENT_PLAN[0].threshold


class TestDecide:

    def test_short_insufficient_answer_needs_follow_up(self):
        verdict = decide(evaluation(3, False), 15, FIRST, 0, 3)
        assert verdict is Verdict.MANDATORY_FOLLOWUP

    def test_long_answer_advances_even_when_thin(self):
        assert decide(evaluation(3, False), 150, FIRST, 0, 3) is Verdict.ADVANCE

    def test_optional_follow_up_on_first_turn(self):
        verdict = decide(evaluation(6, True, ["add a number"]), 60, FIRST, 0, 3)
        assert verdict is Verdict.OPTIONAL_FOLLOWUP

    def test_optional_follow_up_fires_only_once(self):
        verdict = decide(evaluation(6, True, ["add a number"]), 60, FIRST, 1, 3)
        assert verdict is Verdict.ADVANCE

    def test_optional_requires_improvements(self):
        assert decide(evaluation(7, True), 60, FIRST, 0, 3) is Verdict.ADVANCE

    def test_high_score_advances(self):
        assert decide(evaluation(8, True, ["polish"]), 60, FIRST, 0, 3) is Verdict.ADVANCE

    def test_exhausted_budget_advances(self):
        assert decide(evaluation(2, False), 10, FIRST, 3, 3) is Verdict.ADVANCE

    def test_zero_budget_never_asks(self):
        threshold = SegmentThreshold(detail_threshold=10, max_length=500)
        assert decide(evaluation(2, False), 10, threshold, 0, 0) is Verdict.ADVANCE
        assert decide(evaluation(6, True, ["x"]), 10, threshold, 0, 0) is Verdict.ADVANCE

    def test_is_pure(self):
        result = evaluation(6, True, ["add a number"])
        first = decide(result, 60, FIRST, 0, 3)
        second = decide(result, 60, FIRST, 0, 3)
        assert first is second
        assert result.suggested_improvements == ["add a number"]

    @pytest.mark.parametrize("score", range(1, 11))
    @pytest.mark.parametrize("enough", [True, False])
    def test_follow_up_kinds_are_mutually_exclusive(self, score, enough):
        threshold = SegmentThreshold(detail_threshold=10, max_length=1000)
        verdict = decide(evaluation(score, enough, ["more"]), 5, threshold, 0, 3)
        if enough:
            assert verdict is not Verdict.MANDATORY_FOLLOWUP
        else:
            assert verdict is not Verdict.OPTIONAL_FOLLOWUP

    def test_verdict_flags(self):
        assert Verdict.MANDATORY_FOLLOWUP.asks_follow_up
        assert Verdict.OPTIONAL_FOLLOWUP.asks_follow_up
        assert not Verdict.ADVANCE.asks_follow_up
