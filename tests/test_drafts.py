"""Tests for draft reconciliation."""

import asyncio
from datetime import datetime, timezone

from adaptive_interview.context import Category, Stage
from adaptive_interview.drafts import DraftSnapshot, capture_snapshot, reconcile
from adaptive_interview.segments import DEFAULT_SEGMENT_PLAN

from .fakes import ScriptedEvaluator, ScriptedFollowUps, evaluation, good_answer

SAVED_AT = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)


def _snapshot(**answers):
    return DraftSnapshot(per_segment_answers=answers, last_saved_at=SAVED_AT)


class TestSnapshotParsing:

    def test_legacy_form_keys(self):
        snapshot = DraftSnapshot.from_dict(
            {
                "business_idea": "A booking app for salons",
                "current_challenges": "  ",
                "service_interest": ["Marketing & Growth"],
                "business_stage": "growing",
                "currentStep": "3",
                "last_saved_at": "2024-05-01T12:30:00Z",
            }
        )
        assert snapshot.per_segment_answers == {"business_idea": "A booking app for salons"}
        assert snapshot.selections == ["Marketing & Growth"]
        assert snapshot.stage_hint is Stage.GROWING
        assert snapshot.current_step_hint == 3
        assert snapshot.last_saved_at == SAVED_AT

    def test_malformed_fields_mean_unanswered(self):
        snapshot = DraftSnapshot.from_dict(
            {
                "per_segment_answers": {"business_idea": 42, "goals": None},
                "selections": "not a list",
                "currentStep": "soon",
                "last_saved_at": "yesterday",
                "business_stage": "enormous",
            }
        )
        assert snapshot == DraftSnapshot()

    def test_none_gives_empty_snapshot(self):
        assert DraftSnapshot.from_dict(None) == DraftSnapshot()


class TestReconcile:

    def test_resumes_at_first_unanswered_segment(self):
        snapshot = _snapshot(
            business_idea="An online shop for vintage records",
            current_challenges="Too few repeat buyers",
        )

        state = reconcile(snapshot, DEFAULT_SEGMENT_PLAN)

        assert state.current_index == 2
        assert not state.fresh_start
        assert [s.is_complete for s in state.segments] == [True, True, False, False]
        first = state.segments[0]
        assert [m.role for m in first.messages] == ["assistant", "user"]
        assert first.messages[0].content == DEFAULT_SEGMENT_PLAN[0].initial_question
        assert first.final_answer == "An online shop for vintage records"
        assert state.segments[2].context.inferred_category is Category.RETAIL_ECOMMERCE

    def test_reconciling_twice_is_identical(self):
        snapshot = _snapshot(business_idea="An online shop for vintage records")
        assert reconcile(snapshot, DEFAULT_SEGMENT_PLAN) == reconcile(
            snapshot, DEFAULT_SEGMENT_PLAN
        )

    def test_complete_draft_starts_fresh(self):
        snapshot = DraftSnapshot(
            per_segment_answers={
                "business_idea": "Idea",
                "current_challenges": "Challenges",
                "immediate_goals": "Goals",
            },
            selections=["Operations & Systems"],
        )
        state = reconcile(snapshot, DEFAULT_SEGMENT_PLAN)
        assert state.fresh_start
        assert state.current_index == 0
        assert not any(s.is_complete for s in state.segments)

    def test_stage_hint_wins_over_inference(self):
        snapshot = DraftSnapshot(
            per_segment_answers={"business_idea": "Just an idea for a software tool"},
            stage_hint=Stage.ESTABLISHED,
        )
        state = reconcile(snapshot, DEFAULT_SEGMENT_PLAN)
        context = state.segments[1].context
        assert context.inferred_stage is Stage.ESTABLISHED
        assert context.inferred_category is Category.TECH_SAAS

    def test_no_snapshot(self):
        state = reconcile(None, DEFAULT_SEGMENT_PLAN)
        assert state.current_index == 0
        assert len(state.segments) == len(DEFAULT_SEGMENT_PLAN)

    def test_gap_before_answered_segment(self):
        snapshot = _snapshot(current_challenges="Cash flow")
        state = reconcile(snapshot, DEFAULT_SEGMENT_PLAN)
        assert state.current_index == 0
        assert state.segments[1].is_complete


class TestEngineRoundTrip:

    def test_engine_built_from_draft_and_captured_again(self):
        snapshot = _snapshot(
            business_idea="An online shop for vintage records",
            current_challenges="Too few repeat buyers",
        )
        engine = reconcile(snapshot, DEFAULT_SEGMENT_PLAN).build_engine(
            DEFAULT_SEGMENT_PLAN,
            evaluator=ScriptedEvaluator([]),
            follow_up_agent=ScriptedFollowUps(),
        )
        assert engine.current_index == 2
        assert engine.start() == DEFAULT_SEGMENT_PLAN[2].initial_question

        captured = capture_snapshot(engine)
        assert captured.per_segment_answers == {
            "business_idea": "An online shop for vintage records",
            "current_challenges": "Too few repeat buyers",
        }
        assert captured.current_step_hint == 3
        assert captured.stage_hint is Stage.EARLY
        restored = DraftSnapshot.from_dict(captured.to_dict())
        assert restored.per_segment_answers == captured.per_segment_answers

    def test_unfinished_segment_replies_survive_a_resume(self):
        engine = reconcile(None, DEFAULT_SEGMENT_PLAN).build_engine(
            DEFAULT_SEGMENT_PLAN,
            evaluator=ScriptedEvaluator([evaluation(3, False), good_answer()]),
            follow_up_agent=ScriptedFollowUps(["Who buys them?"]),
        )
        engine.start()
        asyncio.run(engine.submit_answer("Vintage records"))
        assert engine.current_segment.follow_up_count == 1

        captured = capture_snapshot(engine)
        assert captured.per_segment_answers == {}
        assert captured.partial_answers == {"business_idea": "Vintage records"}

        restored = DraftSnapshot.from_dict(captured.to_dict())
        state = reconcile(restored, DEFAULT_SEGMENT_PLAN)
        segment = state.segments[0]
        assert state.current_index == 0
        assert not segment.is_complete
        assert segment.user_replies() == ["Vintage records"]

        resumed = state.build_engine(
            DEFAULT_SEGMENT_PLAN,
            evaluator=ScriptedEvaluator([good_answer()]),
            follow_up_agent=ScriptedFollowUps(),
        )
        assert resumed.start() == DEFAULT_SEGMENT_PLAN[0].initial_question
        asyncio.run(resumed.submit_answer("An online shop for collectors"))
        assert resumed.segments[0].final_answer == (
            "Vintage records\n\nAn online shop for collectors"
        )
