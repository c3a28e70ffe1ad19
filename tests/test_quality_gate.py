"""Tests for the business-case quality gate."""

from dataclasses import replace

from adaptive_interview.context import Category, Stage
from adaptive_interview.prompts import STAGE_TIMELINES
from adaptive_interview.quality_gate import (
    BusinessCaseDocument,
    ProposedSolution,
    check_quality,
    quality_summary,
)

from .fakes import good_document


class TestCheckQuality:

    def test_good_document_scores_full_marks(self):
        result = check_quality(
            good_document(),
            category=Category.RETAIL_ECOMMERCE,
            stage=Stage.EARLY,
        )
        assert result.passed
        assert result.score == 10.0
        assert result.issues == ()
        assert result.suggestions == ()
        assert result.missing_elements == ()

    def test_short_unquantified_problem_statement(self):
        problem = "Our checkout flow is slow and confusing."
        assert len(problem) == 40
        document = replace(good_document(), problem_statement=problem)

        result = check_quality(document, category=Category.RETAIL_ECOMMERCE)

        assert result.score <= 7
        assert result.score == 7.0
        assert len(result.issues) == 2
        assert "too vague or short" in result.issues[0]
        assert "lacks quantified impact" in result.issues[1]

    def test_symptoms_without_root_cause(self):
        document = replace(
            good_document(),
            problem_statement=(
                "We are not getting enough customers and the team is "
                "struggling with 3 products."
            ),
        )
        result = check_quality(document)
        assert result.score == 8.5
        assert "symptoms, not root causes" in result.issues[0]
        assert any("numbers context" in s for s in result.suggestions)

    def test_symptom_with_cause_is_accepted(self):
        document = replace(
            good_document(),
            problem_statement=(
                "We are not getting repeat customers because 3 in 4 parcels "
                "arrive late each month."
            ),
        )
        assert check_quality(document).score == 10.0

    def test_missing_category_metrics(self):
        result = check_quality(good_document(), category=Category.SERVICE)
        assert result.score == 9.0
        assert result.missing_elements == (
            "Missing industry-specific metrics: Utilization Rate, Project "
            "Margin, Client Acquisition Cost",
        )

    def test_metrics_ignored_without_category(self):
        document = replace(
            good_document(),
            current_state=(
                "We run a small shop with steady footfall and a loyal base of "
                "regulars who visit us every single weekend."
            ),
        )
        assert check_quality(document).score == 10.0

    def test_each_weak_objective_and_outcome_is_penalised(self):
        document = replace(
            good_document(),
            objectives=["Be great", "Delight people", "Grow 20% by June"],
            expected_outcomes=["Happier customers", "Reduce returns by 5%"],
        )
        result = check_quality(document)
        assert result.score == 8.7
        assert len(result.issues) == 3

    def test_solution_rules(self):
        thin = replace(
            good_document(),
            proposed_solution=[ProposedSolution(pillar="Ads", actions=["Run ads"])],
        )
        assert check_quality(thin).score == 9.5
        assert check_quality(replace(good_document(), proposed_solution=[])).score == 8.0

    def test_score_is_clamped(self):
        document = BusinessCaseDocument(objectives=["nice"] * 10)
        result = check_quality(document, category=Category.OTHER)
        assert result.score == 1.0
        assert not result.passed

    def test_adding_a_deficiency_never_raises_the_score(self):
        base = check_quality(good_document()).score
        without_risk = check_quality(replace(good_document(), risk_assessment="")).score
        without_state = check_quality(replace(good_document(), current_state="")).score
        assert without_risk <= base
        assert without_state <= base


class TestAdvisorySuggestions:

    def test_low_impact_high_effort_and_missing_next_steps(self):
        solution = ProposedSolution(
            pillar="Rebuild",
            actions=["Replatform", "Migrate data"],
            effort="high",
            impact="low",
        )
        document = replace(
            good_document(),
            proposed_solution=[solution],
            next_steps=[],
        )
        result = check_quality(document, stage=Stage.IDEA)
        assert result.score == 10.0
        assert any("low impact with high effort" in s for s in result.suggestions)
        assert any(STAGE_TIMELINES[Stage.IDEA] in s for s in result.suggestions)

    def test_unquantified_risk(self):
        document = replace(
            good_document(),
            risk_assessment=(
                "A supplier delay could slow our launch and upset early "
                "customers considerably."
            ),
        )
        result = check_quality(document)
        assert result.score == 10.0
        assert any("quantifying risk" in s for s in result.suggestions)


class TestDocumentParsing:

    def test_from_dict_is_tolerant(self):
        document = BusinessCaseDocument.from_dict(
            {
                "problem_statement": "  Slow checkout  ",
                "objectives": "Increase sales",
                "proposed_solution": [
                    "not an object",
                    {"pillar": "Ads", "actions": ["A", ""], "effort": "HIGH"},
                ],
                "next_steps": None,
            }
        )
        assert document.problem_statement == "Slow checkout"
        assert document.objectives == ["Increase sales"]
        assert len(document.proposed_solution) == 1
        assert document.proposed_solution[0].actions == ["A"]
        assert document.proposed_solution[0].effort == "high"
        assert document.next_steps == []
        assert BusinessCaseDocument.from_dict(document.to_dict()) == document

    def test_summary(self):
        result = check_quality(BusinessCaseDocument())
        summary = quality_summary(result)
        assert summary.startswith("Quality check: NEEDS IMPROVEMENT")
        assert f"issues={len(result.issues)}" in summary
