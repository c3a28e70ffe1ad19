"""Rubric-based quality gate for generated business-case documents.

The gate starts every document at 10 points and subtracts a fixed penalty for
each deficiency it detects: symptom-only problem statements, missing
quantification, unmeasurable objectives and outcomes, absent domain metrics,
thin narratives and under-specified solutions. Each deduction is reported as
an issue, usually with a corrective suggestion, so callers can feed the
result back into regeneration.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, cast

from .context import Category, Stage
from .prompts import STAGE_TIMELINES

PASS_SCORE = 7.0
MAX_SCORE = 10.0
MIN_SCORE = 1.0

MIN_PROBLEM_LENGTH = 50
MIN_CURRENT_STATE_LENGTH = 100
MIN_RISK_LENGTH = 50
MIN_OBJECTIVES = 2
MIN_OUTCOMES = 2
MIN_SOLUTION_ACTIONS = 2

SYMPTOM_KEYWORDS: Tuple[str, ...] = (
    "not getting",
    "lack of",
    "need more",
    "want to",
    "don't have",
    "missing",
)
ROOT_CAUSE_KEYWORDS: Tuple[str, ...] = (
    "because",
    "root cause",
    "underlying",
    "systemic",
    "due to",
    "caused by",
    "result of",
)
CAUSAL_CONNECTIVES: Tuple[str, ...] = ("causes", "leads to", "results in")

CATEGORY_METRICS: Dict[Category, Tuple[str, ...]] = {
    Category.TECH_SAAS: (
        "MRR",
        "LTV",
        "CAC",
        "Churn Rate",
        "Conversion Rate",
        "Activation Rate",
        "Net Revenue Retention",
    ),
    Category.RETAIL_ECOMMERCE: (
        "AOV",
        "Conversion Rate",
        "Inventory Turnover",
        "CAC",
        "Return Rate",
        "Customer Lifetime Value",
        "Repeat Purchase Rate",
    ),
    Category.SERVICE: (
        "Utilization Rate",
        "Project Margin",
        "Client Acquisition Cost",
        "NPS",
        "Client Retention Rate",
        "Average Project Value",
    ),
    Category.OTHER: (
        "Revenue Growth",
        "Customer Acquisition Cost",
        "Conversion Rate",
        "Customer Retention",
        "Operational Efficiency",
    ),
}

_NUMBER_RE = re.compile(r"\d+")
_UNIT_RE = re.compile(
    r"£|\$|€|pound|hour|day|week|month|year|percent|%", re.IGNORECASE
)
_MEASURABLE_OBJECTIVE_RE = re.compile(
    r"\d|\b(increase|reduce|improve|achieve|by)\b", re.IGNORECASE
)
_QUANTIFIED_OUTCOME_RE = re.compile(
    r"\d|\b(increase|reduce|improve)", re.IGNORECASE
)


def _string_list(value: Any) -> List[str]:
    if isinstance(value, list):
        return [
            str(item).strip()
            for item in cast(List[Any], value)
            if str(item).strip()
        ]
    if isinstance(value, str) and value.strip():
        return [value.strip()]
    return []


def _empty_strings() -> List[str]:
    return []


@dataclass(slots=True)
class ProposedSolution:
    """One pillar of the proposed plan."""

    pillar: str
    actions: List[str] = field(default_factory=_empty_strings)
    effort: str = ""
    impact: str = ""
    timeline: str = ""
    investment: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProposedSolution":
        return cls(
            pillar=str(data.get("pillar", "")).strip(),
            actions=_string_list(data.get("actions")),
            effort=str(data.get("effort", "")).strip().lower(),
            impact=str(data.get("impact", "")).strip().lower(),
            timeline=str(data.get("timeline", "")).strip(),
            investment=str(data.get("investment", "")).strip(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pillar": self.pillar,
            "actions": list(self.actions),
            "effort": self.effort,
            "impact": self.impact,
            "timeline": self.timeline,
            "investment": self.investment,
        }


def _empty_solutions() -> List[ProposedSolution]:
    return []


@dataclass(slots=True)
class BusinessCaseDocument:
    """Business case produced by the document generation collaborator."""

    problem_statement: str = ""
    objectives: List[str] = field(default_factory=_empty_strings)
    current_state: str = ""
    proposed_solution: List[ProposedSolution] = field(
        default_factory=_empty_solutions
    )
    expected_outcomes: List[str] = field(default_factory=_empty_strings)
    next_steps: List[str] = field(default_factory=_empty_strings)
    risk_assessment: str = ""
    competitive_advantage: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BusinessCaseDocument":
        solutions: List[ProposedSolution] = []
        raw_solutions = data.get("proposed_solution")
        if isinstance(raw_solutions, list):
            for entry in cast(List[Any], raw_solutions):
                if isinstance(entry, dict):
                    solutions.append(
                        ProposedSolution.from_dict(cast(Dict[str, Any], entry))
                    )
        return cls(
            problem_statement=str(data.get("problem_statement") or "").strip(),
            objectives=_string_list(data.get("objectives")),
            current_state=str(data.get("current_state") or "").strip(),
            proposed_solution=solutions,
            expected_outcomes=_string_list(data.get("expected_outcomes")),
            next_steps=_string_list(data.get("next_steps")),
            risk_assessment=str(data.get("risk_assessment") or "").strip(),
            competitive_advantage=str(
                data.get("competitive_advantage") or ""
            ).strip(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "problem_statement": self.problem_statement,
            "objectives": list(self.objectives),
            "current_state": self.current_state,
            "proposed_solution": [
                solution.to_dict() for solution in self.proposed_solution
            ],
            "expected_outcomes": list(self.expected_outcomes),
            "next_steps": list(self.next_steps),
            "risk_assessment": self.risk_assessment,
            "competitive_advantage": self.competitive_advantage,
        }


@dataclass(frozen=True, slots=True)
class QualityCheckResult:
    """Verdict of the quality gate."""

    passed: bool
    score: float
    issues: Tuple[str, ...] = ()
    suggestions: Tuple[str, ...] = ()
    missing_elements: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "passed": self.passed,
            "score": self.score,
            "issues": list(self.issues),
            "suggestions": list(self.suggestions),
            "missing_elements": list(self.missing_elements),
        }


class _Scorecard:
    def __init__(self) -> None:
        self.score = MAX_SCORE
        self.issues: List[str] = []
        self.suggestions: List[str] = []
        self.missing_elements: List[str] = []

    def deduct(
        self,
        penalty: float,
        issue: str,
        suggestion: Optional[str] = None,
    ) -> None:
        self.score -= penalty
        self.issues.append(issue)
        if suggestion:
            self.suggestions.append(suggestion)

    def suggest(self, suggestion: str) -> None:
        self.suggestions.append(suggestion)

    def result(self) -> QualityCheckResult:
        clamped = max(MIN_SCORE, min(MAX_SCORE, self.score))
        score = round(clamped, 1)
        return QualityCheckResult(
            passed=score >= PASS_SCORE,
            score=score,
            issues=tuple(self.issues),
            suggestions=tuple(self.suggestions),
            missing_elements=tuple(self.missing_elements),
        )


def check_quality(
    document: BusinessCaseDocument,
    category: Optional[Category] = None,
    stage: Optional[Stage] = None,
) -> QualityCheckResult:
    """Score ``document`` against the rubric."""

    card = _Scorecard()
    _check_problem_statement(document.problem_statement, card)
    _check_objectives(document.objectives, card)
    _check_outcomes(document.expected_outcomes, card)
    if category is not None:
        _check_category_metrics(document, category, card)
    if len(document.current_state) < MIN_CURRENT_STATE_LENGTH:
        card.deduct(
            0.5,
            "Current state description is too brief (minimum "
            f"{MIN_CURRENT_STATE_LENGTH} characters expected)",
            "Expand the current state with market position and operational "
            "status",
        )
    _check_solutions(document.proposed_solution, card)
    _check_risks(document.risk_assessment, card)
    if not document.next_steps:
        timeline = STAGE_TIMELINES[stage or Stage.EARLY]
        card.suggest(
            "List concrete next steps with stage-appropriate timelines "
            f"({timeline})"
        )
    return card.result()


def _check_problem_statement(problem: str, card: _Scorecard) -> None:
    if len(problem) < MIN_PROBLEM_LENGTH:
        card.deduct(
            2,
            "Problem statement is too vague or short (minimum "
            f"{MIN_PROBLEM_LENGTH} characters expected)",
            "Expand the problem statement to provide more context and detail",
        )
    lower = problem.lower()
    has_symptoms = any(keyword in lower for keyword in SYMPTOM_KEYWORDS)
    has_root_cause = any(keyword in lower for keyword in ROOT_CAUSE_KEYWORDS)
    explains_causation = any(
        connective in lower for connective in CAUSAL_CONNECTIVES
    )
    if (
        has_symptoms
        and not has_root_cause
        and "why" not in lower
        and not explains_causation
    ):
        card.deduct(
            1.5,
            "Problem statement describes symptoms, not root causes",
            "Apply the '5 Whys' to identify the underlying root cause",
        )
    if not _NUMBER_RE.search(problem):
        card.deduct(
            1,
            "Problem statement lacks quantified impact",
            "Include specific numbers: time lost, cost per month, or revenue "
            "at stake",
        )
    elif not _UNIT_RE.search(problem):
        card.suggest(
            "Give numbers context (e.g. '£500 lost per month' or '5 hours "
            "wasted weekly')"
        )


def _check_objectives(objectives: List[str], card: _Scorecard) -> None:
    if len(objectives) < MIN_OBJECTIVES:
        card.deduct(
            1,
            "Too few objectives specified (minimum "
            f"{MIN_OBJECTIVES} expected, recommend 3)",
            "Include at least 2-3 primary strategic objectives",
        )
    for index, objective in enumerate(objectives, start=1):
        if not _MEASURABLE_OBJECTIVE_RE.search(objective):
            card.deduct(
                0.5,
                f'Objective {index} ("{objective[:50]}") is not measurable',
                "Include specific targets (e.g. 'increase conversion by 25%')",
            )


def _check_outcomes(outcomes: List[str], card: _Scorecard) -> None:
    if len(outcomes) < MIN_OUTCOMES:
        card.deduct(
            0.5,
            "Too few expected outcomes specified",
            "Include at least 2-3 expected outcomes with metrics",
        )
    for index, outcome in enumerate(outcomes, start=1):
        if not _QUANTIFIED_OUTCOME_RE.search(outcome):
            card.deduct(
                0.3,
                f"Expected outcome {index} is not quantified",
                f"Make expected outcome {index} more specific with metrics",
            )


def _check_category_metrics(
    document: BusinessCaseDocument,
    category: Category,
    card: _Scorecard,
) -> None:
    metrics = CATEGORY_METRICS[category]
    corpus = " ".join(
        [
            document.problem_statement,
            document.current_state,
            *document.objectives,
            *document.expected_outcomes,
        ]
    ).lower()
    for metric in metrics:
        lowered = metric.lower()
        if lowered in corpus or lowered.replace(" ", "") in corpus:
            return
    headline = ", ".join(metrics[:3])
    card.deduct(
        1,
        f"No {category.value} metrics referenced",
        f"Consider including industry-relevant metrics: {headline}",
    )
    card.missing_elements.append(f"Missing industry-specific metrics: {headline}")


def _check_solutions(
    solutions: List[ProposedSolution],
    card: _Scorecard,
) -> None:
    if not solutions:
        card.deduct(
            2,
            "No proposed solutions provided",
            "Add at least one solution pillar with concrete actions",
        )
        return
    for index, solution in enumerate(solutions, start=1):
        if len(solution.actions) < MIN_SOLUTION_ACTIONS:
            card.deduct(
                0.5,
                f"Proposed solution {index} has too few actions (minimum "
                f"{MIN_SOLUTION_ACTIONS} expected)",
                f"Break proposed solution {index} into concrete actions",
            )
        if solution.impact == "low" and solution.effort == "high":
            card.suggest(
                f"Proposed solution {index} might need reconsideration: low "
                "impact with high effort"
            )


def _check_risks(risk_assessment: str, card: _Scorecard) -> None:
    if len(risk_assessment) < MIN_RISK_LENGTH:
        card.deduct(
            0.5,
            "Risk assessment is too brief",
            "Expand the risk assessment with likely business impact",
        )
    elif not _NUMBER_RE.search(risk_assessment):
        card.suggest(
            "Consider quantifying risk impact (e.g. '£X lost revenue' or "
            "'Y% slower growth')"
        )


def quality_summary(result: QualityCheckResult) -> str:
    """One-line description of a quality check for logs."""

    status = "PASSED" if result.passed else "NEEDS IMPROVEMENT"
    parts = [f"Quality check: {status} (score {result.score}/10)"]
    if result.issues:
        parts.append(f"issues={len(result.issues)}")
    if result.suggestions:
        parts.append(f"suggestions={len(result.suggestions)}")
    if result.missing_elements:
        parts.append(f"missing={len(result.missing_elements)}")
    return " ".join(parts)
