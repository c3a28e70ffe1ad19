"""In-memory collaborators shared by the test modules."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from adaptive_interview.evaluation_agent import EvaluationResult
from adaptive_interview.maf_client import ChatMessage
from adaptive_interview.quality_gate import BusinessCaseDocument, ProposedSolution

Reply = Union[str, BaseException]


class FakeChatClient:
    """Returns queued replies; exceptions in the queue are raised."""

    def __init__(self, replies: Iterable[Reply] = ()) -> None:
        self.replies: List[Reply] = list(replies)
        self.calls: List[List[ChatMessage]] = []

    async def complete(self, messages: Iterable[ChatMessage]) -> ChatMessage:
        self.calls.append(list(messages))
        if not self.replies:
            raise ConnectionError("no scripted reply left")
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return ChatMessage(role="assistant", content=reply)


class ScriptedEvaluator:
    def __init__(
        self, results: Iterable[Union[EvaluationResult, BaseException]]
    ) -> None:
        self.results = list(results)
        self.calls: List[Tuple[str, str, Dict[str, Any]]] = []

    async def evaluate(
        self,
        question: str,
        answer: str,
        context: Mapping[str, Any] | None = None,
    ) -> EvaluationResult:
        self.calls.append((question, answer, dict(context or {})))
        result = self.results.pop(0)
        if isinstance(result, BaseException):
            raise result
        return result


class ScriptedFollowUps:
    def __init__(self, questions: Iterable[Optional[str]] = ()) -> None:
        self.questions = list(questions)
        self.calls: List[Tuple[str, str, Tuple[str, ...]]] = []

    async def generate(
        self,
        original_question: str,
        user_response: str,
        context: Mapping[str, Any] | None = None,
        *,
        improvements: Sequence[str] = (),
    ) -> Optional[str]:
        self.calls.append((original_question, user_response, tuple(improvements)))
        if not self.questions:
            return None
        return self.questions.pop(0)


def evaluation(
    score: int,
    enough: bool,
    improvements: Sequence[str] = (),
    follow_up: Optional[str] = None,
) -> EvaluationResult:
    return EvaluationResult(
        has_enough_detail=enough,
        detail_score=score,
        reasoning="scripted",
        follow_up_question=follow_up,
        suggested_improvements=list(improvements),
    )


def good_answer() -> EvaluationResult:
    return evaluation(9, True)


def good_document() -> BusinessCaseDocument:
    return BusinessCaseDocument(
        problem_statement=(
            "Repeat orders fell 30% in 2023 because checkout takes 6 steps on "
            "mobile, costing £4,000 per month."
        ),
        objectives=[
            "Increase conversion rate to 3% by Q4",
            "Reduce checkout steps from 6 to 3",
        ],
        current_state=(
            "We run a Shopify store with 1,200 monthly visitors, a conversion "
            "rate of 1.2% and an average order value of £45 across three "
            "product lines."
        ),
        proposed_solution=[
            ProposedSolution(
                pillar="Checkout redesign",
                actions=["Enable guest checkout", "Add one-tap wallets"],
                effort="medium",
                impact="high",
            )
        ],
        expected_outcomes=[
            "Increase repeat purchase rate by 15%",
            "Reduce cart abandonment to 60%",
        ],
        next_steps=["Audit the checkout flow in week 1"],
        risk_assessment=(
            "Platform migration could pause sales for 2 days, risking about "
            "£800 in revenue."
        ),
    )
