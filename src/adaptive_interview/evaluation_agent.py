"""Client for the answer-evaluation collaborator."""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, cast

from .maf_client import (
    ChatCompletionClient,
    ChatMessage,
    CollaboratorError,
    complete_within,
    extract_json_object,
)
from .prompts import EVALUATION_SYSTEM_PROMPT, EVALUATION_USER_PROMPT

logger = logging.getLogger(__name__)

MIN_DETAIL_SCORE = 1
MAX_DETAIL_SCORE = 10
ACCEPT_SCORE = 8
REJECT_SCORE = 5


def _empty_improvements() -> List[str]:
    return []


@dataclass(slots=True)
class EvaluationResult:
    """Normalized verdict on a single user answer."""

    has_enough_detail: bool
    detail_score: int
    reasoning: str
    follow_up_question: Optional[str] = None
    suggested_improvements: List[str] = field(
        default_factory=_empty_improvements
    )
    source: str = "collaborator"

    @property
    def from_fallback(self) -> bool:
        return self.source == "fallback"


@dataclass(frozen=True, slots=True)
class EvaluationFallback:
    """Deterministic evaluation used whenever the collaborator fails."""

    min_accepted_length: int = 20
    accepted_score: int = 7
    rejected_score: int = 3
    follow_up_question: str = "Could you provide a bit more detail about that?"
    reasoning: str = "Fallback evaluation due to AI error"

    def evaluate(self, answer: str) -> EvaluationResult:
        accepted = len(answer.strip()) > self.min_accepted_length
        return EvaluationResult(
            has_enough_detail=accepted,
            detail_score=(
                self.accepted_score if accepted else self.rejected_score
            ),
            reasoning=self.reasoning,
            follow_up_question=None if accepted else self.follow_up_question,
            suggested_improvements=[],
            source="fallback",
        )


def _parse_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"true", "yes"}
    return False


def enforce_consistency(result: EvaluationResult) -> EvaluationResult:
    """Align ``has_enough_detail`` with the score bands."""

    if result.detail_score >= ACCEPT_SCORE:
        result.has_enough_detail = True
        result.follow_up_question = None
    elif result.detail_score < REJECT_SCORE:
        result.has_enough_detail = False
    return result


class ResponseEvaluationAgent:
    """Asks the language model whether an answer is detailed enough."""

    def __init__(
        self,
        *,
        chat_client: ChatCompletionClient,
        timeout: Optional[float] = 30.0,
        fallback: EvaluationFallback | None = None,
    ) -> None:
        self._chat_client = chat_client
        self._timeout = timeout
        self._fallback = fallback or EvaluationFallback()

    @property
    def fallback(self) -> EvaluationFallback:
        return self._fallback

    async def evaluate(
        self,
        question: str,
        answer: str,
        context: Mapping[str, Any] | None = None,
    ) -> EvaluationResult:
        """Evaluate ``answer``; never raises on collaborator failure."""

        messages = self._build_messages(question, answer, context or {})
        try:
            raw = await complete_within(
                self._chat_client, messages, timeout=self._timeout
            )
            result = self.parse_response(raw)
        except CollaboratorError as exc:
            logger.warning(
                "Answer evaluation unavailable, using fallback: %s", exc
            )
            return self._fallback.evaluate(answer)
        return enforce_consistency(result)

    @staticmethod
    def _build_messages(
        question: str,
        answer: str,
        context: Mapping[str, Any],
    ) -> List[ChatMessage]:
        context_lines: List[str] = []
        business_idea = context.get("businessIdea")
        if business_idea:
            context_lines.append(f"Business idea: {business_idea}")
        previous = context.get("previousAnswers") or {}
        if previous:
            context_lines.append(
                "Previous answers: "
                + json.dumps(previous, ensure_ascii=False, indent=2)
            )
        if not context_lines:
            context_lines.append("(No earlier answers yet.)")
        return [
            ChatMessage(
                role="system",
                content=EVALUATION_SYSTEM_PROMPT.substitute(
                    context_lines="\n".join(context_lines)
                ),
            ),
            ChatMessage(
                role="user",
                content=EVALUATION_USER_PROMPT.substitute(
                    question=question, answer=answer
                ),
            ),
        ]

    @staticmethod
    def parse_response(raw: str) -> EvaluationResult:
        """Turn the collaborator reply into an :class:`EvaluationResult`.

        Accepts either the ``{"success", "evaluation"}`` envelope or a bare
        evaluation object. Raises :class:`CollaboratorError` for anything that
        cannot be trusted.
        """

        data = extract_json_object(raw)
        if data is None:
            raise CollaboratorError("Evaluation reply was not a JSON object.")
        if "evaluation" in data:
            if not data.get("success", False):
                raise CollaboratorError("Evaluation collaborator reported failure.")
            payload = data.get("evaluation")
            if not isinstance(payload, dict):
                raise CollaboratorError("Evaluation payload is malformed.")
            data = cast(Dict[str, Any], payload)
        raw_score = data.get("detailScore")
        if isinstance(raw_score, bool) or raw_score is None:
            raise CollaboratorError("Evaluation is missing detailScore.")
        try:
            numeric = float(raw_score)
        except (TypeError, ValueError) as exc:
            raise CollaboratorError(
                f"Evaluation detailScore is not numeric: {raw_score!r}"
            ) from exc
        if not math.isfinite(numeric):
            raise CollaboratorError(
                f"Evaluation detailScore is not finite: {raw_score!r}"
            )
        score = int(round(numeric))
        score = max(MIN_DETAIL_SCORE, min(MAX_DETAIL_SCORE, score))
        follow_up_raw = data.get("followUpQuestion")
        follow_up = (
            str(follow_up_raw).strip()
            if follow_up_raw is not None and str(follow_up_raw).strip()
            else None
        )
        improvements_raw = data.get("suggestedImprovements")
        improvements: List[str] = []
        if isinstance(improvements_raw, list):
            improvements = [
                str(item).strip()
                for item in cast(List[Any], improvements_raw)
                if str(item).strip()
            ]
        return EvaluationResult(
            has_enough_detail=_parse_flag(data.get("hasEnoughDetail")),
            detail_score=score,
            reasoning=str(data.get("reasoning", "")).strip(),
            follow_up_question=follow_up,
            suggested_improvements=improvements,
        )
