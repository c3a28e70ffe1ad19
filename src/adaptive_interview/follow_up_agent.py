"""Client for the follow-up question generation collaborator."""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Sequence

from .context import Category
from .maf_client import (
    ChatCompletionClient,
    ChatMessage,
    CollaboratorError,
    complete_within,
    extract_json_object,
)
from .prompts import (
    CATEGORY_PROBE_EXAMPLES,
    FOLLOW_UP_SYSTEM_PROMPT,
    FOLLOW_UP_USER_PROMPT,
)

logger = logging.getLogger(__name__)


class FollowUpGenerationAgent:
    """Drafts one probing question for the current segment."""

    def __init__(
        self,
        *,
        chat_client: ChatCompletionClient,
        timeout: Optional[float] = 30.0,
    ) -> None:
        self._chat_client = chat_client
        self._timeout = timeout

    async def generate(
        self,
        original_question: str,
        user_response: str,
        context: Mapping[str, Any] | None = None,
        *,
        improvements: Sequence[str] = (),
    ) -> Optional[str]:
        """Return a follow-up question, or ``None`` when none is available.

        ``None`` tells the caller to advance instead of blocking the
        interview.
        """

        messages = self._build_messages(
            original_question, user_response, context or {}, improvements
        )
        try:
            raw = await complete_within(
                self._chat_client, messages, timeout=self._timeout
            )
        except CollaboratorError as exc:
            logger.warning("Follow-up generation unavailable: %s", exc)
            return None
        question = self.parse_response(raw)
        if question is None:
            logger.warning("Follow-up generation returned no usable question.")
        return question

    @staticmethod
    def _build_messages(
        original_question: str,
        user_response: str,
        context: Mapping[str, Any],
        improvements: Sequence[str],
    ) -> List[ChatMessage]:
        industry = context.get("industry")
        stage = context.get("businessStage")
        industry_line = ""
        example_line = ""
        if industry:
            industry_line = (
                f"\nIndustry context: {industry}. Use industry-specific "
                "terminology and examples."
            )
            category = Category.from_string(str(industry))
            example = CATEGORY_PROBE_EXAMPLES.get(category) if category else None
            if example:
                example_line = f"\nIndustry example: {example}"
        stage_line = ""
        if stage:
            stage_line = (
                f"\nBusiness stage: {stage}. Ask stage-appropriate questions."
            )
        improvement_lines = ""
        if improvements:
            improvement_lines = (
                "Gaps noticed by the reviewer: "
                + "; ".join(improvements)
                + "\n"
            )
        business_line = ""
        business_idea = context.get("businessIdea")
        if business_idea:
            business_line = f"Business context: {business_idea}\n"
        return [
            ChatMessage(
                role="system",
                content=FOLLOW_UP_SYSTEM_PROMPT.substitute(
                    industry_line=industry_line,
                    stage_line=stage_line,
                    example_line=example_line,
                ),
            ),
            ChatMessage(
                role="user",
                content=FOLLOW_UP_USER_PROMPT.substitute(
                    question=original_question,
                    answer=user_response,
                    improvement_lines=improvement_lines,
                    business_line=business_line,
                ),
            ),
        ]

    @staticmethod
    def parse_response(raw: str) -> Optional[str]:
        text = raw.strip()
        if not text:
            return None
        data = extract_json_object(text)
        if data is None:
            # Plain-text replies are accepted as the question itself.
            if text.startswith("{"):
                return None
            return text
        if not data.get("success", True):
            return None
        question = str(data.get("followUpQuestion") or "").strip()
        return question or None
