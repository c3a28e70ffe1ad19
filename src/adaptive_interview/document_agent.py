"""Client for the business-case document generation collaborator."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from .interview_engine import InterviewSubmission
from .maf_client import (
    ChatCompletionClient,
    ChatMessage,
    CollaboratorError,
    complete_within,
    extract_json_object,
)
from .prompts import (
    DOCUMENT_SCHEMA_INSTRUCTIONS,
    DOCUMENT_SYSTEM_PROMPT,
    category_guidance,
)
from .quality_gate import BusinessCaseDocument

logger = logging.getLogger(__name__)


class DocumentGenerationError(RuntimeError):
    """Raised when no usable document could be generated; safe to retry."""


class DocumentGenerationAgent:
    """Turns a submitted interview into a structured business case."""

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
        submission: InterviewSubmission,
        corrections: Sequence[str] = (),
    ) -> BusinessCaseDocument:
        messages = self._build_messages(submission, corrections)
        try:
            raw = await complete_within(
                self._chat_client, messages, timeout=self._timeout
            )
        except CollaboratorError as exc:
            raise DocumentGenerationError(str(exc)) from exc
        return self.parse_response(raw)

    @staticmethod
    def _build_messages(
        submission: InterviewSubmission,
        corrections: Sequence[str],
    ) -> List[ChatMessage]:
        answer_lines = [
            f"- {key}: {value}" for key, value in submission.answers.items()
        ]
        if submission.selections:
            answer_lines.append(
                "- requested services: " + ", ".join(submission.selections)
            )
        sections = [
            "Interview answers:\n" + "\n".join(answer_lines),
            category_guidance(submission.category, submission.stage),
        ]
        if corrections:
            # Issues reported by the quality gate on the previous draft.
            sections.append(
                "The previous draft was rejected. Fix these issues:\n"
                + "\n".join(f"- {issue}" for issue in corrections)
            )
        sections.append(DOCUMENT_SCHEMA_INSTRUCTIONS)
        return [
            ChatMessage(role="system", content=DOCUMENT_SYSTEM_PROMPT),
            ChatMessage(role="user", content="\n\n".join(sections)),
        ]

    @staticmethod
    def parse_response(raw: str) -> BusinessCaseDocument:
        payload = extract_json_object(raw)
        if payload is None:
            logger.warning("Document generation returned non-JSON content.")
            raise DocumentGenerationError(
                "Document generation returned an unreadable payload."
            )
        document = BusinessCaseDocument.from_dict(payload)
        if not document.problem_statement and not document.proposed_solution:
            raise DocumentGenerationError(
                "Document generation returned an empty business case."
            )
        return document
