"""Thin wrappers around Microsoft Agent Framework chat completion clients.

The evaluation, follow-up and document collaborators all talk to the language
model through :class:`MAFChatClient`. Collaborator code depends only on the
:class:`ChatCompletionClient` protocol so that tests can substitute an
in-memory client. Transport problems, timeouts and unusable payloads are all
reported as :class:`CollaboratorError` so callers can apply their declared
fallback without caring which layer failed.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from importlib import import_module
from typing import Any, Dict, Iterable, List, Optional, Protocol, cast

from agent_framework import ChatMessage as MAFChatMessage, Role

from .config import ModelSettings


def _coerce_role(role: str) -> Role:
    try:
        return Role(role)
    except ValueError as exc:
        raise ValueError(
            "Unsupported role for MAF chat message: {role}".format(role=role)
        ) from exc


@dataclass(slots=True)
class ChatMessage:
    """Simple representation of a chat message compatible with this app."""

    role: str
    content: str


class ChatCompletionClient(Protocol):
    """Anything able to turn a message list into an assistant reply."""

    async def complete(self, messages: Iterable[ChatMessage]) -> ChatMessage:
        ...


class MAFIntegrationError(RuntimeError):
    """Raised when the MAF client cannot be initialized."""


class CollaboratorError(RuntimeError):
    """Raised when an LLM-backed collaborator cannot produce a usable result."""


class MAFChatClient:
    """Wrapper that dispatches chat completion calls through MAF clients."""

    def __init__(self, settings: ModelSettings) -> None:
        self._settings = settings
        self._client = self._create_client(settings)

    @staticmethod
    def _create_client(settings: ModelSettings):
        provider = settings.provider.lower()
        try:
            if provider in {"azure-openai", "azure_openai", "azure"}:
                module = import_module("agent_framework.azure")
                client_cls = getattr(module, "AzureOpenAIChatClient")
                return client_cls(
                    api_key=settings.api_key,
                    deployment_name=settings.model,
                    endpoint=settings.endpoint,
                    api_version=settings.api_version,
                )
            if provider in {"openai", "oai"}:
                module = import_module("agent_framework.openai")
                client_cls = getattr(module, "OpenAIChatClient")
                return client_cls(
                    api_key=settings.api_key,
                    model_id=settings.model,
                    base_url=settings.endpoint,
                )
        except ModuleNotFoundError as exc:  # pragma: no cover - MAF runtime
            missing = exc.name or "a required dependency"
            raise MAFIntegrationError(
                "Microsoft Agent Framework dependency '{missing}' is missing. "
                "Reinstall the project dependencies (e.g. `pip install -e .`)."
                .format(missing=missing)
            ) from exc
        raise MAFIntegrationError(
            f"Unsupported MAF provider '{settings.provider}'."
        )

    @staticmethod
    def _merge_consecutive_roles(
        messages: Iterable[ChatMessage],
    ) -> List[ChatMessage]:
        """Combine adjacent messages that share the same role.

        Collaborator prompts are often a system message followed by several
        user blocks; the framework templates expect roles to alternate, so
        back-to-back messages from one role are folded together.
        """

        merged: List[ChatMessage] = []
        for message in messages:
            if merged and merged[-1].role == message.role:
                previous = merged[-1]
                previous.content = (
                    f"{previous.content}\n\n{message.content}".strip()
                )
                continue
            merged.append(
                ChatMessage(role=message.role, content=message.content)
            )
        return merged

    async def complete(self, messages: Iterable[ChatMessage]) -> ChatMessage:
        """Execute a chat completion call through the underlying MAF client."""

        merged_messages = self._merge_consecutive_roles(messages)
        payload: List[MAFChatMessage] = [
            MAFChatMessage(role=_coerce_role(msg.role), text=msg.content)
            for msg in merged_messages
        ]
        response = await self._client.get_response(messages=payload)
        return ChatMessage(role="assistant", content=response.text or "")


async def complete_within(
    client: ChatCompletionClient,
    messages: List[ChatMessage],
    *,
    timeout: Optional[float],
) -> str:
    """Run a completion bounded by ``timeout`` and return the reply text.

    Any failure of the underlying call is re-raised as
    :class:`CollaboratorError`.
    """

    try:
        if timeout is None:
            response = await client.complete(messages)
        else:
            response = await asyncio.wait_for(
                client.complete(messages), timeout=timeout
            )
    except asyncio.TimeoutError as exc:
        raise CollaboratorError(
            f"Collaborator call timed out after {timeout} seconds."
        ) from exc
    except asyncio.CancelledError:
        raise
    except Exception as exc:  # noqa: BLE001 - transport errors vary by provider
        raise CollaboratorError(f"Collaborator call failed: {exc}") from exc
    text = (response.content or "").strip()
    if not text:
        raise CollaboratorError("Collaborator returned no content.")
    return text


def extract_json_object(raw: str) -> Optional[Dict[str, Any]]:
    """Pull the first JSON object out of a model reply, if there is one."""

    text = raw.strip()
    if not text:
        return None
    candidate = text
    if not candidate.lstrip().startswith("{"):
        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end == -1 or end <= start:
            return None
        candidate = text[start:end + 1]
    try:
        payload = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None
    return cast(Dict[str, Any], payload)
