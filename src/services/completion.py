"""Gateway to the Anthropic completion service.

One ``ChatAnthropic`` instance per call profile: the chat, history and
search endpoints differ only in temperature and output budget.  Provider
errors are translated into the assistant's error kinds so the routes can
pick the right status code without knowing about the SDK.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

import anthropic
from langchain_anthropic import ChatAnthropic
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from src.config import ANTHROPIC_API_KEY, MODEL_NAME
from src.errors import AuthenticationError, RateLimitError, UpstreamFailure
from src.services.metrics import metrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionProfile:
    name: str
    temperature: float
    max_tokens: int


CHAT = CompletionProfile("chat", temperature=0.7, max_tokens=800)
ADVANCED = CompletionProfile("chat_advanced", temperature=0.7, max_tokens=500)
SEARCH = CompletionProfile("search", temperature=0.3, max_tokens=500)


def _build_llm(profile: CompletionProfile) -> BaseChatModel:
    """Build the Claude client for ``profile``.

    ``max_retries=0``: a failed call surfaces to the caller instead of being
    retried silently inside the request.
    """
    return ChatAnthropic(
        model=MODEL_NAME,
        api_key=ANTHROPIC_API_KEY,
        temperature=profile.temperature,
        max_tokens=profile.max_tokens,
        max_retries=0,
    )


def to_langchain_messages(history: Sequence[dict[str, str]]) -> list[BaseMessage]:
    """Convert ``{role, content}`` dicts to messages.

    ``assistant`` turns become ``AIMessage``; ``system`` turns are skipped
    (see ``fold_system_turns``); every other role is treated as the user.
    """
    messages: list[BaseMessage] = []
    for item in history:
        if item["role"] == "system":
            continue
        if item["role"] == "assistant":
            messages.append(AIMessage(content=item["content"]))
        else:
            messages.append(HumanMessage(content=item["content"]))
    return messages


def fold_system_turns(system_context: str, history: Sequence[dict[str, str]]) -> str:
    """Append the content of any ``system`` turns to ``system_context``."""
    extra = [item["content"] for item in history if item["role"] == "system" and item["content"]]
    return "\n\n".join([system_context, *extra])


def reply_text(message: Any) -> str:
    """Return the text of a model reply whose content may be a block list."""
    content = getattr(message, "content", message)
    if isinstance(content, str):
        return content
    parts: list[str] = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


class CompletionGateway:
    """Sends a system context plus user turn(s) to Claude, returns the reply."""

    def __init__(
        self,
        llm_factory: Callable[[CompletionProfile], BaseChatModel] = _build_llm,
    ) -> None:
        self._llm_factory = llm_factory
        self._llms: dict[str, BaseChatModel] = {}

    def _llm(self, profile: CompletionProfile) -> BaseChatModel:
        if profile.name not in self._llms:
            self._llms[profile.name] = self._llm_factory(profile)
        return self._llms[profile.name]

    async def complete(
        self,
        system_context: str,
        messages: str | Sequence[dict[str, str]],
        *,
        profile: CompletionProfile = CHAT,
    ) -> str:
        """Run one completion.

        Args:
            system_context: The assembled system prompt.
            messages: A single user message, or a ``{role, content}`` history.
            profile: Temperature / output budget for the calling endpoint.

        Raises:
            AuthenticationError: The API key was rejected.
            RateLimitError: The provider is throttling us.
            UpstreamFailure: Anything else went wrong.
        """
        if isinstance(messages, str):
            turns: list[BaseMessage] = [HumanMessage(content=messages)]
        else:
            system_context = fold_system_turns(system_context, messages)
            turns = to_langchain_messages(messages)

        llm = self._llm(profile)
        try:
            with metrics.track("anthropic", profile.name):
                response = await llm.ainvoke([SystemMessage(content=system_context), *turns])
        except anthropic.AuthenticationError as exc:
            logger.error("Anthropic rejected the API key (%s)", profile.name)
            raise AuthenticationError() from exc
        except anthropic.RateLimitError as exc:
            logger.warning("Anthropic rate limit hit (%s)", profile.name)
            raise RateLimitError() from exc
        except Exception as exc:
            logger.error("Completion call failed (%s): %s", profile.name, exc)
            raise UpstreamFailure() from exc

        return reply_text(response)
