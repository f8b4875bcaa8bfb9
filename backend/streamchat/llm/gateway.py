"""
Completion Gateway - the only surface the rest of the app uses to reach a model.

Gateways never raise: an upstream failure becomes UPSTREAM_ERROR_TEXT, either
as the terminal fragment of a stream or as the single-shot result.
"""

import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator, List, Optional, Sequence

from .base import LLMMessage, LLMProvider

logger = logging.getLogger(__name__)

UPSTREAM_ERROR_TEXT = "Error: Unable to generate response."
STUB_RESPONSE_TEXT = "This is a test response."


class CompletionGateway(ABC):
    """Blocking and streaming completions over role-tagged turns."""

    @abstractmethod
    def complete_streaming(self, turns: List[LLMMessage]) -> AsyncIterator[str]:
        """Lazily yield non-empty text fragments until the upstream finishes."""

    @abstractmethod
    async def complete(
        self,
        turns: List[LLMMessage],
        system_prompt: Optional[str] = None,
        max_output_tokens: Optional[int] = None,
    ) -> str:
        """Return the whole response as one string."""

    @staticmethod
    def _with_system(turns: List[LLMMessage], system_prompt: Optional[str]) -> List[LLMMessage]:
        if not system_prompt:
            return list(turns)
        return [LLMMessage.text("system", system_prompt), *turns]


class ProviderCompletionGateway(CompletionGateway):
    """Gateway backed by a real LLMProvider."""

    def __init__(self, provider: LLMProvider):
        self.provider = provider

    async def complete_streaming(self, turns: List[LLMMessage]) -> AsyncIterator[str]:
        try:
            async for fragment in self.provider.chat_completion_stream(turns):
                if fragment:
                    yield fragment
        except Exception as e:
            logger.warning(f"Streaming completion failed, emitting error text: {e}")
            yield UPSTREAM_ERROR_TEXT

    async def complete(
        self,
        turns: List[LLMMessage],
        system_prompt: Optional[str] = None,
        max_output_tokens: Optional[int] = None,
    ) -> str:
        try:
            response = await self.provider.chat_completion(
                self._with_system(turns, system_prompt),
                max_tokens=max_output_tokens,
            )
        except Exception as e:
            logger.warning(f"Completion failed, returning error text: {e}")
            return UPSTREAM_ERROR_TEXT
        return response.content


class StubCompletionGateway(CompletionGateway):
    """
    Deterministic gateway used when no API key is configured and in tests.

    Args:
        fragments: Fragments streamed by complete_streaming
        reply: Value returned by complete
    """

    def __init__(
        self,
        fragments: Optional[Sequence[str]] = None,
        reply: Optional[str] = None,
    ):
        self.fragments = list(fragments) if fragments is not None else [STUB_RESPONSE_TEXT]
        self.reply = reply if reply is not None else STUB_RESPONSE_TEXT
        self.calls: List[List[LLMMessage]] = []

    async def complete_streaming(self, turns: List[LLMMessage]) -> AsyncIterator[str]:
        self.calls.append(list(turns))
        for fragment in self.fragments:
            if fragment:
                yield fragment

    async def complete(
        self,
        turns: List[LLMMessage],
        system_prompt: Optional[str] = None,
        max_output_tokens: Optional[int] = None,
    ) -> str:
        self.calls.append(self._with_system(turns, system_prompt))
        return self.reply
