"""
LLM Provider Base - the contract every upstream model API implements.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, List, AsyncGenerator
from dataclasses import dataclass, field

ROLES = ("system", "user", "assistant")


@dataclass
class LLMMessage:
    """A role-tagged plain-text message sent upstream."""
    role: str
    content: str

    def __post_init__(self):
        if self.role not in ROLES:
            raise ValueError(f"Unknown message role: {self.role!r}")

    @staticmethod
    def text(role: str, text: str) -> "LLMMessage":
        return LLMMessage(role=role, content=text)

    def to_payload(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class LLMResponse:
    """Result of a single-shot completion."""
    content: str
    model: str = ""
    usage: Dict[str, int] = field(default_factory=dict)
    raw: Optional[Dict[str, Any]] = None

    @property
    def total_tokens(self) -> int:
        return self.usage.get("total_tokens", 0)


class LLMProvider(ABC):
    """
    Upstream model API.

    Providers raise on any upstream failure; the completion gateway
    decides what the rest of the application sees.
    """

    def __init__(self, api_key: str, model: str, base_url: Optional[str] = None,
                 default_temperature: float = 0.7, default_max_tokens: int = 2048):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/") if base_url else base_url
        self.default_temperature = default_temperature
        self.default_max_tokens = default_max_tokens

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> LLMResponse:
        """
        Request one whole completion.

        Args:
            messages: Conversation, oldest first
            temperature: Sampling temperature override
            max_tokens: Output token budget override
        """

    @abstractmethod
    async def chat_completion_stream(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> AsyncGenerator[str, None]:
        """
        Stream a completion.

        Yields:
            str: Non-empty content deltas in arrival order
        """

    def _format_messages(self, messages: List[LLMMessage]) -> List[Dict[str, Any]]:
        return [m.to_payload() for m in messages]
