"""LLM module - provider implementations behind a completion gateway."""

from .base import LLMProvider, LLMMessage, LLMResponse
from .openai_provider import OpenAIProvider
from .gateway import (
    CompletionGateway,
    ProviderCompletionGateway,
    StubCompletionGateway,
    STUB_RESPONSE_TEXT,
    UPSTREAM_ERROR_TEXT,
)
from .factory import create_llm_provider, create_completion_gateway

__all__ = [
    'LLMProvider',
    'LLMMessage',
    'LLMResponse',
    'OpenAIProvider',
    'CompletionGateway',
    'ProviderCompletionGateway',
    'StubCompletionGateway',
    'STUB_RESPONSE_TEXT',
    'UPSTREAM_ERROR_TEXT',
    'create_llm_provider',
    'create_completion_gateway',
]
