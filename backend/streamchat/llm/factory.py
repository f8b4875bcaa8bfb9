"""
LLM Provider Factory - Creates the configured provider and completion gateway.
"""

import logging
from typing import Any, Optional

from .base import LLMProvider
from .gateway import CompletionGateway, ProviderCompletionGateway, StubCompletionGateway
from .openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)


def create_llm_provider(
    provider: str = "openai",
    api_key: str = "",
    model: Optional[str] = None,
    base_url: Optional[str] = None,
    **kwargs
) -> Optional[LLMProvider]:
    """
    Create an LLM provider instance based on configuration.

    Args:
        provider: Provider name (only "openai"-compatible endpoints are supported)
        api_key: API key for the provider
        model: Model name (uses provider default if not specified)
        base_url: Custom base URL (uses provider default if not specified)
        **kwargs: Additional provider-specific parameters

    Returns:
        LLMProvider instance, or None if api_key is not configured
    """
    if not api_key:
        return None

    if provider != "openai":
        raise ValueError(f"Unsupported LLM provider: {provider}")

    params = {"api_key": api_key}
    if model:
        params["model"] = model
    if base_url:
        params["base_url"] = base_url
    params.update({k: v for k, v in kwargs.items() if v is not None})
    return OpenAIProvider(**params)


def create_completion_gateway(config: Any) -> CompletionGateway:
    """Real gateway when an API key is configured, the stub otherwise."""
    provider = create_llm_provider(
        provider=config.llm_provider,
        api_key=config.llm_api_key or "",
        model=config.llm_model,
        base_url=config.llm_base_url,
        organization=config.llm_organization,
        timeout=config.llm_timeout,
    )
    if provider is None:
        logger.info("LLM API key not set, using stub completion gateway")
        return StubCompletionGateway()
    return ProviderCompletionGateway(provider)
