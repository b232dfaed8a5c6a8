"""
LLM Module - Unified async interface for LLM providers.

Usage:
    from beacon.llm import get_client

    client = get_client()  # Uses config settings
    response = await client.generate("Your prompt here")

Supported providers:
- openrouter: OpenAI-compatible chat completions (default)
- ollama: local models
"""
from typing import Optional

from beacon.config import Settings, settings as default_settings
from .base import LLMClient, LLMResponse, Message
from .openrouter import OpenRouterClient, map_status_error
from .ollama import OllamaClient


_PROVIDERS = {
    "openrouter": OpenRouterClient,
    "ollama": OllamaClient,
}


def get_client(
    provider: Optional[str] = None,
    model: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> LLMClient:
    """
    Get an LLM client instance.

    Args:
        provider: Provider name. Defaults to settings.LLM_PROVIDER
        model: Model name. Defaults to settings.LLM_MODEL
        settings: Settings to read from. Defaults to the global settings

    Returns:
        Configured LLMClient instance

    Raises:
        ValueError: Unknown provider or missing API key
    """
    settings = settings or default_settings
    provider = (provider or settings.LLM_PROVIDER).lower()

    if provider not in _PROVIDERS:
        raise ValueError(f"Unknown LLM provider: {provider}. Available: {list(_PROVIDERS.keys())}")

    model = model or settings.LLM_MODEL

    if provider == "ollama":
        return OllamaClient(
            model=model,
            host=settings.OLLAMA_HOST,
            request_timeout=settings.LLM_REQUEST_TIMEOUT,
            resource_timeout=settings.LLM_RESOURCE_TIMEOUT,
            verify_ssl=settings.LLM_VERIFY_SSL,
        )

    if not settings.OPENROUTER_API_KEY:
        raise ValueError(f"API key required for provider: {provider}")

    return OpenRouterClient(
        api_key=settings.OPENROUTER_API_KEY,
        model=model,
        base_url=settings.OPENROUTER_BASE_URL,
        request_timeout=settings.LLM_REQUEST_TIMEOUT,
        resource_timeout=settings.LLM_RESOURCE_TIMEOUT,
        verify_ssl=settings.LLM_VERIFY_SSL,
        structured_output=settings.LLM_STRUCTURED_OUTPUT,
    )


__all__ = [
    "get_client",
    "LLMClient",
    "LLMResponse",
    "Message",
    "OpenRouterClient",
    "OllamaClient",
    "map_status_error",
]
