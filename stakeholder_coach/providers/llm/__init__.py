"""
LLM Providers Package.

Plug-and-play chat-completion backends used by the judgment oracle.
"""
from stakeholder_coach.providers.llm.base import (
    BaseLLMProvider,
    LLMProvider,
    Message,
    GenerationConfig,
    LLMResponse,
    system_message,
    user_message,
)
from stakeholder_coach.providers.llm.ollama_provider import OllamaProvider
from stakeholder_coach.providers.llm.openai_provider import OpenAICompatibleProvider
from stakeholder_coach.providers.llm.factory import (
    LLMProviderFactory,
    get_llm_provider,
)

__all__ = [
    # Base classes
    "BaseLLMProvider",
    "LLMProvider",
    "Message",
    "GenerationConfig",
    "LLMResponse",
    # Message helpers
    "system_message",
    "user_message",
    # Providers
    "OllamaProvider",
    "OpenAICompatibleProvider",
    # Factory
    "LLMProviderFactory",
    "get_llm_provider",
]
