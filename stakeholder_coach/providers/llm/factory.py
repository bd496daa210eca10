"""
LLM Provider Factory.

Creates the appropriate LLM provider based on configuration.
"""
import logging
from typing import Optional

from stakeholder_coach.core.config import load_model_config, get_settings
from stakeholder_coach.providers.llm.base import BaseLLMProvider, LLMProvider
from stakeholder_coach.providers.llm.ollama_provider import OllamaProvider
from stakeholder_coach.providers.llm.openai_provider import OpenAICompatibleProvider

logger = logging.getLogger(__name__)


class LLMProviderFactory:
    """
    Factory for creating LLM provider instances.

    Reads ``models.yaml`` (with environment overrides) and builds the
    configured backend.
    """

    @staticmethod
    def create(
        provider_type: Optional[str] = None,
        model: Optional[str] = None,
        **kwargs
    ) -> BaseLLMProvider:
        """
        Create an LLM provider instance.

        Args:
            provider_type: Provider type (ollama, openai-compatible). If None, reads from config.
            model: Model name. If None, reads from config.
            **kwargs: Additional provider-specific arguments.

        Returns:
            Configured LLM provider instance.
        """
        config = load_model_config()
        settings = get_settings()
        llm_config = config.get("providers", {}).get("llm", {})

        provider_type = provider_type or llm_config.get("provider", LLMProvider.OLLAMA.value)
        model = model or llm_config.get("model", "qwen2.5:7b")

        logger.info(f"Creating LLM provider: {provider_type} with model: {model}")

        if provider_type == LLMProvider.OLLAMA.value:
            return OllamaProvider(
                model=model,
                api_url=kwargs.pop("api_url", settings.ollama_api_url),
                **kwargs
            )

        if provider_type in (LLMProvider.OPENAI_COMPATIBLE.value, "openai", "vllm"):
            return OpenAICompatibleProvider(
                model=model,
                api_url=kwargs.pop("api_url", settings.openai_api_url),
                api_key=kwargs.pop("api_key", settings.openai_api_key),
                **kwargs
            )

        raise ValueError(f"Unsupported LLM provider: {provider_type}")


# Global provider instance (lazy loaded)
_llm_provider: Optional[BaseLLMProvider] = None


def get_llm_provider() -> BaseLLMProvider:
    """
    Get or create the global LLM provider instance.

    No health check happens here; the orchestrator checks oracle
    health when a session starts.
    """
    global _llm_provider
    if _llm_provider is None:
        _llm_provider = LLMProviderFactory.create()
    return _llm_provider
