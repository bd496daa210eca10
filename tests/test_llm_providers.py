"""
LLM Provider Unit Tests.

Tests the Ollama and OpenAI-compatible providers and the factory with
mocked HTTP responses.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

import httpx

from stakeholder_coach.providers.llm.base import (
    GenerationConfig,
    LLMResponse,
    system_message,
    user_message,
)
from stakeholder_coach.providers.llm.factory import LLMProviderFactory
from stakeholder_coach.providers.llm.ollama_provider import OllamaProvider
from stakeholder_coach.providers.llm.openai_provider import OpenAICompatibleProvider


@pytest.fixture
def sample_messages():
    """Sample chat messages."""
    return [
        system_message("You are James Walker, Head of Customer Success."),
        user_message("What does onboarding look like today?"),
    ]


def _http_response(payload: dict, status_code: int = 200) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    response.raise_for_status = MagicMock()
    return response


class TestOllamaProvider:
    """Test OllamaProvider with mocked HTTP."""

    @pytest.fixture
    def provider(self):
        return OllamaProvider(model="qwen2.5:7b", api_url="http://localhost:11434")

    @pytest.fixture
    def ollama_chat_response(self):
        """Sample Ollama chat API response."""
        return {
            "model": "qwen2.5:7b",
            "message": {"role": "assistant", "content": "It takes about three weeks."},
            "done": True,
            "prompt_eval_count": 25,
            "eval_count": 12,
        }

    def test_initialization_strips_slash(self):
        provider = OllamaProvider(model="llama3.1:8b", api_url="http://custom:8080/", timeout=60.0)
        assert provider.api_url == "http://custom:8080"
        assert provider.timeout == 60.0

    @pytest.mark.asyncio
    async def test_generate_success(self, provider, sample_messages, ollama_chat_response):
        with patch.object(provider._client, "post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = _http_response(ollama_chat_response)

            result = await provider.generate(sample_messages)

            assert isinstance(result, LLMResponse)
            assert result.content == "It takes about three weeks."
            assert result.finish_reason == "stop"
            assert result.tokens_used == 37

            payload = mock_post.call_args.kwargs["json"]
            assert mock_post.call_args.args[0] == "http://localhost:11434/api/chat"
            assert payload["stream"] is False
            assert payload["messages"][0]["role"] == "system"
            assert "format" not in payload

    @pytest.mark.asyncio
    async def test_generate_json_mode(self, provider, sample_messages, ollama_chat_response):
        config = GenerationConfig(max_tokens=600, temperature=0.2, stop_sequences=["END"], json_mode=True)

        with patch.object(provider._client, "post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = _http_response(ollama_chat_response)

            await provider.generate(sample_messages, config)

            payload = mock_post.call_args.kwargs["json"]
            assert payload["format"] == "json"
            assert payload["options"]["num_predict"] == 600
            assert payload["options"]["temperature"] == 0.2
            assert payload["options"]["stop"] == ["END"]

    @pytest.mark.asyncio
    async def test_generate_http_error(self, provider, sample_messages):
        response = MagicMock()
        response.status_code = 404
        response.text = '{"error":"model not found"}'
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "Not Found", request=MagicMock(), response=response
        )

        with patch.object(provider._client, "post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = response

            with pytest.raises(httpx.HTTPStatusError):
                await provider.generate(sample_messages)

    @pytest.mark.asyncio
    async def test_generate_connection_error(self, provider, sample_messages):
        with patch.object(provider._client, "post", new_callable=AsyncMock) as mock_post:
            mock_post.side_effect = httpx.ConnectError("Connection refused")

            with pytest.raises(httpx.RequestError):
                await provider.generate(sample_messages)

    @pytest.mark.asyncio
    async def test_health_check(self, provider):
        with patch.object(provider._client, "get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = _http_response({})
            assert await provider.health_check() is True
            mock_get.assert_called_with("http://localhost:11434/api/tags")

            mock_get.side_effect = httpx.ConnectError("Connection refused")
            assert await provider.health_check() is False


class TestOpenAICompatibleProvider:
    """Test the OpenAI-compatible provider with mocked HTTP."""

    @pytest.fixture
    def provider(self):
        return OpenAICompatibleProvider(
            model="gpt-4o-mini", api_url="http://localhost:8000/v1/", api_key="sk-test"
        )

    def test_auth_header(self, provider):
        assert provider._client.headers["Authorization"] == "Bearer sk-test"
        assert provider.api_url == "http://localhost:8000/v1"

    @pytest.mark.asyncio
    async def test_generate_success(self, provider, sample_messages):
        payload = {
            "model": "gpt-4o-mini",
            "choices": [{"message": {"content": "About three weeks."}, "finish_reason": "stop"}],
            "usage": {"prompt_tokens": 20, "completion_tokens": 5, "total_tokens": 25},
        }

        with patch.object(provider._client, "post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = _http_response(payload)

            result = await provider.generate(
                sample_messages, GenerationConfig(max_tokens=300, json_mode=True)
            )

            assert result.content == "About three weeks."
            assert result.tokens_used == 25
            body = mock_post.call_args.kwargs["json"]
            assert mock_post.call_args.args[0] == "http://localhost:8000/v1/chat/completions"
            assert body["max_tokens"] == 300
            assert body["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_health_check_unhealthy(self, provider):
        with patch.object(provider._client, "get", new_callable=AsyncMock) as mock_get:
            mock_get.side_effect = httpx.ConnectError("Connection refused")
            assert await provider.health_check() is False


class TestGenerationConfig:

    def test_from_dict_defaults(self):
        config = GenerationConfig.from_dict({"temperature": "0.3", "json_mode": True})
        assert config.temperature == 0.3
        assert config.max_tokens == 512
        assert config.json_mode is True

    def test_from_none(self):
        assert GenerationConfig.from_dict(None) == GenerationConfig()


class TestLLMProviderFactory:
    """Test provider creation from configuration."""

    def test_default_is_ollama(self):
        provider = LLMProviderFactory.create()
        assert isinstance(provider, OllamaProvider)
        assert provider.model == "qwen2.5:7b"

    def test_openai_compatible(self):
        provider = LLMProviderFactory.create(
            "openai-compatible", "gpt-4o-mini", api_url="http://vllm:8000/v1", api_key="k"
        )
        assert isinstance(provider, OpenAICompatibleProvider)
        assert provider.api_url == "http://vllm:8000/v1"

    def test_unsupported_provider(self):
        with pytest.raises(ValueError, match="Unsupported LLM provider"):
            LLMProviderFactory.create("carrier-pigeon", "any")
