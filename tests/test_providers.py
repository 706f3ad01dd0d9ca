"""Unit tests for the SDK-backed providers: SDK clients are replaced with mocks."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from ai_collab.models import Request
from ai_collab.providers.anthropic import AnthropicProvider
from ai_collab.providers.base import AUTH, EMPTY, RATE_LIMIT, TIMEOUT, TRANSPORT, ProviderError, classify_error
from ai_collab.providers.gemini import GeminiProvider
from ai_collab.providers.openai_provider import OpenAIProvider
from config.config_loader import ModelConfig


def _config(sdk: str, **kwargs) -> ModelConfig:
    return ModelConfig(
        name=f"test-{sdk}",
        sdk=sdk,
        model=f"{sdk}-model",
        api_key_env="TEST_PROVIDER_KEY",
        timeout_sec=5,
        max_tokens=256,
        **kwargs,
    )


@pytest.fixture(autouse=True)
def api_key(monkeypatch):
    monkeypatch.setenv("TEST_PROVIDER_KEY", "sk-test")


@pytest.mark.parametrize("provider_cls", [AnthropicProvider, OpenAIProvider, GeminiProvider])
def test_missing_key_is_an_auth_error(provider_cls, monkeypatch):
    monkeypatch.delenv("TEST_PROVIDER_KEY")
    with pytest.raises(ProviderError) as exc_info:
        provider_cls(_config("x"))
    assert exc_info.value.kind == AUTH


# --- anthropic ---------------------------------------------------------------


def _anthropic_message(text: str = "Hello", stop_reason: str = "end_turn"):
    return SimpleNamespace(
        content=[SimpleNamespace(type="text", text=text)] if text else [],
        usage=SimpleNamespace(input_tokens=12, output_tokens=8),
        model="claude-test",
        stop_reason=stop_reason,
    )


async def test_anthropic_execute_maps_response():
    provider = AnthropicProvider(_config("anthropic"))
    create = AsyncMock(return_value=_anthropic_message(stop_reason="max_tokens"))
    provider._client = SimpleNamespace(messages=SimpleNamespace(create=create))

    response = await provider.execute(Request(prompt="hi", id="req-1", max_tokens=64, temperature=0.2))

    assert response.content == "Hello"
    assert response.provider == "test-anthropic"
    assert response.usage.total_tokens == 20
    assert response.finish_reason == "length"
    kwargs = create.await_args.kwargs
    assert kwargs["max_tokens"] == 64
    assert kwargs["temperature"] == 0.2
    assert "top_p" not in kwargs


async def test_anthropic_request_model_overrides_config():
    provider = AnthropicProvider(_config("anthropic"))
    create = AsyncMock(return_value=_anthropic_message())
    provider._client = SimpleNamespace(messages=SimpleNamespace(create=create))

    await provider.execute(Request(prompt="hi", model="claude-other"))

    assert create.await_args.kwargs["model"] == "claude-other"
    assert create.await_args.kwargs["max_tokens"] == 256


async def test_anthropic_empty_content_is_empty_error():
    provider = AnthropicProvider(_config("anthropic"))
    provider._client = SimpleNamespace(messages=SimpleNamespace(create=AsyncMock(return_value=_anthropic_message(""))))

    with pytest.raises(ProviderError) as exc_info:
        await provider.execute(Request(prompt="hi"))
    assert exc_info.value.kind == EMPTY


# --- openai ------------------------------------------------------------------


def _openai_completion(content: str | None = "Hi there", finish_reason: str = "stop"):
    return SimpleNamespace(
        id="chatcmpl-1",
        model="gpt-test",
        choices=[SimpleNamespace(message=SimpleNamespace(content=content), finish_reason=finish_reason)],
        usage=SimpleNamespace(prompt_tokens=5, completion_tokens=7, total_tokens=12),
    )


def _openai_client(create: AsyncMock):
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


async def test_openai_execute_maps_response():
    provider = OpenAIProvider(_config("openai"))
    create = AsyncMock(return_value=_openai_completion())
    provider._client = _openai_client(create)

    response = await provider.execute(Request(prompt="hi", top_p=0.9))

    assert response.id == "chatcmpl-1"
    assert response.content == "Hi there"
    assert response.usage.prompt_tokens == 5
    assert response.finish_reason == "stop"
    assert create.await_args.kwargs["top_p"] == 0.9


def test_openai_compatible_endpoint_uses_base_url():
    provider = OpenAIProvider(_config("openai", base_url="https://api.x.ai/v1"))
    assert str(provider._client.base_url).startswith("https://api.x.ai/v1")


async def test_openai_empty_message_is_empty_error():
    provider = OpenAIProvider(_config("openai"))
    provider._client = _openai_client(AsyncMock(return_value=_openai_completion(content=None)))

    with pytest.raises(ProviderError) as exc_info:
        await provider.execute(Request(prompt="hi"))
    assert exc_info.value.kind == EMPTY


async def test_openai_sdk_error_is_classified():
    provider = OpenAIProvider(_config("openai"))
    error = Exception("Too many requests")
    error.status_code = 429
    provider._client = _openai_client(AsyncMock(side_effect=error))

    with pytest.raises(ProviderError) as exc_info:
        await provider.execute(Request(prompt="hi"))
    assert exc_info.value.kind == RATE_LIMIT
    assert exc_info.value.__cause__ is error


async def test_openai_timeout_is_timeout_error():
    provider = OpenAIProvider(_config("openai"))
    provider._config.timeout_sec = 0.01

    async def hang(**kwargs):
        await asyncio.sleep(10)

    provider._client = _openai_client(AsyncMock(side_effect=hang))

    with pytest.raises(ProviderError) as exc_info:
        await provider.execute(Request(prompt="hi"))
    assert exc_info.value.kind == TIMEOUT


# --- gemini ------------------------------------------------------------------


async def test_gemini_execute_maps_response():
    provider = GeminiProvider(_config("gemini"))
    reply = SimpleNamespace(
        text="Bonjour",
        usage_metadata=SimpleNamespace(prompt_token_count=3, candidates_token_count=4, total_token_count=7),
        candidates=[SimpleNamespace(finish_reason=SimpleNamespace(name="MAX_TOKENS"))],
    )
    generate = AsyncMock(return_value=reply)
    client = MagicMock()
    client.aio.models.generate_content = generate
    provider._client = client

    response = await provider.execute(Request(prompt="hi", max_tokens=32))

    assert response.content == "Bonjour"
    assert response.usage.total_tokens == 7
    assert response.finish_reason == "length"
    assert generate.await_args.kwargs["config"].max_output_tokens == 32


# --- classify_error ----------------------------------------------------------


def test_classify_error():
    auth = Exception("nope")
    auth.status_code = 401
    assert classify_error(auth) == AUTH
    assert classify_error(Exception("Request timed out")) == TIMEOUT
    assert classify_error(Exception("rate limit exceeded")) == RATE_LIMIT
    assert classify_error(ConnectionError("reset by peer")) == TRANSPORT
