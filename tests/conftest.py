"""Shared pytest fixtures."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from ai_collab.gateway import ProviderGateway
from ai_collab.models import Request, Response, TokenUsage
from ai_collab.providers.base import AIProvider
from config.config_loader import AppConfig, DefaultsConfig, ModelConfig, PromptsConfig


def make_response(
    provider: str = "mock",
    content: str = "Mock response",
    finish_reason: str | None = "stop",
    tokens: int = 10,
    latency_sec: float = 0.1,
) -> Response:
    return Response(
        id=f"resp-{provider}",
        provider=provider,
        model="mock-model",
        content=content,
        usage=TokenUsage(prompt_tokens=tokens // 2, completion_tokens=tokens - tokens // 2, total_tokens=tokens),
        latency_sec=latency_sec,
        finish_reason=finish_reason,
    )


class MockProvider(AIProvider):
    """Test double AIProvider.

    ``replies`` is consumed one item per call; the last item repeats. An item
    that is an exception is raised instead of answered.
    """

    def __init__(
        self,
        provider_name: str = "mock",
        response_content: str = "Mock response",
        replies: list[str | Exception] | None = None,
        tokens: int = 10,
        latency_sec: float = 0.1,
    ) -> None:
        self._name = provider_name
        self._replies = list(replies) if replies else [response_content]
        self._tokens = tokens
        self._latency_sec = latency_sec
        self.requests: list[Request] = []
        # Shadow the class method with an AsyncMock at the instance level.
        # ABC check passes because execute is defined in the class body below.
        self.execute = AsyncMock(side_effect=self._reply)  # type: ignore[assignment]

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-model"

    async def _reply(self, request: Request) -> Response:
        self.requests.append(request)
        reply = self._replies[0] if len(self._replies) == 1 else self._replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return make_response(self._name, reply, tokens=self._tokens, latency_sec=self._latency_sec)

    async def execute(self, request: Request) -> Response:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return make_response(self._name, self._replies[0])


def make_gateway(*providers: MockProvider, max_retries: int = 0) -> ProviderGateway:
    return ProviderGateway({p.name(): p for p in providers}, max_retries=max_retries, retry_base_delay=0.0)


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        name="test_model",
        sdk="openai",
        model="test-model-1",
        api_key_env="TEST_API_KEY",
        timeout_sec=30,
        max_tokens=1024,
        base_url=None,
    )


@pytest.fixture
def sample_defaults_config(tmp_path: Path) -> DefaultsConfig:
    return DefaultsConfig(
        strategy="parallel",
        output_dir=tmp_path / "output",
        synthesizer="claude",
        default_panel=["claude", "gemini", "deepseek"],
        full_panel=["claude", "gemini", "deepseek", "openai", "grok"],
    )


@pytest.fixture
def sample_app_config(sample_defaults_config: DefaultsConfig) -> AppConfig:
    model_cfg = ModelConfig(
        name="claude",
        sdk="anthropic",
        model="claude-sonnet-4-20250514",
        api_key_env="ANTHROPIC_API_KEY",
        timeout_sec=60,
        max_tokens=4096,
    )
    return AppConfig(
        defaults=sample_defaults_config,
        models={"claude": model_cfg},
        prompts=PromptsConfig(),
        available_providers={"claude"},
    )


@pytest.fixture
def sample_request() -> Request:
    return Request(prompt="Should we use YAML or JSON for config?", id="req-test")


@pytest.fixture
def mock_provider() -> MockProvider:
    return MockProvider()


@pytest.fixture
def two_mock_providers() -> list[MockProvider]:
    return [MockProvider("provider_a", "Response from A"), MockProvider("provider_b", "Response from B")]
