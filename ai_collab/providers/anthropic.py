"""Anthropic Claude provider using anthropic SDK with native async."""

import asyncio
import logging
import os
import time

import anthropic as anthropic_sdk

from ai_collab.models import Request, Response, TokenUsage
from ai_collab.providers.base import AUTH, EMPTY, TIMEOUT, AIProvider, ProviderError, classify_error
from config.config_loader import ModelConfig

logger = logging.getLogger(__name__)

_FINISH_REASONS = {"end_turn": "stop", "stop_sequence": "stop", "max_tokens": "length", "tool_use": "tool_calls"}


class AnthropicProvider(AIProvider):
    """Anthropic Claude provider via anthropic SDK."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}", kind=AUTH)
        self._client = anthropic_sdk.AsyncAnthropic(api_key=api_key)

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    async def execute(self, request: Request) -> Response:
        model = request.model or self._config.model
        options = {}
        if request.temperature is not None:
            options["temperature"] = request.temperature
        if request.top_p is not None:
            options["top_p"] = request.top_p

        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.messages.create(
                    model=model,
                    max_tokens=request.max_tokens or self._config.max_tokens,
                    messages=[{"role": "user", "content": request.prompt}],
                    **options,
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(
                self._config.name, f"Request timed out after {self._config.timeout_sec}s", kind=TIMEOUT
            ) from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}", kind=classify_error(exc)) from exc

        latency = time.monotonic() - start

        if not response.content:
            raise ProviderError(self._config.name, "Empty response content", kind=EMPTY)

        text_blocks = [b.text for b in response.content if b.type == "text"]
        if not text_blocks:
            raise ProviderError(self._config.name, "No text blocks in response", kind=EMPTY)

        usage = TokenUsage()
        if response.usage:
            usage = TokenUsage(
                prompt_tokens=response.usage.input_tokens,
                completion_tokens=response.usage.output_tokens,
                total_tokens=response.usage.input_tokens + response.usage.output_tokens,
            )

        logger.info("Anthropic %s: %.2fs, %d tokens", request.id, latency, usage.total_tokens)

        return Response(
            id=f"{request.id}-{self._config.name}",
            provider=self._config.name,
            model=response.model or model,
            content="\n".join(text_blocks),
            usage=usage,
            latency_sec=latency,
            finish_reason=_FINISH_REASONS.get(response.stop_reason or "", response.stop_reason),
        )
