"""OpenAI provider using openai SDK with native async.

Also serves OpenAI-compatible endpoints (xAI Grok, DeepSeek, local servers)
when the model config sets ``base_url``.
"""

import asyncio
import logging
import os
import time

from openai import AsyncOpenAI

from ai_collab.models import Request, Response, TokenUsage
from ai_collab.providers.base import AUTH, EMPTY, TIMEOUT, AIProvider, ProviderError, classify_error
from config.config_loader import ModelConfig

logger = logging.getLogger(__name__)


class OpenAIProvider(AIProvider):
    """OpenAI (or OpenAI-compatible) provider via openai SDK."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}", kind=AUTH)
        if config.base_url:
            self._client = AsyncOpenAI(api_key=api_key, base_url=config.base_url)
        else:
            self._client = AsyncOpenAI(api_key=api_key)

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
                self._client.chat.completions.create(
                    model=model,
                    messages=[{"role": "user", "content": request.prompt}],
                    max_tokens=request.max_tokens or self._config.max_tokens,
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

        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            raise ProviderError(self._config.name, "Empty response content", kind=EMPTY)

        usage = TokenUsage()
        if response.usage:
            usage = TokenUsage(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
            )

        logger.info("OpenAI-compatible %s (%s): %.2fs, %d tokens", self._config.name, request.id, latency, usage.total_tokens)

        return Response(
            id=response.id or f"{request.id}-{self._config.name}",
            provider=self._config.name,
            model=response.model or model,
            content=choice.message.content,
            usage=usage,
            latency_sec=latency,
            finish_reason=choice.finish_reason,
        )
