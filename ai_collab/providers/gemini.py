"""Gemini provider using google-genai SDK with native async."""

import asyncio
import logging
import os
import time

from google import genai
from google.genai import types as genai_types

from ai_collab.models import Request, Response, TokenUsage
from ai_collab.providers.base import AUTH, EMPTY, TIMEOUT, AIProvider, ProviderError, classify_error
from config.config_loader import ModelConfig

logger = logging.getLogger(__name__)

_FINISH_REASONS = {"STOP": "stop", "MAX_TOKENS": "length", "SAFETY": "content_filter"}


class GeminiProvider(AIProvider):
    """Google Gemini provider via google-genai SDK."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}", kind=AUTH)
        self._client = genai.Client(api_key=api_key)

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    async def execute(self, request: Request) -> Response:
        model = request.model or self._config.model
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=model,
                    contents=request.prompt,
                    config=genai_types.GenerateContentConfig(
                        max_output_tokens=request.max_tokens or self._config.max_tokens,
                        temperature=request.temperature,
                        top_p=request.top_p,
                    ),
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

        if not response.text:
            raise ProviderError(self._config.name, "Empty response text", kind=EMPTY)

        usage = TokenUsage()
        if response.usage_metadata:
            meta = response.usage_metadata
            usage = TokenUsage(
                prompt_tokens=meta.prompt_token_count or 0,
                completion_tokens=meta.candidates_token_count or 0,
                total_tokens=meta.total_token_count or 0,
            )

        finish_reason = None
        if response.candidates and response.candidates[0].finish_reason:
            raw = getattr(response.candidates[0].finish_reason, "name", str(response.candidates[0].finish_reason))
            finish_reason = _FINISH_REASONS.get(raw, raw.lower())

        logger.info("Gemini %s: %.2fs, %d tokens", request.id, latency, usage.total_tokens)

        return Response(
            id=f"{request.id}-{self._config.name}",
            provider=self._config.name,
            model=model,
            content=response.text,
            usage=usage,
            latency_sec=latency,
            finish_reason=finish_reason,
        )
