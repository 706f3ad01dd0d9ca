"""Uniform access to the configured provider backends."""

import asyncio
import logging

from ai_collab.models import Request, Response
from ai_collab.providers.base import RETRYABLE_KINDS, UNAVAILABLE, AIProvider, ProviderError, classify_error

logger = logging.getLogger(__name__)


class ProviderGateway:
    """Routes requests to providers by tag.

    Args:
        providers: Provider instances keyed by tag ("claude", "gemini", ...).
        max_retries: Extra attempts for rate-limit and transport failures.
        retry_base_delay: Seconds before the first retry; doubles each attempt.
    """

    def __init__(
        self,
        providers: dict[str, AIProvider],
        max_retries: int = 0,
        retry_base_delay: float = 1.0,
    ) -> None:
        self._providers = dict(providers)
        self._max_retries = max(0, max_retries)
        self._retry_base_delay = retry_base_delay

    def list_available(self) -> set[str]:
        return set(self._providers)

    async def execute(self, provider: str, request: Request) -> Response:
        """Send ``request`` to ``provider``.

        Raises:
            ProviderError: Unknown provider, or the backend failed after all
                permitted retries.
        """
        backend = self._providers.get(provider)
        if backend is None:
            raise ProviderError(provider, "Provider not available", kind=UNAVAILABLE)

        attempt = 0
        while True:
            try:
                return await backend.execute(request)
            except ProviderError as exc:
                error = exc
            except Exception as exc:
                error = ProviderError(provider, f"Unexpected error: {exc}", kind=classify_error(exc))
                error.__cause__ = exc

            if error.kind not in RETRYABLE_KINDS or attempt >= self._max_retries:
                raise error
            delay = self._retry_base_delay * (2 ** attempt)
            attempt += 1
            logger.warning(
                "Provider %s failed (%s), retry %d/%d in %.1fs",
                provider, error.kind, attempt, self._max_retries, delay,
            )
            await asyncio.sleep(delay)
