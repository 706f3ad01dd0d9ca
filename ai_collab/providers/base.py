"""Abstract base for all AI model providers."""

from abc import ABC, abstractmethod

from ai_collab.models import Request, Response

# Failure kinds a backend can report. The gateway only retries the transient ones.
TRANSPORT = "transport"
AUTH = "auth"
RATE_LIMIT = "rate_limit"
TIMEOUT = "timeout"
EMPTY = "empty"
UNAVAILABLE = "unavailable"

RETRYABLE_KINDS = frozenset({TRANSPORT, RATE_LIMIT})


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str, kind: str = TRANSPORT) -> None:
        self.provider_name = provider_name
        self.kind = kind
        super().__init__(f"[{provider_name}] {message}")


def classify_error(exc: Exception) -> str:
    """Map an SDK exception onto one of the provider failure kinds."""
    status = getattr(exc, "status_code", None) or getattr(exc, "code", None)
    text = f"{type(exc).__name__} {exc}".lower()
    if status == 429 or "ratelimit" in text or "rate limit" in text or "rate_limit" in text:
        return RATE_LIMIT
    if status in (401, 403) or "authentication" in text or "permission" in text:
        return AUTH
    if isinstance(exc, TimeoutError) or "timeout" in text or "timed out" in text:
        return TIMEOUT
    return TRANSPORT


class AIProvider(ABC):
    """Abstract base for all AI model providers."""

    @abstractmethod
    def name(self) -> str:
        """Return the short provider name (e.g. 'gemini', 'claude')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the actual model identifier string."""
        ...

    @abstractmethod
    async def execute(self, request: Request) -> Response:
        """Generate a response for the given request.

        Args:
            request: The request to send. ``request.model`` overrides the
                configured model when set.

        Returns:
            Response carrying content, token usage, latency and finish reason.

        Raises:
            ProviderError: On API failure, timeout, or invalid response.
        """
        ...
