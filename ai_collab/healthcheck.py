"""Provider health checks run by the CLI before a collaboration starts.

A ping is one tiny ``Request`` per backend, sent straight to the provider
(no gateway retries). A backend passes when it answers within
``_TIMEOUT_SEC`` with non-empty content; anything else is reported with a
short reason so the user can drop it from the panel.
"""

import asyncio
import logging
import time

from ai_collab.models import Request
from ai_collab.providers.base import AIProvider

logger = logging.getLogger(__name__)

_PING_PROMPT = "Reply with the word OK only."
_PING_MAX_TOKENS = 16
_TIMEOUT_SEC = 15.0

HealthStatus = tuple[bool, str]


def ping_request(name: str) -> Request:
    return Request(prompt=_PING_PROMPT, id=f"healthcheck-{name}", max_tokens=_PING_MAX_TOKENS)


async def ping(name: str, provider: AIProvider) -> HealthStatus:
    started = time.monotonic()
    try:
        response = await asyncio.wait_for(provider.execute(ping_request(name)), timeout=_TIMEOUT_SEC)
    except TimeoutError:
        reason = f"no reply within {_TIMEOUT_SEC:g}s"
    except Exception as exc:
        reason = str(exc) or type(exc).__name__
    else:
        if response.content.strip():
            logger.info("Health check passed for %s in %.2fs", name, time.monotonic() - started)
            return True, ""
        reason = "empty reply"
    logger.warning("Health check failed for %s: %s", name, reason)
    return False, reason


async def run_health_checks(providers: dict[str, AIProvider]) -> dict[str, HealthStatus]:
    """Ping every provider concurrently.

    Returns:
        Provider name -> (ok, reason); reason is "" when ok is True.
    """
    statuses = await asyncio.gather(*(ping(name, provider) for name, provider in providers.items()))
    return dict(zip(providers, statuses))
