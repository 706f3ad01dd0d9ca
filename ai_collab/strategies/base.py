"""Plumbing shared by the four strategies: provider calls, fan-out, result records."""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

from ai_collab.errors import AggregateFailure, CollabError, ValidationError
from ai_collab.gateway import ProviderGateway
from ai_collab.models import CollaborationResult, Request, Response
from ai_collab.providers.base import TIMEOUT, ProviderError
from config.config_loader import PromptsConfig

logger = logging.getLogger(__name__)


def timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def child_request(request: Request, suffix: str, prompt: str | None = None) -> Request:
    """Derive a per-call request whose id records where it came from."""
    return replace(
        request,
        id=f"{request.id}-{suffix}",
        prompt=request.prompt if prompt is None else prompt,
    )


async def call_provider(
    gateway: ProviderGateway,
    provider: str,
    request: Request,
    timeout_sec: float,
) -> Response | ProviderError:
    """Call one provider under its own timeout.

    Never raises. Returns ProviderError on failure so a batch can keep going.
    """
    try:
        return await asyncio.wait_for(gateway.execute(provider, request), timeout=timeout_sec)
    except TimeoutError:
        logger.warning("Provider %s timed out after %.1fs", provider, timeout_sec)
        return ProviderError(provider, f"Request timed out after {timeout_sec}s", kind=TIMEOUT)
    except ProviderError as exc:
        logger.warning("Provider %s failed: %s", provider, exc)
        return exc
    except Exception as exc:
        logger.warning("Provider %s unexpected failure: %s", provider, exc)
        return ProviderError(provider, f"Unexpected error: {exc}")


async def fan_out(
    gateway: ProviderGateway,
    calls: list[tuple[str, Request]],
    timeout_sec: float,
) -> list[tuple[str, Response | ProviderError]]:
    """Run every call concurrently and wait for all to settle.

    Results come back in submission order, not completion order.
    """
    results = await asyncio.gather(
        *(call_provider(gateway, provider, request, timeout_sec) for provider, request in calls)
    )
    return [(provider, result) for (provider, _), result in zip(calls, results)]


def split_outcomes(
    outcomes: list[tuple[str, Response | ProviderError]],
) -> tuple[list[tuple[str, Response]], list[str]]:
    successes = [(p, r) for p, r in outcomes if isinstance(r, Response)]
    failed = [p for p, r in outcomes if not isinstance(r, Response)]
    return successes, failed


class Strategy(ABC):
    """Base for the orchestration strategies.

    ``execute`` never raises: CollabError subclasses and unexpected exceptions
    become a CollaborationResult with success=False.
    """

    name: str = ""

    def __init__(self, gateway: ProviderGateway, prompts: PromptsConfig | None = None) -> None:
        self._gateway = gateway
        self._prompts = prompts or PromptsConfig()

    async def execute(self, request: Request, config: Any) -> CollaborationResult:
        started = time.monotonic()
        try:
            result = await self._run(request, config)
        except CollabError as exc:
            logger.error("%s strategy failed: %s", self.name, exc.message)
            extra: dict[str, Any] = {}
            if isinstance(exc, AggregateFailure) and exc.failed_providers:
                extra["failed_providers"] = exc.failed_providers
            return self._failure(request, started, exc.message, **extra)
        except Exception as exc:
            logger.exception("%s strategy crashed", self.name)
            return self._failure(request, started, f"Unexpected error: {exc}")

        result.metadata.setdefault("request_id", request.id)
        result.metadata.setdefault("timestamp", timestamp())
        result.metadata["execution_time_sec"] = time.monotonic() - started
        return result

    @abstractmethod
    async def _run(self, request: Request, config: Any) -> CollaborationResult:
        """Run the strategy. May raise CollabError subclasses."""
        ...

    def _failure(self, request: Request, started: float, error: str, **extra: Any) -> CollaborationResult:
        metadata = {
            "request_id": request.id,
            "timestamp": timestamp(),
            "execution_time_sec": time.monotonic() - started,
            "error": error,
            **extra,
        }
        return CollaborationResult(success=False, strategy=self.name, metadata=metadata)

    def _available(self, providers: list[str], minimum: int = 1) -> list[str]:
        """Keep requested providers the gateway can reach, in order, without duplicates.

        Raises:
            ValidationError: Fewer than ``minimum`` providers remain.
        """
        available = self._gateway.list_available()
        usable: list[str] = []
        for provider in providers:
            if provider in usable:
                logger.warning("Provider %s listed twice, ignoring duplicate", provider)
            elif provider not in available:
                logger.warning("Provider %s is not available, skipping", provider)
            else:
                usable.append(provider)
        if len(usable) < minimum:
            raise ValidationError(
                f"{self.name} strategy needs at least {minimum} available provider(s), "
                f"got {len(usable)} of {len(providers)} requested"
            )
        return usable
