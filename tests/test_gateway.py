"""Unit tests for ai_collab/gateway.py and provider error classification."""

import pytest

from ai_collab.gateway import ProviderGateway
from ai_collab.models import Request
from ai_collab.providers.base import (
    AUTH,
    RATE_LIMIT,
    TIMEOUT,
    TRANSPORT,
    UNAVAILABLE,
    ProviderError,
    classify_error,
)

from tests.conftest import MockProvider, make_gateway


class _RateLimited(Exception):
    status_code = 429


class _Forbidden(Exception):
    status_code = 403


def test_list_available_is_provider_tags():
    gateway = make_gateway(MockProvider("claude"), MockProvider("gemini"))
    assert gateway.list_available() == {"claude", "gemini"}


async def test_execute_routes_to_provider():
    claude = MockProvider("claude", "hello from claude")
    gateway = make_gateway(claude, MockProvider("gemini"))
    response = await gateway.execute("claude", Request(prompt="hi"))
    assert response.content == "hello from claude"
    assert claude.execute.await_count == 1


async def test_execute_unknown_provider_raises_unavailable():
    gateway = make_gateway(MockProvider("claude"))
    with pytest.raises(ProviderError) as exc_info:
        await gateway.execute("nope", Request(prompt="hi"))
    assert exc_info.value.kind == UNAVAILABLE
    assert exc_info.value.provider_name == "nope"


async def test_no_retry_by_default():
    flaky = MockProvider("flaky", replies=[ProviderError("flaky", "503", kind=TRANSPORT), "recovered"])
    gateway = make_gateway(flaky)
    with pytest.raises(ProviderError):
        await gateway.execute("flaky", Request(prompt="hi"))
    assert flaky.execute.await_count == 1


async def test_retries_transient_failures():
    flaky = MockProvider(
        "flaky",
        replies=[ProviderError("flaky", "429", kind=RATE_LIMIT), ProviderError("flaky", "503"), "recovered"],
    )
    gateway = make_gateway(flaky, max_retries=2)
    response = await gateway.execute("flaky", Request(prompt="hi"))
    assert response.content == "recovered"
    assert flaky.execute.await_count == 3


async def test_does_not_retry_auth_failures():
    broken = MockProvider("broken", replies=[ProviderError("broken", "bad key", kind=AUTH), "never"])
    gateway = make_gateway(broken, max_retries=3)
    with pytest.raises(ProviderError) as exc_info:
        await gateway.execute("broken", Request(prompt="hi"))
    assert exc_info.value.kind == AUTH
    assert broken.execute.await_count == 1


async def test_gives_up_after_max_retries():
    down = MockProvider("down", replies=[ProviderError("down", "503")])
    gateway = make_gateway(down, max_retries=2)
    with pytest.raises(ProviderError):
        await gateway.execute("down", Request(prompt="hi"))
    assert down.execute.await_count == 3


async def test_unexpected_exceptions_are_wrapped():
    odd = MockProvider("odd", replies=[RuntimeError("socket closed")])
    gateway = ProviderGateway({"odd": odd})
    with pytest.raises(ProviderError) as exc_info:
        await gateway.execute("odd", Request(prompt="hi"))
    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert "socket closed" in str(exc_info.value)


def test_provider_error_message_names_provider():
    exc = ProviderError("grok", "403 Forbidden", kind=AUTH)
    assert str(exc) == "[grok] 403 Forbidden"
    assert exc.kind == AUTH


@pytest.mark.parametrize(
    "exc, kind",
    [
        (_RateLimited("slow down"), RATE_LIMIT),
        (_Forbidden("no"), AUTH),
        (TimeoutError(), TIMEOUT),
        (ConnectionError("reset by peer"), TRANSPORT),
    ],
)
def test_classify_error(exc, kind):
    assert classify_error(exc) == kind
