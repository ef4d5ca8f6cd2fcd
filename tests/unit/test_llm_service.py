import pytest
import httpx
from unittest.mock import AsyncMock, MagicMock, patch

from anthropic import APIStatusError

from listing_pipeline.services.llm_service import (
    ClaudeService,
    ClaudeServiceError,
    EmptyResponseError,
    MaxRetriesExceededError,
    RateLimiter,
    ResponseCache,
    TokenUsage,
)
from listing_pipeline.utils.retry import APIKeyError


def _response(text="<div>ok</div>", input_tokens=50, output_tokens=30):
    response = MagicMock()
    response.content = [MagicMock(text=text)]
    response.usage.input_tokens = input_tokens
    response.usage.output_tokens = output_tokens
    return response


def _status_error(status_code):
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    return APIStatusError(
        f"HTTP {status_code}",
        response=httpx.Response(status_code, request=request),
        body={},
    )


@pytest.fixture
def mock_client():
    client = MagicMock()
    client.messages.create = AsyncMock(return_value=_response())
    client.close = AsyncMock()
    return client


@pytest.fixture
def service(mock_settings, mock_client):
    return ClaudeService(settings=mock_settings, client=mock_client, max_retries=2)


def test_missing_api_key_raises(mock_settings):
    with pytest.raises(APIKeyError):
        ClaudeService(settings=mock_settings)


def test_token_usage_cost():
    usage = TokenUsage(input_tokens=1000, output_tokens=1000)
    assert usage.calculate_cost("claude-sonnet-4-20250514") == pytest.approx(0.018)
    assert TokenUsage(input_tokens=1000).calculate_cost("unknown-model") == 0.0


@pytest.mark.asyncio
async def test_generate_html_success(service, mock_client):
    html = await service.generate_html("Generate the hero section", system="system")

    assert html == "<div>ok</div>"
    kwargs = mock_client.messages.create.call_args.kwargs
    assert kwargs["system"] == "system"
    assert kwargs["messages"] == [{"role": "user", "content": "Generate the hero section"}]
    assert service.total_cost > 0
    assert service.get_usage_stats()["total_requests"] == 1


@pytest.mark.asyncio
async def test_repeated_prompt_hits_cache(service, mock_client):
    await service.generate_html("same prompt")
    await service.generate_html("same prompt")

    assert mock_client.messages.create.await_count == 1
    assert service.cache_hits == 1


@pytest.mark.asyncio
async def test_cache_bypass(service, mock_client):
    await service.generate_html("same prompt", use_cache=False)
    await service.generate_html("same prompt", use_cache=False)
    assert mock_client.messages.create.await_count == 2


@pytest.mark.asyncio
async def test_empty_response(service, mock_client):
    mock_client.messages.create.return_value = _response(text="   ")
    with pytest.raises(EmptyResponseError):
        await service.generate_html("prompt")


@pytest.mark.asyncio
async def test_retry_on_server_error(service, mock_client):
    mock_client.messages.create.side_effect = [_status_error(500), _response(text="Success")]

    with patch.object(ClaudeService, "_calculate_backoff", return_value=0):
        html = await service.generate_html("prompt")

    assert html == "Success"
    assert mock_client.messages.create.await_count == 2


@pytest.mark.asyncio
async def test_auth_error_not_retried(service, mock_client):
    mock_client.messages.create.side_effect = _status_error(401)

    with pytest.raises(ClaudeServiceError, match="Authentication failed"):
        await service.generate_html("prompt")
    assert mock_client.messages.create.await_count == 1


@pytest.mark.asyncio
async def test_max_retries_exceeded(service, mock_client):
    mock_client.messages.create.side_effect = _status_error(503)

    with patch.object(ClaudeService, "_calculate_backoff", return_value=0):
        with pytest.raises(MaxRetriesExceededError, match="Failed after 2 attempts"):
            await service.generate_html("prompt")
    assert mock_client.messages.create.await_count == 2


@pytest.mark.asyncio
async def test_close_and_context_manager(mock_settings, mock_client):
    async with ClaudeService(settings=mock_settings, client=mock_client):
        pass
    mock_client.close.assert_awaited_once()


def test_usage_stats_reset(service):
    service.token_usage_history.append(TokenUsage(input_tokens=10, output_tokens=5, total_tokens=15))
    service.total_cost = 1.0
    service.reset_usage_stats()
    stats = service.get_usage_stats()
    assert stats["total_requests"] == 0
    assert stats["total_cost"] == 0.0


def test_backoff_is_capped():
    assert ClaudeService._calculate_backoff(10) <= 60


def test_response_cache_expires_and_evicts():
    cache = ResponseCache(ttl_seconds=60, max_entries=2)
    cache.put("a", "<p>a</p>", 10)
    cache.put("b", "<p>b</p>", 10)
    assert cache.get("a") == ("<p>a</p>", 10)

    cache.put("c", "<p>c</p>", 10)
    assert cache.get("b") is None
    assert len(cache) == 2

    expired = ResponseCache(ttl_seconds=-1)
    expired.put("a", "<p>a</p>", 10)
    assert expired.get("a") is None


@pytest.mark.asyncio
async def test_rate_limiter_waits_when_budget_is_spent():
    limiter = RateLimiter(max_requests=1, window_seconds=0.05)
    await limiter.acquire()

    with patch("listing_pipeline.services.llm_service.asyncio.sleep", new_callable=AsyncMock) as sleep:
        sleep.side_effect = lambda _: limiter._calls.clear()
        await limiter.acquire()

    sleep.assert_awaited_once()
