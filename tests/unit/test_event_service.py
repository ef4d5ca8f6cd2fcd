import json
import pytest
import httpx
from unittest.mock import AsyncMock, patch

from listing_pipeline.models.schemas import PipelineEvent
from listing_pipeline.services.event_service import (
    PIPELINE_COMPLETED_EVENT,
    STEP_COMPLETED_EVENT,
    CompositeEventSink,
    EventDeliveryError,
    InMemoryEventSink,
    LoggingEventSink,
    WebhookEventSink,
    create_event_sink,
)


def _event(name=STEP_COMPLETED_EVENT, **data):
    return PipelineEvent(name=name, data={"pipeline_id": "pipeline-1", **data})


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_in_memory_sink_keeps_order():
    sink = InMemoryEventSink()
    await sink.emit(_event(step_id="asset-verification"))
    await sink.emit(_event(PIPELINE_COMPLETED_EVENT, status="completed"))
    await sink.emit(PipelineEvent(name=STEP_COMPLETED_EVENT, data={"pipeline_id": "other"}))

    assert [e.name for e in sink.events] == [STEP_COMPLETED_EVENT, PIPELINE_COMPLETED_EVENT, STEP_COMPLETED_EVENT]
    assert len(sink.named(PIPELINE_COMPLETED_EVENT)) == 1
    assert len(sink.for_run("pipeline-1")) == 2

    sink.clear()
    assert sink.events == []


@pytest.mark.asyncio
async def test_logging_sink_does_not_raise():
    await LoggingEventSink().emit(_event(step_id="distribution", status="completed", extra="ignored"))


@pytest.mark.asyncio
async def test_webhook_posts_json():
    received = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(json.loads(request.content))
        return httpx.Response(202)

    client = _client(handler)
    sink = WebhookEventSink("https://hooks.example.com/pipeline", client=client, headers={"X-Token": "t"})
    await sink.emit(_event(step_id="compliance-check", status="warning"))
    await client.aclose()

    assert received[0]["name"] == STEP_COMPLETED_EVENT
    assert received[0]["data"]["step_id"] == "compliance-check"
    assert "timestamp" in received[0]


@pytest.mark.asyncio
async def test_webhook_http_error_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500, text="down")

    client = _client(handler)
    sink = WebhookEventSink("https://hooks.example.com/pipeline", client=client)

    with pytest.raises(EventDeliveryError, match="HTTP 500: down") as exc_info:
        await sink.emit(_event())
    await client.aclose()

    assert exc_info.value.event_name == STEP_COMPLETED_EVENT
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_webhook_network_error_retried():
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler)
    sink = WebhookEventSink("https://hooks.example.com/pipeline", client=client)

    with patch("listing_pipeline.utils.retry.asyncio.sleep", new_callable=AsyncMock):
        with pytest.raises(EventDeliveryError, match="connection refused"):
            await sink.emit(_event())
    await client.aclose()

    assert len(calls) == 3


@pytest.mark.asyncio
async def test_webhook_owns_client_lifecycle():
    sink = WebhookEventSink("https://hooks.example.com/pipeline")
    async with sink:
        assert sink._client is not None
    assert sink._client is None


@pytest.mark.asyncio
async def test_composite_attempts_every_sink():
    failing = AsyncMock(spec=WebhookEventSink)
    failing.emit.side_effect = EventDeliveryError("Webhook error: HTTP 503", STEP_COMPLETED_EVENT)
    memory = InMemoryEventSink()
    composite = CompositeEventSink([failing, memory])

    with pytest.raises(EventDeliveryError, match="HTTP 503"):
        await composite.emit(_event())

    assert len(memory.events) == 1


@pytest.mark.asyncio
async def test_composite_close_closes_children():
    child = AsyncMock(spec=WebhookEventSink)
    await CompositeEventSink([child]).close()
    child.close.assert_awaited_once()


def test_create_event_sink():
    assert isinstance(create_event_sink(None), LoggingEventSink)
    composite = create_event_sink("https://hooks.example.com/pipeline")
    assert isinstance(composite, CompositeEventSink)
    assert isinstance(composite.sinks[1], WebhookEventSink)
