"""
Outbound pipeline events.

The orchestrator emits ``pipeline/step.completed`` after every step boundary
and exactly one ``pipeline/completed`` per run. Sinks decide where the events
go: memory (tests, CLI), the log, or an HTTP webhook.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

import httpx

from listing_pipeline.models.schemas import PipelineEvent
from listing_pipeline.utils.logger import get_logger
from listing_pipeline.utils.retry import async_retry

logger = get_logger(__name__)

STEP_COMPLETED_EVENT = "pipeline/step.completed"
PIPELINE_COMPLETED_EVENT = "pipeline/completed"


class EventDeliveryError(Exception):
    """Raised when an event could not be delivered."""

    def __init__(self, message: str, event_name: Optional[str] = None):
        super().__init__(message)
        self.event_name = event_name


class EventSink(ABC):
    """Destination for pipeline events."""

    @abstractmethod
    async def emit(self, event: PipelineEvent) -> None:
        """Deliver one event. Raises ``EventDeliveryError`` on failure."""

    async def close(self) -> None:
        return None


class InMemoryEventSink(EventSink):
    """Keeps every event in order."""

    def __init__(self):
        self.events: list[PipelineEvent] = []

    async def emit(self, event: PipelineEvent) -> None:
        self.events.append(event)

    def named(self, name: str) -> list[PipelineEvent]:
        return [e for e in self.events if e.name == name]

    def for_run(self, pipeline_id: str) -> list[PipelineEvent]:
        return [e for e in self.events if e.data.get("pipeline_id") == pipeline_id]

    def clear(self) -> None:
        self.events.clear()


class LoggingEventSink(EventSink):
    async def emit(self, event: PipelineEvent) -> None:
        logger.info("Pipeline event", event=event.name, **_log_fields(event.data))


def _log_fields(data: dict[str, Any]) -> dict[str, Any]:
    keys = ("pipeline_id", "step_id", "status", "summary")
    return {k: data[k] for k in keys if k in data}


class WebhookEventSink(EventSink):
    """
    POSTs events as JSON to a webhook URL.

    Network errors and timeouts are retried with exponential backoff; HTTP
    error responses are not.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        headers: Optional[dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.headers = headers or {}
        self._client = client
        self._owns_client = client is None

    async def connect(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=5.0),
                limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
            )
            self._owns_client = True

    async def disconnect(self) -> None:
        if self._client and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "WebhookEventSink":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()

    async def close(self) -> None:
        await self.disconnect()

    @async_retry(
        max_attempts=3,
        backoff_factor=2.0,
        initial_wait=1.0,
        exceptions=(httpx.TimeoutException, httpx.NetworkError),
    )
    async def _post(self, body: dict[str, Any]) -> httpx.Response:
        if self._client is None:
            await self.connect()
        response = await self._client.post(self.url, json=body, headers=self.headers)
        response.raise_for_status()
        return response

    async def emit(self, event: PipelineEvent) -> None:
        body = event.model_dump(mode="json")
        try:
            await self._post(body)
        except httpx.HTTPStatusError as e:
            error_msg = f"HTTP {e.response.status_code}: {e.response.text[:200]}"
            logger.error("Webhook delivery rejected", event=event.name, error=error_msg)
            raise EventDeliveryError(f"Webhook error: {error_msg}", event.name) from e
        except httpx.HTTPError as e:
            logger.error("Webhook delivery failed", event=event.name, error=str(e))
            raise EventDeliveryError(f"Webhook error: {e}", event.name) from e

        logger.debug("Webhook delivered", event=event.name, url=self.url)


class CompositeEventSink(EventSink):
    """
    Fans events out to several sinks.

    Every sink is attempted; if any failed, one ``EventDeliveryError``
    naming the failures is raised afterwards.
    """

    def __init__(self, sinks: Sequence[EventSink]):
        self.sinks = list(sinks)

    async def emit(self, event: PipelineEvent) -> None:
        failures = []
        for sink in self.sinks:
            try:
                await sink.emit(event)
            except EventDeliveryError as e:
                failures.append(f"{type(sink).__name__}: {e}")
        if failures:
            raise EventDeliveryError("; ".join(failures), event.name)

    async def close(self) -> None:
        for sink in self.sinks:
            await sink.close()


def create_event_sink(webhook_url: Optional[str] = None) -> EventSink:
    """Logging sink, plus a webhook sink when a URL is configured."""
    if not webhook_url:
        return LoggingEventSink()
    return CompositeEventSink([LoggingEventSink(), WebhookEventSink(webhook_url)])
