"""
Services package for the Marketplace Listing Pipeline.

Services:
    - ClaudeService: Anthropic Claude client used for content generation
    - ValidationService: trigger and content request validation
    - ContentService: content-section request handling
    - Event sinks: in-memory, logging, webhook and composite delivery
"""

from listing_pipeline.services.llm_service import (
    ClaudeService,
    ClaudeServiceError,
    EmptyResponseError,
    MaxRetriesExceededError,
    TaskType,
    TokenUsage,
)
from listing_pipeline.services.validation_service import (
    ValidationError,
    ValidationService,
)
from listing_pipeline.services.event_service import (
    PIPELINE_COMPLETED_EVENT,
    STEP_COMPLETED_EVENT,
    CompositeEventSink,
    EventDeliveryError,
    EventSink,
    InMemoryEventSink,
    LoggingEventSink,
    WebhookEventSink,
    create_event_sink,
)
from listing_pipeline.services.content_service import ContentService

__all__ = [
    # LLM Service
    "ClaudeService",
    "TaskType",
    "TokenUsage",
    "ClaudeServiceError",
    "EmptyResponseError",
    "MaxRetriesExceededError",
    # Validation
    "ValidationError",
    "ValidationService",
    # Events
    "STEP_COMPLETED_EVENT",
    "PIPELINE_COMPLETED_EVENT",
    "EventSink",
    "EventDeliveryError",
    "InMemoryEventSink",
    "LoggingEventSink",
    "WebhookEventSink",
    "CompositeEventSink",
    "create_event_sink",
    # Content
    "ContentService",
]
