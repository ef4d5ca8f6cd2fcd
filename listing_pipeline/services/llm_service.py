"""
Claude API service for listing content generation.

Section prompts are small and repeat often while an editor regenerates
content, so the service keeps a short-lived response cache in front of the
Messages API. Requests are throttled per minute, transient failures (rate
limits, 5xx, connection drops, timeouts) are retried with jittered backoff,
and every billed call is recorded with its token cost.

Example:
    >>> async with ClaudeService() as service:
    ...     html = await service.generate_html(prompt, system=SECTION_SYSTEM_PROMPT)
"""

from __future__ import annotations

import asyncio
import hashlib
import random
import time
from collections import OrderedDict, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

import anthropic
from anthropic import APIConnectionError, APIStatusError, RateLimitError

from listing_pipeline.config.settings import Settings, get_settings
from listing_pipeline.utils.logger import get_logger
from listing_pipeline.utils.retry import APIKeyError

logger = get_logger(__name__)


class TaskType(str, Enum):
    """What a request generates; logged and part of the cache key."""
    SECTION = "section"
    FULL_TEMPLATE = "full_template"


# USD per million tokens, matched by model-name prefix
MODEL_PRICING: tuple[tuple[str, float, float], ...] = (
    ("claude-sonnet-4", 3.00, 15.00),
    ("claude-3-5-sonnet", 3.00, 15.00),
    ("claude-3-5-haiku", 0.80, 4.00),
    ("claude-3-haiku", 0.25, 1.25),
)

MAX_BACKOFF_SECONDS = 60
RATE_LIMIT_BACKOFF_BASE = 30
CACHE_MAX_ENTRIES = 256


def _price_for(model: str) -> Optional[tuple[float, float]]:
    for prefix, input_price, output_price in MODEL_PRICING:
        if model.startswith(prefix):
            return input_price, output_price
    return None


@dataclass
class TokenUsage:
    """Tokens billed for one request."""
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    estimated_cost: float = 0.0
    model: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def calculate_cost(self, model: str) -> float:
        """Set and return the estimated USD cost; unknown models cost 0."""
        price = _price_for(model)
        if price is not None:
            input_price, output_price = price
            self.estimated_cost = (self.input_tokens * input_price + self.output_tokens * output_price) / 1_000_000
        return self.estimated_cost


class RateLimiter:
    """At most ``max_requests`` calls in any ``window_seconds`` window."""

    def __init__(self, max_requests: int = 20, window_seconds: float = 60.0):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._calls: deque[float] = deque()
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        async with self._lock:
            while True:
                now = time.monotonic()
                while self._calls and now - self._calls[0] >= self.window_seconds:
                    self._calls.popleft()
                if len(self._calls) < self.max_requests:
                    self._calls.append(now)
                    return
                wait = self.window_seconds - (now - self._calls[0])
                logger.warning("Request budget exhausted, waiting", wait_seconds=round(wait, 2))
                await asyncio.sleep(wait)


class ResponseCache:
    """LRU cache of generated text with a time-to-live."""

    def __init__(self, ttl_seconds: float, max_entries: int = CACHE_MAX_ENTRIES):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._entries: OrderedDict[str, tuple[float, str, int]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[tuple[str, int]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, text, tokens = entry
        if time.monotonic() - stored_at > self.ttl_seconds:
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return text, tokens

    def put(self, key: str, text: str, tokens: int) -> None:
        self._entries[key] = (time.monotonic(), text, tokens)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)


class ClaudeServiceError(Exception):
    """Base exception for Claude service errors."""


class EmptyResponseError(ClaudeServiceError):
    """The model answered without any text."""


class MaxRetriesExceededError(ClaudeServiceError):
    """Every attempt failed with a transient error."""


class ClaudeService:
    """
    Claude API client used by the model-backed content generator.

    Attributes:
        settings: Application settings
        client: Anthropic async client
        token_usage_history: One ``TokenUsage`` per billed request
        total_cost: Running USD total
        cache_hits: Requests answered from the cache
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        api_key: Optional[str] = None,
        max_retries: Optional[int] = None,
        cache_ttl: Optional[int] = None,
        enable_cache: Optional[bool] = None,
        client: Optional[anthropic.AsyncAnthropic] = None,
    ):
        """
        Args:
            settings: Application settings instance
            api_key: Override API key (uses settings if not provided)
            max_retries: Maximum attempts per request
            cache_ttl: Cache time-to-live in seconds
            enable_cache: Whether to cache responses
            client: Pre-built Anthropic client

        Raises:
            APIKeyError: If no API key is available and no client is given
        """
        self.settings = settings or get_settings()
        self.model = self.settings.claude_model
        self.max_retries = max_retries or self.settings.max_retries
        self.enable_cache = self.settings.cache_enabled if enable_cache is None else enable_cache

        if client is None:
            secret = self.settings.anthropic_api_key
            key = api_key or (secret.get_secret_value() if secret else None)
            if not key:
                raise APIKeyError("ANTHROPIC_API_KEY is not configured")
            client = anthropic.AsyncAnthropic(api_key=key)
        self.client = client

        self.rate_limiter = RateLimiter(max_requests=self.settings.max_requests_per_minute)
        self.cache = ResponseCache(ttl_seconds=cache_ttl or self.settings.cache_ttl_seconds)

        self.token_usage_history: list[TokenUsage] = []
        self.total_cost: float = 0.0
        self.cache_hits: int = 0

        logger.info(
            "ClaudeService initialized",
            model=self.model,
            max_retries=self.max_retries,
            cache_enabled=self.enable_cache,
        )

    async def __aenter__(self) -> "ClaudeService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self.client.close()
        logger.info(
            "ClaudeService closed",
            total_requests=len(self.token_usage_history),
            total_cost=f"${self.total_cost:.4f}",
        )

    async def generate_html(
        self,
        prompt: str,
        system: str = "",
        task_type: TaskType = TaskType.SECTION,
        use_cache: bool = True,
    ) -> str:
        """
        Generate HTML for one prompt.

        Raises:
            EmptyResponseError: If the model returned only whitespace
            ClaudeServiceError: On API failures
        """
        use_cache = use_cache and self.enable_cache
        key = self._cache_key(task_type, system, prompt)

        if use_cache:
            cached = self.cache.get(key)
            if cached is not None:
                self.cache_hits += 1
                logger.debug("Cache hit", task_type=task_type.value, tokens_saved=cached[1])
                return cached[0]

        text, usage = await self._create_message(prompt, system, task_type)
        if not text.strip():
            raise EmptyResponseError("Model returned an empty response")

        if use_cache:
            self.cache.put(key, text, usage.total_tokens)
        return text

    async def _create_message(self, prompt: str, system: str, task_type: TaskType) -> tuple[str, TokenUsage]:
        """One Messages API call, retried while the failure is transient."""
        await self.rate_limiter.acquire()

        last_error: Optional[Exception] = None
        for attempt in range(self.max_retries):
            started = time.monotonic()
            try:
                response = await asyncio.wait_for(
                    self.client.messages.create(
                        model=self.model,
                        max_tokens=self.settings.claude_max_tokens,
                        temperature=self.settings.generation_temperature,
                        system=system,
                        messages=[{"role": "user", "content": prompt}],
                    ),
                    timeout=self.settings.request_timeout_seconds,
                )
            except (RateLimitError, APIStatusError, APIConnectionError, asyncio.TimeoutError) as e:
                last_error = e
                delay = self._retry_delay(e, attempt)
                logger.warning(
                    "Claude request failed, retrying",
                    task_type=task_type.value,
                    attempt=attempt + 1,
                    error=str(e) or type(e).__name__,
                    wait_seconds=round(delay, 2),
                )
                await asyncio.sleep(delay)
                continue

            usage = self._record_usage(response)
            logger.info(
                "Claude request completed",
                task_type=task_type.value,
                attempt=attempt + 1,
                elapsed_seconds=round(time.monotonic() - started, 2),
                input_tokens=usage.input_tokens,
                output_tokens=usage.output_tokens,
            )
            text = "".join(getattr(block, "text", "") for block in response.content or [])
            return text, usage

        logger.error("Claude request gave up", task_type=task_type.value, attempts=self.max_retries)
        raise MaxRetriesExceededError(f"Failed after {self.max_retries} attempts: {last_error}")

    def _retry_delay(self, error: Exception, attempt: int) -> float:
        """Seconds to wait before the next attempt; raises for permanent failures."""
        if isinstance(error, RateLimitError):
            return self._calculate_backoff(attempt, base=RATE_LIMIT_BACKOFF_BASE)
        if isinstance(error, APIStatusError) and error.status_code < 500:
            if error.status_code == 401:
                raise ClaudeServiceError(f"Authentication failed: {error}") from error
            raise ClaudeServiceError(f"API error: {error}") from error
        return self._calculate_backoff(attempt)

    def _record_usage(self, response: Any) -> TokenUsage:
        usage = TokenUsage(
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            total_tokens=response.usage.input_tokens + response.usage.output_tokens,
            model=self.model,
        )
        usage.calculate_cost(self.model)
        self.token_usage_history.append(usage)
        self.total_cost += usage.estimated_cost
        return usage

    @staticmethod
    def _calculate_backoff(attempt: int, base: float = 1.0) -> float:
        """Exponential backoff with up to 10% jitter, capped."""
        delay = base * (2 ** attempt)
        return min(delay + random.uniform(0, delay * 0.1), MAX_BACKOFF_SECONDS)

    def _cache_key(self, task_type: TaskType, system: str, prompt: str) -> str:
        material = "\x1f".join((
            self.model,
            task_type.value,
            str(self.settings.generation_temperature),
            system,
            prompt,
        ))
        return hashlib.sha256(material.encode("utf-8")).hexdigest()

    def get_usage_stats(self) -> dict[str, Any]:
        history = self.token_usage_history
        total_tokens = sum(u.total_tokens for u in history)
        return {
            "total_requests": len(history),
            "total_tokens": total_tokens,
            "total_input_tokens": sum(u.input_tokens for u in history),
            "total_output_tokens": sum(u.output_tokens for u in history),
            "total_cost": self.total_cost,
            "avg_tokens_per_request": total_tokens // len(history) if history else 0,
            "cache_size": len(self.cache),
            "cache_hits": self.cache_hits,
        }

    def reset_usage_stats(self) -> None:
        self.token_usage_history.clear()
        self.total_cost = 0.0
        self.cache_hits = 0
        logger.info("Usage statistics reset")


__all__ = [
    "ClaudeService",
    "TaskType",
    "TokenUsage",
    "RateLimiter",
    "ResponseCache",
    "ClaudeServiceError",
    "EmptyResponseError",
    "MaxRetriesExceededError",
]
