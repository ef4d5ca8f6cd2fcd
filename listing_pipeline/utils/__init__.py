"""Utils module for the Marketplace Listing Pipeline."""

from listing_pipeline.utils.logger import LogContext, get_logger, setup_logging
from listing_pipeline.utils.retry import (
    async_retry,
    CircuitBreaker,
    ErrorHandler,
    AppError,
    NetworkError,
    RateLimitError,
    ValidationError,
    APIKeyError,
    AppTimeoutError,
    ServiceUnavailableError,
)
from listing_pipeline.utils.formatters import RunReportFormatter

__all__ = [
    "get_logger",
    "setup_logging",
    "LogContext",
    "RunReportFormatter",
    "async_retry",
    "CircuitBreaker",
    "ErrorHandler",
    "AppError",
    "NetworkError",
    "RateLimitError",
    "ValidationError",
    "APIKeyError",
    "AppTimeoutError",
    "ServiceUnavailableError",
]
