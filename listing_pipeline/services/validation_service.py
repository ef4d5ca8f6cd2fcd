"""
Validation service for inbound pipeline and content requests.

Turns raw JSON payloads into validated models, raising ``ValidationError``
with a stable machine-readable code for the caller.
"""

import re
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from listing_pipeline.models.schemas import (
    Channel,
    ContentSectionRequest,
    PipelineTrigger,
)
from listing_pipeline.platforms.requirements import is_supported, supported_platforms
from listing_pipeline.utils.logger import get_logger
from listing_pipeline.utils import retry

logger = get_logger(__name__)

MISSING_TRIGGER_FIELDS_MESSAGE = "Missing required fields: productId, productTitle, channel"
PLATFORM_REQUIRED_MESSAGE = "3P channel requires at least one platform"
MISSING_CONTENT_FIELDS_MESSAGE = "Missing product or platform"


class ValidationError(retry.ValidationError):
    """Request validation error with a stable code."""

    def __init__(self, code: str, message: str, details: Optional[dict] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "error": self.message, "details": self.details}


def _first(payload: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = payload.get(key)
        if value not in (None, ""):
            return value
    return None


class ValidationService:
    """Validates pipeline triggers and content-section requests."""

    PRODUCT_ID_PATTERN = re.compile(r"^[\w\-.]+$", re.UNICODE)

    def validate_trigger(self, payload: dict[str, Any]) -> PipelineTrigger:
        """
        Validate a pipeline start request.

        Accepts camelCase or snake_case keys.

        Raises:
            ValidationError: MISSING_FIELDS, INVALID_CHANNEL, UNKNOWN_PLATFORM,
                PLATFORM_REQUIRED, INVALID_PRODUCT_ID or INVALID_INPUT_FORMAT.
        """
        if not isinstance(payload, dict):
            raise ValidationError(
                code="INVALID_INPUT_FORMAT",
                message="Pipeline trigger must be a JSON object",
            )

        product_id = _first(payload, "productId", "product_id")
        product_title = _first(payload, "productTitle", "product_title")
        channel = _first(payload, "channel")

        if not (product_id and product_title and channel):
            missing = [
                name
                for name, value in (
                    ("productId", product_id),
                    ("productTitle", product_title),
                    ("channel", channel),
                )
                if not value
            ]
            raise ValidationError(
                code="MISSING_FIELDS",
                message=MISSING_TRIGGER_FIELDS_MESSAGE,
                details={"missing": missing},
            )

        if not isinstance(channel, str) or channel not in {c.value for c in Channel}:
            raise ValidationError(
                code="INVALID_CHANNEL",
                message=f"Invalid channel '{channel}'. Valid: d2c, 3p",
            )

        if not self.PRODUCT_ID_PATTERN.match(str(product_id)):
            raise ValidationError(
                code="INVALID_PRODUCT_ID",
                message=f"Invalid product id format: {product_id}",
            )

        platforms = payload.get("platforms") or []
        if not isinstance(platforms, list):
            raise ValidationError(
                code="INVALID_INPUT_FORMAT",
                message="platforms must be a list of platform names",
            )
        unknown = [p for p in platforms if not is_supported(p)]
        if unknown:
            valid = ", ".join(p.value for p in supported_platforms())
            raise ValidationError(
                code="UNKNOWN_PLATFORM",
                message=f"Unknown platform(s): {', '.join(map(str, unknown))}. Valid: {valid}",
                details={"unknown": unknown},
            )

        if channel == Channel.THIRD_PARTY.value and not platforms:
            raise ValidationError(code="PLATFORM_REQUIRED", message=PLATFORM_REQUIRED_MESSAGE)

        try:
            trigger = PipelineTrigger.model_validate(payload)
        except PydanticValidationError as e:
            logger.error("Trigger validation failed", error=str(e))
            raise ValidationError(
                code="INVALID_INPUT_FORMAT",
                message=f"Invalid input format: {e}",
                details={"errors": e.errors(include_url=False, include_context=False)},
            ) from e

        logger.debug(
            "Trigger validated",
            product_id=trigger.product_id,
            channel=trigger.channel,
            platforms=list(trigger.platforms),
        )
        return trigger

    def validate_content_request(self, payload: dict[str, Any]) -> ContentSectionRequest:
        """
        Validate a content-section request.

        Raises:
            ValidationError: MISSING_FIELDS, UNKNOWN_PLATFORM or INVALID_INPUT_FORMAT.
        """
        if not isinstance(payload, dict) or not payload.get("product") or not payload.get("platform"):
            raise ValidationError(code="MISSING_FIELDS", message=MISSING_CONTENT_FIELDS_MESSAGE)

        if not is_supported(payload["platform"]):
            raise ValidationError(
                code="UNKNOWN_PLATFORM",
                message=f"Unknown platform: {payload['platform']}",
            )

        try:
            return ContentSectionRequest.model_validate(payload)
        except PydanticValidationError as e:
            logger.warning("Content request validation failed", error=str(e))
            raise ValidationError(
                code="INVALID_INPUT_FORMAT",
                message=f"Invalid content request: {e}",
                details={"errors": e.errors(include_url=False, include_context=False)},
            ) from e
