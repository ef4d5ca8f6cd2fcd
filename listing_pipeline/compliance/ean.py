"""
EAN/GTIN barcode validation.

Validates 13-digit codes against the GS1 check digit algorithm.
"""

import re
from typing import Optional

from pydantic import Field

from listing_pipeline.models.schemas import BaseModel

EAN_LENGTH = 13

_SEPARATORS = re.compile(r"[\s-]")


class EANValidationResult(BaseModel):
    valid: bool
    error: Optional[str] = Field(default=None)
    normalized: Optional[str] = Field(default=None, description="Cleaned 13-digit code")


def compute_check_digit(first_twelve: str) -> int:
    """
    GS1 check digit for the first twelve digits of an EAN-13.

    Even (0-based) positions weigh 1, odd positions weigh 3.

    Example:
        >>> compute_check_digit("400638133393")
        1
    """
    if len(first_twelve) != EAN_LENGTH - 1 or not first_twelve.isdigit():
        raise ValueError(f"Expected 12 digits, got: {first_twelve!r}")
    total = sum(int(d) * (3 if i % 2 else 1) for i, d in enumerate(first_twelve))
    return (10 - total % 10) % 10


def validate_ean(code: Optional[str]) -> EANValidationResult:
    """Validate an EAN/GTIN code. Pure and side-effect free."""
    if not code:
        return EANValidationResult(valid=False, error="EAN/GTIN is required but not provided")

    cleaned = _SEPARATORS.sub("", code)
    if len(cleaned) != EAN_LENGTH or not cleaned.isascii() or not cleaned.isdigit():
        return EANValidationResult(
            valid=False,
            error=f"EAN/GTIN must be 13 digits, got: {len(cleaned)} characters",
        )

    expected = compute_check_digit(cleaned[:12])
    if int(cleaned[12]) != expected:
        return EANValidationResult(
            valid=False,
            error=f"Invalid EAN/GTIN checksum. Expected check digit: {expected}",
            normalized=cleaned,
        )

    return EANValidationResult(valid=True, normalized=cleaned)
