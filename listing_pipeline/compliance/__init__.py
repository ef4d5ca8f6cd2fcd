"""Compliance engine: EAN/GTIN validation and platform rule evaluation."""

from listing_pipeline.compliance.checker import (
    CHECK_WEIGHT,
    ComplianceChecker,
    compute_compliance_score,
    is_weee_category,
    listing_title,
)
from listing_pipeline.compliance.ean import (
    EANValidationResult,
    compute_check_digit,
    validate_ean,
)

__all__ = [
    "CHECK_WEIGHT",
    "ComplianceChecker",
    "compute_compliance_score",
    "is_weee_category",
    "listing_title",
    "EANValidationResult",
    "compute_check_digit",
    "validate_ean",
]
