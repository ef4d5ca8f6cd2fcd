"""Platform requirements registry (read-only, shared across runs)."""

from listing_pipeline.models.schemas import ComplianceRuleKey, Platform
from listing_pipeline.platforms.requirements import (
    GLOBAL_COMPLIANCE_RULES,
    PLATFORM_REQUIREMENTS,
    WEEE_CATEGORIES,
    CategoryMapping,
    ComplianceRuleDefinition,
    ImageRequirements,
    PlatformRequirements,
    UnknownPlatformError,
    get_rule,
    is_supported,
    lookup,
    smallest_image_floor,
    supported_platforms,
)

__all__ = [
    "Platform",
    "ComplianceRuleKey",
    "PLATFORM_REQUIREMENTS",
    "GLOBAL_COMPLIANCE_RULES",
    "WEEE_CATEGORIES",
    "CategoryMapping",
    "ComplianceRuleDefinition",
    "ImageRequirements",
    "PlatformRequirements",
    "UnknownPlatformError",
    "get_rule",
    "is_supported",
    "lookup",
    "smallest_image_floor",
    "supported_platforms",
]
