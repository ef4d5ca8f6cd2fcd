"""Data models module for the Marketplace Listing Pipeline."""

from listing_pipeline.models.schemas import (
    # Base Models
    BaseModel,
    utcnow,

    # Enums
    Platform,
    Channel,
    DescriptionFormat,
    ComplianceRuleKey,
    RuleSeverity,
    RuleStatus,
    StepId,
    StepStatus,
    RunStatus,
    SectionKey,
    SectionStatus,
    ReviewMode,
    ErrorType,
    EDITOR_SECTIONS,

    # Step Catalogue
    StepDefinition,
    PIPELINE_STEPS,
    STEP_ORDER,

    # Product Models
    ProductImage,
    FaqEntry,
    ProductData,
    ProductComplianceAttributes,

    # Trigger
    PipelineTrigger,

    # Compliance Models
    ComplianceRuleResult,
    ComplianceCheckResult,
    ContentRuleResult,
    ContentComplianceResult,
    PlatformComplianceReport,
    ComplianceReport,

    # Pipeline Models
    StepResult,
    RunSummary,
    PipelineRun,
    PipelineEvent,
    ReviewOutcome,

    # Section Models
    SectionGenerationState,
    ContentSectionRequest,
    ContentSectionResponse,
)

__all__ = [
    "BaseModel",
    "utcnow",
    "Platform",
    "Channel",
    "DescriptionFormat",
    "ComplianceRuleKey",
    "RuleSeverity",
    "RuleStatus",
    "StepId",
    "StepStatus",
    "RunStatus",
    "SectionKey",
    "SectionStatus",
    "ReviewMode",
    "ErrorType",
    "EDITOR_SECTIONS",
    "StepDefinition",
    "PIPELINE_STEPS",
    "STEP_ORDER",
    "ProductImage",
    "FaqEntry",
    "ProductData",
    "ProductComplianceAttributes",
    "PipelineTrigger",
    "ComplianceRuleResult",
    "ComplianceCheckResult",
    "ContentRuleResult",
    "ContentComplianceResult",
    "PlatformComplianceReport",
    "ComplianceReport",
    "StepResult",
    "RunSummary",
    "PipelineRun",
    "PipelineEvent",
    "ReviewOutcome",
    "SectionGenerationState",
    "ContentSectionRequest",
    "ContentSectionResponse",
]
