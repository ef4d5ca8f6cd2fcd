"""
Pydantic models and schemas for the Marketplace Listing Pipeline.

This module defines the data structures shared by the compliance engine,
the content generators and the pipeline orchestrator, ensuring type safety,
validation and serialization consistency.

Models:
    - ProductData / ProductComplianceAttributes: caller supplied product facts
    - PipelineTrigger: validated pipeline start request
    - ComplianceRuleResult / ComplianceReport: compliance engine output
    - StepResult / PipelineRun: per-run orchestration state
    - SectionGenerationState: per platform, per section editor state
    - ContentSectionRequest / ContentSectionResponse: section generation API
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional, Self

from pydantic import (
    BaseModel as PydanticBaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


# =============================================================================
# Base Configuration
# =============================================================================

class BaseModel(PydanticBaseModel):
    """Base model with common configuration for all schemas."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=False,
        populate_by_name=True,
        use_enum_values=True,
        ser_json_timedelta="iso8601",
    )

    def to_json(self, **kwargs) -> str:
        """Serialize model to JSON string."""
        return self.model_dump_json(indent=2, **kwargs)

    def to_dict(self, **kwargs) -> dict[str, Any]:
        """Serialize model to dictionary."""
        return self.model_dump(**kwargs)

    @classmethod
    def from_json(cls, json_str: str) -> Self:
        """Deserialize model from JSON string."""
        return cls.model_validate_json(json_str)


def serialize_datetime(value: Optional[datetime]) -> Optional[str]:
    """Serialize datetime to ISO format, assuming UTC for naive values."""
    if not value:
        return None
    if value.tzinfo is None:
        return value.isoformat() + "Z"
    return value.isoformat()


# =============================================================================
# Enums
# =============================================================================

class Platform(str, Enum):
    """Supported marketplaces."""
    MEDIAMARKT = "mediamarkt"
    SATURN = "saturn"
    AMAZON = "amazon"
    OTTO = "otto"
    GALAXUS = "galaxus"
    KAUFLAND = "kaufland"
    EBAY = "ebay"
    SHOPEE = "shopee"
    LAZADA = "lazada"
    TIKTOK = "tiktok"
    MERCADOLIBRE = "mercadolibre"


class Channel(str, Enum):
    """Distribution path: direct-to-consumer or third-party marketplace."""
    D2C = "d2c"
    THIRD_PARTY = "3p"


class DescriptionFormat(str, Enum):
    PLAIN = "plain"
    HTML = "html"
    MARKDOWN = "markdown"


class ComplianceRuleKey(str, Enum):
    """Global compliance rules a platform can require."""
    LUCID = "LUCID"
    WEEE = "WEEE"
    EAN_GTIN = "EAN_GTIN"
    GERMAN_RETURN_ADDRESS = "GERMAN_RETURN_ADDRESS"
    IMPRESSUM = "IMPRESSUM"
    RFC_TAX_ID = "RFC_TAX_ID"
    WARRANTY_INFO = "WARRANTY_INFO"


class RuleSeverity(str, Enum):
    """Hard rules block `passed`; soft rules only warn."""
    HARD = "hard"
    SOFT = "soft"


class RuleStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    WARNING = "warning"
    NOT_APPLICABLE = "not_applicable"


class StepId(str, Enum):
    """Pipeline steps in canonical execution order."""
    ASSET_VERIFICATION = "asset-verification"
    SPEC_VERIFICATION = "spec-verification"
    COMPLIANCE_CHECK = "compliance-check"
    BANNER_GENERATION = "banner-generation"
    THUMBNAIL_GENERATION = "thumbnail-generation"
    SEO_OPTIMIZATION = "seo-optimization"
    HUMAN_REVIEW = "human-review"
    DISTRIBUTION = "distribution"


class StepStatus(str, Enum):
    """Status of an individual pipeline step."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    WARNING = "warning"
    FAILED = "failed"
    SKIPPED = "skipped"


TERMINAL_STEP_STATUSES = frozenset({
    StepStatus.COMPLETED.value,
    StepStatus.WARNING.value,
    StepStatus.FAILED.value,
    StepStatus.SKIPPED.value,
})


class RunStatus(str, Enum):
    """Overall pipeline run status."""
    PENDING = "pending"
    RUNNING = "running"
    PAUSED = "paused"
    AWAITING_REVIEW = "awaiting_review"
    COMPLETED = "completed"
    FAILED = "failed"


class SectionKey(str, Enum):
    """Content sections that can be generated independently."""
    HERO = "hero"
    GALLERY = "gallery"
    FEATURES = "features"
    SPECIFICATIONS = "specifications"
    BENEFITS = "benefits"
    WARRANTY = "warranty"
    FAQ = "faq"


# Sections shown in the per-platform editor
EDITOR_SECTIONS: tuple[SectionKey, ...] = (
    SectionKey.HERO,
    SectionKey.GALLERY,
    SectionKey.FEATURES,
    SectionKey.SPECIFICATIONS,
    SectionKey.BENEFITS,
    SectionKey.WARRANTY,
)


class SectionStatus(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    COMPLETE = "complete"
    ERROR = "error"


class ReviewMode(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"


class ErrorType(str, Enum):
    """Error type classification."""
    VALIDATION_ERROR = "validation_error"
    GENERATION_ERROR = "generation_error"
    COMPLIANCE_ERROR = "compliance_error"
    REVIEW_ERROR = "review_error"
    TIMEOUT_ERROR = "timeout_error"
    NOT_FOUND_ERROR = "not_found_error"
    INTERNAL_ERROR = "internal_error"


# =============================================================================
# Step Catalogue
# =============================================================================

class StepDefinition(BaseModel):
    """Static description of a pipeline step."""

    model_config = ConfigDict(frozen=True)

    id: StepId
    name: str
    description: str
    agent: str


PIPELINE_STEPS: tuple[StepDefinition, ...] = (
    StepDefinition(
        id=StepId.ASSET_VERIFICATION,
        name="Asset Verification",
        description="Validating images, checking quality and dimensions",
        agent="Asset Verification Agent",
    ),
    StepDefinition(
        id=StepId.SPEC_VERIFICATION,
        name="Spec Verification",
        description="Cross-referencing specifications with source data",
        agent="Spec Verification Agent",
    ),
    StepDefinition(
        id=StepId.COMPLIANCE_CHECK,
        name="Compliance Check",
        description="Ensuring content meets platform requirements",
        agent="Compliance Agent",
    ),
    StepDefinition(
        id=StepId.BANNER_GENERATION,
        name="Banner Generation",
        description="Creating platform-optimized banner images",
        agent="Banner Generation Agent",
    ),
    StepDefinition(
        id=StepId.THUMBNAIL_GENERATION,
        name="Thumbnail Generation",
        description="Generating product thumbnails for listings",
        agent="Thumbnail Agent",
    ),
    StepDefinition(
        id=StepId.SEO_OPTIMIZATION,
        name="SEO Optimization",
        description="Optimizing titles, descriptions, and keywords",
        agent="SEO Agent",
    ),
    StepDefinition(
        id=StepId.HUMAN_REVIEW,
        name="Human Review",
        description="Content review and approval workflow",
        agent="Human-in-the-Loop",
    ),
    StepDefinition(
        id=StepId.DISTRIBUTION,
        name="Platform Distribution",
        description="Publishing content to marketplace APIs",
        agent="Distribution Agent",
    ),
)

STEP_ORDER: tuple[str, ...] = tuple(step.id for step in PIPELINE_STEPS)
STEP_NAMES: dict[str, str] = {step.id: step.name for step in PIPELINE_STEPS}


# =============================================================================
# Product Models
# =============================================================================

class ProductImage(BaseModel):
    """Single product image as crawled from the source catalogue."""

    url: str = Field(..., min_length=1, description="Image URL")
    alt: str = Field(default="", description="Alt text")
    width: Optional[int] = Field(default=None, ge=0)
    height: Optional[int] = Field(default=None, ge=0)
    size_bytes: Optional[int] = Field(default=None, ge=0)
    kind: Literal["main", "gallery", "lifestyle", "feature"] = Field(default="gallery")

    @property
    def resolution(self) -> Optional[str]:
        if self.width and self.height:
            return f"{self.width}x{self.height}"
        return None

    @property
    def shortest_side(self) -> Optional[int]:
        if self.width and self.height:
            return min(self.width, self.height)
        return None


class FaqEntry(BaseModel):
    question: str
    answer: str


class ProductData(BaseModel):
    """
    Product record used as input for content generation.

    Example:
        >>> product = ProductData(title="OLED evo C4 55 Zoll", model_number="OLED55C47LA")
        >>> product.brand
        'LG'
    """

    title: str = Field(..., min_length=1, description="Product title")
    model_number: str = Field(default="", alias="modelNumber")
    brand: str = Field(default="LG")
    category_name: str = Field(default="", alias="categoryName")
    description: str = Field(default="")
    features: list[str] = Field(default_factory=list)
    highlights: list[str] = Field(default_factory=list)
    specifications: dict[str, str | int | float] = Field(default_factory=dict)
    images: list[ProductImage] = Field(default_factory=list)
    faq: list[FaqEntry] = Field(default_factory=list)
    price: Optional[str] = Field(default=None)
    currency: Optional[str] = Field(default=None)

    @field_validator("features", "highlights", mode="after")
    @classmethod
    def drop_blank_entries(cls, v: list[str]) -> list[str]:
        return [item for item in v if item]


class ProductComplianceAttributes(BaseModel):
    """
    Per-product facts needed for compliance evaluation.

    Supplied by the caller and never mutated by the pipeline.
    """

    model_config = ConfigDict(frozen=True)

    ean: Optional[str] = Field(default=None, description="EAN/GTIN barcode")
    lucid_number: Optional[str] = Field(default=None, alias="lucidNumber")
    weee_number: Optional[str] = Field(default=None, alias="weeeNumber")
    product_category: Optional[str] = Field(default=None, alias="productCategory")
    has_german_return_address: bool = Field(default=False, alias="hasGermanReturnAddress")
    has_impressum: bool = Field(default=False, alias="hasImpressum")
    rfc_tax_id: Optional[str] = Field(default=None, alias="rfcTaxId")
    has_warranty_info: bool = Field(default=False, alias="hasWarrantyInfo")


# =============================================================================
# Trigger Models
# =============================================================================

class PipelineTrigger(BaseModel):
    """
    Validated pipeline start request.

    Accepts camelCase (``productId``) or snake_case (``product_id``) keys.
    """

    product_id: str = Field(..., min_length=1, alias="productId")
    product_title: str = Field(..., min_length=1, alias="productTitle")
    model_number: Optional[str] = Field(default=None, alias="modelNumber")
    channel: Channel
    platforms: list[Platform] = Field(default_factory=list)
    language: str = Field(default="de-DE")
    country_code: str = Field(default="de", alias="countryCode")
    brand: str = Field(default="LG")
    product: Optional[ProductData] = Field(default=None)
    compliance: Optional[ProductComplianceAttributes] = Field(default=None)

    @field_validator("platforms", mode="after")
    @classmethod
    def dedupe_platforms(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(v))

    @model_validator(mode="after")
    def apply_defaults(self) -> Self:
        if not self.model_number:
            self.model_number = self.product_id
        if self.channel == Channel.THIRD_PARTY and not self.platforms:
            raise ValueError("3P channel requires at least one platform")
        return self

    def resolved_product(self) -> ProductData:
        """Product data for generation, derived from the trigger when absent."""
        if self.product is not None:
            return self.product
        return ProductData(
            title=self.product_title,
            model_number=self.model_number or self.product_id,
            brand=self.brand,
        )

    def resolved_compliance(self) -> ProductComplianceAttributes:
        """Compliance facts, falling back to the title for category detection."""
        attributes = self.compliance or ProductComplianceAttributes()
        if attributes.product_category:
            return attributes
        category = (self.product.category_name if self.product else "") or self.product_title
        return attributes.model_copy(update={"product_category": category})


# =============================================================================
# Compliance Models
# =============================================================================

class ComplianceRuleResult(BaseModel):
    """Outcome of one global compliance rule for one platform."""

    rule: ComplianceRuleKey
    name: str
    required: bool
    severity: RuleSeverity
    status: RuleStatus
    message: str

    @property
    def is_hard_failure(self) -> bool:
        return self.status == RuleStatus.FAIL and self.severity == RuleSeverity.HARD


class ComplianceCheckResult(BaseModel):
    platform: Platform
    passed: bool
    requirements: list[ComplianceRuleResult] = Field(default_factory=list)

    @property
    def failures(self) -> list[ComplianceRuleResult]:
        return [r for r in self.requirements if r.status == RuleStatus.FAIL]

    @property
    def warnings(self) -> list[ComplianceRuleResult]:
        return [r for r in self.requirements if r.status == RuleStatus.WARNING]


class ContentRuleResult(BaseModel):
    """Outcome of one content rule (title length, bullets, images...)."""

    rule: Literal["title_length", "description_length", "bullet_points", "image_requirements"]
    status: RuleStatus
    severity: RuleSeverity
    message: str
    current: Optional[int] = None
    minimum: Optional[int] = None
    maximum: Optional[int] = None


class ContentComplianceResult(BaseModel):
    platform: Platform
    passed: bool
    rules: list[ContentRuleResult] = Field(default_factory=list)

    @property
    def issues(self) -> list[ContentRuleResult]:
        return [r for r in self.rules if r.status == RuleStatus.FAIL]

    @property
    def warnings(self) -> list[ContentRuleResult]:
        return [r for r in self.rules if r.status == RuleStatus.WARNING]


class PlatformComplianceReport(BaseModel):
    platform: Platform
    passed: bool
    issues: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    global_compliance: list[ComplianceRuleResult] = Field(default_factory=list)
    content_compliance: list[ContentRuleResult] = Field(default_factory=list)


class ComplianceReport(BaseModel):
    """Aggregated compliance result across all target platforms."""

    platforms_checked: int = Field(default=0, ge=0)
    total_checks: int = Field(default=0, ge=0)
    total_issues: int = Field(default=0, ge=0)
    total_warnings: int = Field(default=0, ge=0)
    compliance_score: float = Field(default=100.0)
    platform_checks: dict[str, PlatformComplianceReport] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    status_summary: dict[str, str] = Field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return self.total_issues == 0


# =============================================================================
# Pipeline State Models
# =============================================================================

class StepResult(BaseModel):
    """Result of a single pipeline step."""

    step_id: StepId = Field(..., description="Pipeline step identifier")
    name: str = Field(default="", description="Display name")
    status: StepStatus = Field(default=StepStatus.PENDING, description="Step execution status")
    started_at: Optional[datetime] = Field(default=None, description="Step start timestamp")
    completed_at: Optional[datetime] = Field(default=None, description="Step completion timestamp")
    duration_ms: Optional[int] = Field(default=None, ge=0, description="Step duration in milliseconds")
    output: Optional[dict[str, Any]] = Field(default=None, description="Step output data")
    error: Optional[str] = Field(default=None, description="Error message if step failed")
    error_type: Optional[str] = Field(default=None, description="Categorised error type")

    @model_validator(mode="after")
    def fill_name(self) -> Self:
        if not self.name:
            self.name = STEP_NAMES.get(self.step_id, str(self.step_id))
        return self

    @field_serializer("started_at", "completed_at")
    def serialize_timestamps(self, value: Optional[datetime]) -> Optional[str]:
        return serialize_datetime(value)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STEP_STATUSES


class RunSummary(BaseModel):
    total_steps: int = Field(default=len(PIPELINE_STEPS), alias="totalSteps")
    completed_steps: int = Field(default=0, alias="completedSteps")
    failed_steps: int = Field(default=0, alias="failedSteps")
    skipped_steps: int = Field(default=0, alias="skippedSteps")
    warning_steps: int = Field(default=0, alias="warningSteps")


def _pending_steps() -> list[StepResult]:
    return [StepResult(step_id=step_id) for step_id in STEP_ORDER]


class PipelineRun(BaseModel):
    """
    Complete state of one pipeline run.

    ``steps`` always holds one entry per pipeline step in canonical order,
    whatever their status.
    """

    pipeline_id: str = Field(..., description="Unique pipeline run identifier")
    trigger: PipelineTrigger
    status: RunStatus = Field(default=RunStatus.PENDING)
    steps: list[StepResult] = Field(default_factory=_pending_steps)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None)
    completion_emitted: bool = Field(default=False)
    progress_percent: int = Field(default=0, ge=0, le=100)
    skip_requests: list[StepId] = Field(default_factory=list, description="Steps to skip when reached")
    errors: list[str] = Field(default_factory=list)

    @field_validator("steps", mode="after")
    @classmethod
    def normalise_step_order(cls, v: list[StepResult]) -> list[StepResult]:
        by_id = {step.step_id: step for step in v}
        return [by_id.get(step_id) or StepResult(step_id=step_id) for step_id in STEP_ORDER]

    @field_serializer("created_at", "updated_at", "completed_at")
    def serialize_timestamps(self, value: Optional[datetime]) -> Optional[str]:
        return serialize_datetime(value)

    def get_step(self, step_id: StepId | str) -> StepResult:
        step_id = StepId(step_id).value
        for step in self.steps:
            if step.step_id == step_id:
                return step
        raise KeyError(step_id)

    def replace_step(self, result: StepResult) -> None:
        self.steps = [result if s.step_id == result.step_id else s for s in self.steps]

    def next_pending_step(self) -> Optional[StepResult]:
        for step in self.steps:
            if not step.is_terminal:
                return step
        return None

    @property
    def results(self) -> dict[str, StepResult]:
        """Step results keyed by step id, in canonical order."""
        return {step.step_id: step for step in self.steps}

    @property
    def is_finished(self) -> bool:
        return all(step.is_terminal for step in self.steps)

    def summary(self) -> RunSummary:
        counts = {status.value: 0 for status in StepStatus}
        for step in self.steps:
            counts[step.status] += 1
        return RunSummary(
            total_steps=len(self.steps),
            completed_steps=counts[StepStatus.COMPLETED.value] + counts[StepStatus.WARNING.value],
            failed_steps=counts[StepStatus.FAILED.value],
            skipped_steps=counts[StepStatus.SKIPPED.value],
            warning_steps=counts[StepStatus.WARNING.value],
        )


class PipelineEvent(BaseModel):
    """Outbound event envelope."""

    name: Literal["pipeline/step.completed", "pipeline/completed"]
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)

    @field_serializer("timestamp")
    def serialize_timestamp(self, value: datetime) -> Optional[str]:
        return serialize_datetime(value)


class ReviewOutcome(BaseModel):
    """Decision recorded by the human review step."""

    status: Literal["approved", "rejected", "auto-approved"]
    reviewer: str
    comments: str = Field(default="")
    timestamp: datetime = Field(default_factory=utcnow)
    requires_manual_review: bool = Field(default=True)

    @field_serializer("timestamp")
    def serialize_timestamp(self, value: datetime) -> Optional[str]:
        return serialize_datetime(value)

    @property
    def approved(self) -> bool:
        return self.status in ("approved", "auto-approved")


# =============================================================================
# Section Generation Models
# =============================================================================

class SectionGenerationState(BaseModel):
    """Generation state of one content section for one platform."""

    status: SectionStatus = Field(default=SectionStatus.IDLE)
    html: str = Field(default="")
    enabled: bool = Field(default=True)
    error: Optional[str] = Field(default=None)
    updated_at: Optional[datetime] = Field(default=None)

    @field_serializer("updated_at")
    def serialize_timestamp(self, value: Optional[datetime]) -> Optional[str]:
        return serialize_datetime(value)


class ContentSectionRequest(BaseModel):
    """
    Inbound content generation request.

    Modes (mutually exclusive, checked in this order): consolidate,
    list of sections, single section, full template.
    """

    product: ProductData
    platform: Platform
    section: Optional[SectionKey] = Field(default=None)
    sections: Optional[list[str]] = Field(default=None)
    action: Optional[Literal["consolidate"]] = Field(default=None)
    section_htmls: Optional[dict[str, str]] = Field(default=None, alias="sectionHtmls")

    @property
    def mode(self) -> Literal["consolidate", "sections", "section", "full"]:
        if self.action == "consolidate" and self.section_htmls is not None:
            return "consolidate"
        if self.sections is not None:
            return "sections"
        if self.section is not None:
            return "section"
        return "full"


class ContentSectionResponse(BaseModel):
    platform: Platform
    section: str
    html: Optional[str] = Field(default=None)
    sections: dict[str, str] = Field(default_factory=dict)
    generated_sections: list[str] = Field(default_factory=list)
    included_sections: list[str] = Field(default_factory=list)
    fallback_sections: list[str] = Field(default_factory=list)


# =============================================================================
# Export All Models
# =============================================================================

__all__ = [
    # Base
    "BaseModel",
    "utcnow",
    "serialize_datetime",

    # Enums
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
    "TERMINAL_STEP_STATUSES",

    # Step catalogue
    "StepDefinition",
    "PIPELINE_STEPS",
    "STEP_ORDER",
    "STEP_NAMES",

    # Product
    "ProductImage",
    "FaqEntry",
    "ProductData",
    "ProductComplianceAttributes",

    # Trigger
    "PipelineTrigger",

    # Compliance
    "ComplianceRuleResult",
    "ComplianceCheckResult",
    "ContentRuleResult",
    "ContentComplianceResult",
    "PlatformComplianceReport",
    "ComplianceReport",

    # Pipeline
    "StepResult",
    "RunSummary",
    "PipelineRun",
    "PipelineEvent",
    "ReviewOutcome",

    # Sections
    "SectionGenerationState",
    "ContentSectionRequest",
    "ContentSectionResponse",
]
