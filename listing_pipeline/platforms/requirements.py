"""
Platform requirements registry.

Static, read-only table of marketplace content constraints (title, bullet,
description and image limits), required global compliance rules and the
tone/keyword guidance used downstream for generation. Adding a marketplace
means adding a ``Platform`` member and one table entry here; the checker and
the orchestrator read everything else from the table.
"""

from types import MappingProxyType
from typing import Literal, Mapping, Optional

from pydantic import ConfigDict, Field

from listing_pipeline.models.schemas import (
    BaseModel,
    ComplianceRuleKey,
    DescriptionFormat,
    Platform,
    RuleSeverity,
)


# =============================================================================
# Exceptions
# =============================================================================

class UnknownPlatformError(KeyError):
    """Raised when a platform identifier is not in the registry."""

    def __init__(self, platform: object):
        super().__init__(platform)
        self.platform = platform

    def __str__(self) -> str:
        supported = ", ".join(p.value for p in Platform)
        return f"Unknown platform '{self.platform}'. Supported: {supported}"


# =============================================================================
# Models
# =============================================================================

class ImageRequirements(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_resolution: str
    min_pixels: int = Field(..., ge=0, description="Shortest side floor in pixels")
    background: str
    min_quantity: int = Field(..., ge=0)
    max_quantity: int = Field(..., ge=1)
    allow_watermarks: bool = False
    allow_text: bool = False
    max_resolution: Optional[str] = None
    max_size: Optional[str] = None


class CategoryMapping(BaseModel):
    model_config = ConfigDict(frozen=True)

    required: bool = True
    system: str


class PlatformRequirements(BaseModel):
    """Content constraints and guidance for one marketplace."""

    model_config = ConfigDict(frozen=True)

    platform: Platform
    display_name: str
    brand_color: str
    locale: Literal["de", "en", "es", "th"]
    country: str

    title_max_length: int = Field(..., gt=0)
    title_mobile_max_length: Optional[int] = Field(default=None, gt=0)
    title_format: str
    description_max_length: int = Field(..., gt=0)
    description_format: DescriptionFormat
    bullet_points_max: int = Field(..., ge=0)
    bullet_points_min: Optional[int] = Field(default=None, ge=0)
    bullet_point_format: Optional[str] = None
    image_requirements: ImageRequirements

    tone: str
    keywords: tuple[str, ...] = ()
    extra_keywords: tuple[str, ...] = ()
    philosophy: str
    restrictions: tuple[str, ...] = ()
    compliance_notes: tuple[str, ...] = ()
    global_compliance: tuple[ComplianceRuleKey, ...] = ()
    category_mapping: CategoryMapping
    seo_notes: str
    price_history: bool = False

    seo_recommendation: Optional[str] = None
    compliance_advisory: Optional[str] = None


class ComplianceRuleDefinition(BaseModel):
    """Catalogue entry for a global compliance rule."""

    model_config = ConfigDict(frozen=True)

    key: ComplianceRuleKey
    name: str
    description: str
    required: bool = True
    severity: RuleSeverity
    categories: tuple[str, ...] = ()
    url: Optional[str] = None


# =============================================================================
# Global Compliance Rules
# =============================================================================

WEEE_CATEGORIES: tuple[str, ...] = (
    "TV",
    "Audio",
    "Laptop",
    "Monitor",
    "Projector",
    "Vacuum",
    "Air Conditioner",
)

_GLOBAL_COMPLIANCE_RULES: dict[ComplianceRuleKey, ComplianceRuleDefinition] = {
    ComplianceRuleKey.LUCID: ComplianceRuleDefinition(
        key=ComplianceRuleKey.LUCID,
        name="LUCID Packaging Register",
        description="German Packaging Act registration number required for all sellers",
        severity=RuleSeverity.HARD,
        url="https://lucid.verpackungsregister.org/",
    ),
    ComplianceRuleKey.WEEE: ComplianceRuleDefinition(
        key=ComplianceRuleKey.WEEE,
        name="WEEE Registration",
        description="Electronic waste disposal registration required for all electronics",
        severity=RuleSeverity.HARD,
        categories=WEEE_CATEGORIES,
        url="https://www.stiftung-ear.de/",
    ),
    ComplianceRuleKey.EAN_GTIN: ComplianceRuleDefinition(
        key=ComplianceRuleKey.EAN_GTIN,
        name="EAN/GTIN",
        description="13-digit barcode matching official manufacturer barcode",
        severity=RuleSeverity.HARD,
    ),
    ComplianceRuleKey.GERMAN_RETURN_ADDRESS: ComplianceRuleDefinition(
        key=ComplianceRuleKey.GERMAN_RETURN_ADDRESS,
        name="German Return Address",
        description="Return address within Germany required for most platforms",
        severity=RuleSeverity.SOFT,
    ),
    ComplianceRuleKey.IMPRESSUM: ComplianceRuleDefinition(
        key=ComplianceRuleKey.IMPRESSUM,
        name="Impressum",
        description="Legal business address and contact information (German law)",
        severity=RuleSeverity.HARD,
    ),
    ComplianceRuleKey.RFC_TAX_ID: ComplianceRuleDefinition(
        key=ComplianceRuleKey.RFC_TAX_ID,
        name="RFC Tax ID",
        description="Mexican tax registration (RFC) required for Mexico sellers",
        severity=RuleSeverity.HARD,
    ),
    ComplianceRuleKey.WARRANTY_INFO: ComplianceRuleDefinition(
        key=ComplianceRuleKey.WARRANTY_INFO,
        name="Warranty Information",
        description="Accurate warranty information on the listing",
        severity=RuleSeverity.SOFT,
    ),
}


# =============================================================================
# Platform Table
# =============================================================================

_GERMAN_CORE = (
    ComplianceRuleKey.LUCID,
    ComplianceRuleKey.WEEE,
    ComplianceRuleKey.EAN_GTIN,
)

_PLATFORM_REQUIREMENTS: dict[Platform, PlatformRequirements] = {
    Platform.MEDIAMARKT: PlatformRequirements(
        platform=Platform.MEDIAMARKT,
        display_name="MediaMarkt",
        brand_color="#DF0000",
        locale="de",
        country="Germany",
        title_max_length=150,
        title_mobile_max_length=80,
        title_format="[Brand] [Model Name] [Key Spec] [Product Type]",
        description_max_length=2000,
        description_format=DescriptionFormat.PLAIN,
        bullet_points_max=5,
        bullet_points_min=3,
        image_requirements=ImageRequirements(
            min_resolution="1000x1000 px (zoom trigger)",
            min_pixels=1000,
            background="Pure white (RGB 255,255,255)",
            max_size="10MB",
            min_quantity=3,
            max_quantity=5,
        ),
        tone="Professional and technical. German buyers want hard data (refresh rate, wattage, ports).",
        keywords=("Technik", "Premium", "Qualität", "Innovation"),
        extra_keywords=("Technik", "Innovation"),
        philosophy="Trust & Professionalism. Brick-and-mortar giants - listings must look as official as in-store products.",
        restrictions=(
            "No all-caps",
            'No promotional text ("Best Price")',
            'No subjective adjectives ("Fast")',
            "Keep under 80 chars for mobile optimization",
        ),
        compliance_notes=(
            "EAN/GTIN (13-digit) mandatory - must match official manufacturer barcode",
            "German return address required",
            "MMS Taxonomy category mapping required",
        ),
        global_compliance=_GERMAN_CORE + (ComplianceRuleKey.GERMAN_RETURN_ADDRESS,),
        category_mapping=CategoryMapping(system="MMS Taxonomy"),
        seo_notes="Focus on technical specifications. Plain text safer, basic HTML accepted for long descriptions.",
    ),
    Platform.SATURN: PlatformRequirements(
        platform=Platform.SATURN,
        display_name="Saturn",
        brand_color="#F79422",
        locale="de",
        country="Germany",
        title_max_length=150,
        title_mobile_max_length=80,
        title_format="[Brand] [Model Name] [Key Spec] [Product Type]",
        description_max_length=2000,
        description_format=DescriptionFormat.PLAIN,
        bullet_points_max=5,
        bullet_points_min=3,
        image_requirements=ImageRequirements(
            min_resolution="1000x1000 px",
            min_pixels=1000,
            background="Pure white (RGB 255,255,255)",
            max_size="10MB",
            min_quantity=3,
            max_quantity=5,
        ),
        tone="Tech-savvy and modern. Same backend as MediaMarkt (MMS Marketplace).",
        keywords=("Tech", "Smart", "Leistung", "Entertainment"),
        extra_keywords=("Tech", "Smart"),
        philosophy="Trust & Professionalism. Same platform as MediaMarkt - upload once, appear on both.",
        restrictions=(
            "No all-caps",
            "No promotional text",
            "No subjective adjectives",
        ),
        compliance_notes=(
            "EAN/GTIN (13-digit) mandatory",
            "German return address required",
        ),
        global_compliance=_GERMAN_CORE + (ComplianceRuleKey.GERMAN_RETURN_ADDRESS,),
        category_mapping=CategoryMapping(system="MMS Taxonomy"),
        seo_notes="Technical specs focused. Same requirements as MediaMarkt.",
    ),
    Platform.AMAZON: PlatformRequirements(
        platform=Platform.AMAZON,
        display_name="Amazon",
        brand_color="#FF9900",
        locale="de",
        country="Germany",
        title_max_length=200,
        title_format="[Brand] [Series] [Model] [Product Type] [Key Specs (Size, Color, Tech)]",
        description_max_length=2000,
        description_format=DescriptionFormat.HTML,
        bullet_points_max=5,
        bullet_points_min=5,
        bullet_point_format="CAPS LOCK BENEFIT - followed by explanation",
        image_requirements=ImageRequirements(
            min_resolution="1500x1500 px",
            min_pixels=1500,
            background="Pure white (RGB 255,255,255)",
            min_quantity=1,
            max_quantity=9,
        ),
        tone="Conversion-focused. START WITH CAPS LOCK BENEFIT - followed by explanation.",
        keywords=("Premium", "Best Seller", "Top Rated", "Award-winning"),
        extra_keywords=("Best Seller", "Top Rated"),
        philosophy="Conversion is King. Algorithm favors listings that get clicks and sales.",
        restrictions=(
            "No auto-translation - use German terms (Handy vs Smartphone based on keyword volume)",
            "Main image: NO text/badges, product fills 85%+",
            "Secondary images: infographics highly effective",
        ),
        compliance_notes=(
            "EAN/GTIN mandatory",
            "Impressum (business address/contact) required on seller profile",
            "A+ Content highly recommended for electronics",
        ),
        global_compliance=_GERMAN_CORE + (ComplianceRuleKey.IMPRESSUM,),
        category_mapping=CategoryMapping(system="Amazon Browse Nodes"),
        seo_notes="German localization critical. Use comparison charts for models. Infographics for technical features.",
        seo_recommendation="Amazon: Use German terms (Handy vs Smartphone) based on keyword volume",
        compliance_advisory="Amazon: Consider A+ Content for better visibility",
    ),
    Platform.OTTO: PlatformRequirements(
        platform=Platform.OTTO,
        display_name="Otto",
        brand_color="#E63312",
        locale="de",
        country="Germany",
        title_max_length=120,
        title_format="[Brand] [Product Type] [Model] [Major Feature]",
        description_max_length=1500,
        description_format=DescriptionFormat.PLAIN,
        bullet_points_max=5,
        bullet_points_min=5,
        bullet_point_format='Lifestyle benefit + spec combined (e.g., "Energy efficient A++ rating saves power")',
        image_requirements=ImageRequirements(
            min_resolution="1500px width recommended",
            min_pixels=1500,
            background="Strict pure white/grey. No shadows, no props, no logos.",
            min_quantity=3,
            max_quantity=8,
        ),
        tone="Curated quality. Lifestyle benefits + specs combined.",
        keywords=("Zuhause", "Familie", "Lifestyle", "Qualität"),
        extra_keywords=("Zuhause", "Familie", "Lifestyle"),
        philosophy="Curated Quality. Otto sees itself as a catalog, not a bazaar. Manual data quality checks.",
        restrictions=(
            "No duplicate info - check system auto-concatenation",
            "No repeated brand in model name if system auto-adds",
            "Ethical sourcing declaration required",
        ),
        compliance_notes=(
            "EAN/GTIN mandatory",
            "German warehouse for returns often required",
            "Sustainability and fair labor declaration",
            "Specific materials may be banned (certain furs, sandblasted denim)",
        ),
        global_compliance=_GERMAN_CORE + (ComplianceRuleKey.GERMAN_RETURN_ADDRESS,),
        category_mapping=CategoryMapping(system="Otto Partner Connect Categories"),
        seo_notes='Exactly 5 bullets recommended. Example: "Energy efficient A++ rating saves power".',
        seo_recommendation="Otto: Combine lifestyle benefits with specs in bullet points",
    ),
    Platform.GALAXUS: PlatformRequirements(
        platform=Platform.GALAXUS,
        display_name="Galaxus",
        brand_color="#0066CC",
        locale="de",
        country="Germany",
        title_max_length=60,
        title_format="[Model Name] [Key Spec] - DO NOT include Brand or Category separately",
        description_max_length=2000,
        description_format=DescriptionFormat.PLAIN,
        bullet_points_max=5,
        image_requirements=ImageRequirements(
            min_resolution="600x600 px minimum, 1000px+ preferred",
            min_pixels=600,
            background="Clean, no watermarks or text",
            min_quantity=1,
            max_quantity=10,
        ),
        tone="No Bullsh*t. Clean data only. No marketing fluff.",
        keywords=("Präzision", "Qualität", "Schweizer Standard"),
        extra_keywords=("Präzision", "Schweizer Standard"),
        philosophy="No marketing fluff. Community will mock keyword-stuffing. Algorithm flags it.",
        restrictions=(
            "Keep titles SHORT - system auto-generates full display title from attributes",
            "No watermarks or promotional text on images - INSTANT REJECTION",
            'Bad: "Samsung Galaxy S23 Ultra Smartphone 5G 256GB Phantom Black Android Best Camera"',
            'Good: "Galaxy S23 Ultra"',
        ),
        compliance_notes=(
            "GTIN/EAN used for product clustering",
            "May be grouped with other sellers on same product page",
            "Detailed attribute sheets critical - fill completely",
        ),
        global_compliance=(ComplianceRuleKey.EAN_GTIN,),
        category_mapping=CategoryMapping(system="Galaxus Category Tree"),
        seo_notes='Most critical: fill detailed specs. Missing "Panel Type" = vanish from OLED filter.',
        price_history=True,
        seo_recommendation="Galaxus: Keep titles minimal - system auto-generates from attributes",
        compliance_advisory="Galaxus: Fill all detailed attribute fields for filter visibility",
    ),
    Platform.KAUFLAND: PlatformRequirements(
        platform=Platform.KAUFLAND,
        display_name="Kaufland",
        brand_color="#E10915",
        locale="de",
        country="Germany",
        title_max_length=200,
        title_format="[Brand] [Model] [Product Type] [Key Specs]",
        description_max_length=4000,
        description_format=DescriptionFormat.HTML,
        bullet_points_max=10,
        bullet_points_min=5,
        image_requirements=ImageRequirements(
            min_resolution="1024px longest side",
            min_pixels=1024,
            background="White mandatory for Google Shopping feed approval",
            min_quantity=1,
            max_quantity=10,
        ),
        tone="SEO-friendly. High volume marketplace heavily indexed by Google Shopping.",
        keywords=("Original", "Neu", "OVP", "Garantie", "ohne Simlock"),
        extra_keywords=("Original", "OVP", "Garantie"),
        philosophy="High Volume / SEO. Heavily indexed by Google Shopping.",
        restrictions=(
            "Must use relevant keywords - Google indexes heavily",
            "Incorrect categorization tanks visibility",
        ),
        compliance_notes=(
            "EAN/GTIN mandatory",
            "LUCID Packaging Register number REQUIRED - account blocked immediately without it",
            "Kaufland category tree mapping required",
        ),
        global_compliance=_GERMAN_CORE,
        category_mapping=CategoryMapping(system="Kaufland Category Tree"),
        seo_notes="HTML allowed in description. Use bold headers to separate sections (Display, Battery). Similar to Amazon keyword strategy.",
        seo_recommendation="Kaufland: Use HTML bold headers for section separation",
        compliance_advisory="Kaufland: LUCID number strictly enforced - account may be blocked without it",
    ),
    Platform.EBAY: PlatformRequirements(
        platform=Platform.EBAY,
        display_name="eBay",
        brand_color="#0064D2",
        locale="de",
        country="Germany",
        title_max_length=80,
        title_format="[Brand] [Model] [Key Feature] [Condition]",
        description_max_length=4000,
        description_format=DescriptionFormat.HTML,
        bullet_points_max=10,
        image_requirements=ImageRequirements(
            min_resolution="1600x1600 px",
            min_pixels=1600,
            background="White preferred",
            min_quantity=1,
            max_quantity=12,
            allow_text=True,
        ),
        tone="Value-focused, detailed, trust-building.",
        keywords=("Original", "Neu", "OVP", "Garantie", "Händler"),
        extra_keywords=("Original", "Händler"),
        philosophy="Trust and value. Established marketplace with buyer protection.",
        compliance_notes=(
            "German seller requirements apply",
            "Return policy compliance",
        ),
        global_compliance=_GERMAN_CORE,
        category_mapping=CategoryMapping(system="eBay Categories"),
        seo_notes="Detailed descriptions help with search visibility.",
    ),
    Platform.SHOPEE: PlatformRequirements(
        platform=Platform.SHOPEE,
        display_name="Shopee",
        brand_color="#EE4D2D",
        locale="th",
        country="Thailand",
        title_max_length=120,
        title_format="[Brand] [Model] [Key Feature]",
        description_max_length=3000,
        description_format=DescriptionFormat.PLAIN,
        bullet_points_max=5,
        image_requirements=ImageRequirements(
            min_resolution="800x800 px",
            min_pixels=800,
            background="Clean background",
            min_quantity=3,
            max_quantity=9,
            allow_watermarks=True,
            allow_text=True,
        ),
        tone="Casual, engaging, deal-focused.",
        keywords=("Flash Sale", "Best Price", "Free Shipping", "Official"),
        extra_keywords=("Flash Sale", "Best Price"),
        philosophy="Deal-oriented marketplace.",
        category_mapping=CategoryMapping(system="Shopee Categories"),
        seo_notes="Keywords for deals and promotions work well.",
    ),
    Platform.LAZADA: PlatformRequirements(
        platform=Platform.LAZADA,
        display_name="Lazada",
        brand_color="#0F146D",
        locale="th",
        country="Thailand",
        title_max_length=255,
        title_format="[Brand] [Category] [Model] [Specs]",
        description_max_length=5000,
        description_format=DescriptionFormat.HTML,
        bullet_points_max=8,
        image_requirements=ImageRequirements(
            min_resolution="800x800 px",
            min_pixels=800,
            background="White preferred",
            min_quantity=3,
            max_quantity=8,
            allow_text=True,
        ),
        tone="Comprehensive, feature-rich, SEO-optimized.",
        keywords=("Official Store", "Authentic", "Warranty", "Best Deal"),
        extra_keywords=("Official Store", "Authentic"),
        philosophy="Feature-rich listings with comprehensive details.",
        compliance_notes=("Official store verification helps",),
        category_mapping=CategoryMapping(system="Lazada Categories"),
        seo_notes="Long-form content performs well.",
    ),
    Platform.TIKTOK: PlatformRequirements(
        platform=Platform.TIKTOK,
        display_name="TikTok Shop",
        brand_color="#000000",
        locale="th",
        country="Thailand",
        title_max_length=100,
        title_format="[Brand] [Product] [Trending Feature]",
        description_max_length=1000,
        description_format=DescriptionFormat.PLAIN,
        bullet_points_max=5,
        image_requirements=ImageRequirements(
            min_resolution="800x800 px",
            min_pixels=800,
            background="Lifestyle-oriented",
            min_quantity=1,
            max_quantity=9,
            allow_watermarks=True,
            allow_text=True,
        ),
        tone="Trendy, viral-friendly, short and punchy.",
        keywords=("Trending", "Viral", "Must-have", "TikTok Made Me Buy"),
        extra_keywords=("Trending", "Viral"),
        philosophy="Social commerce with viral potential.",
        restrictions=("Keep content authentic and relatable",),
        category_mapping=CategoryMapping(system="TikTok Shop Categories"),
        seo_notes="Hashtags and trending sounds important. Video content preferred.",
    ),
    Platform.MERCADOLIBRE: PlatformRequirements(
        platform=Platform.MERCADOLIBRE,
        display_name="MercadoLibre",
        brand_color="#FFE600",
        locale="es",
        country="Mexico",
        title_max_length=60,
        title_mobile_max_length=55,
        title_format="[Marca] [Modelo] [Característica Principal] [Especificación]",
        description_max_length=50000,
        description_format=DescriptionFormat.PLAIN,
        bullet_points_max=7,
        bullet_points_min=3,
        image_requirements=ImageRequirements(
            min_resolution="1200x1200 px",
            min_pixels=1200,
            background="Pure white background mandatory",
            max_size="10MB",
            min_quantity=1,
            max_quantity=12,
        ),
        tone="Informative and detailed. Latin American buyers value thorough product information.",
        keywords=("Original", "Garantía", "Envío Gratis", "Oficial", "Nuevo"),
        philosophy="Trust through detail. Comprehensive listings with complete specifications perform best.",
        restrictions=(
            "No all-caps titles",
            'No promotional text in title ("El Mejor", "Oferta")',
            "No special characters or emojis",
            "Title must accurately describe the product",
            "No competitor brand mentions",
        ),
        compliance_notes=(
            "RFC (Tax ID) required for Mexico sellers",
            "Official store verification recommended",
            "Warranty information must be accurate",
            "Product certification may be required for electronics",
        ),
        global_compliance=(ComplianceRuleKey.RFC_TAX_ID, ComplianceRuleKey.WARRANTY_INFO),
        category_mapping=CategoryMapping(system="Mercado Libre Category Tree"),
        seo_notes="Ficha técnica (spec sheet) heavily indexed. Complete all attributes. Use regional Spanish (Mexican Spanish for MX). Preguntas frecuentes (FAQ) section highly valued.",
    ),
}


def _assert_complete() -> None:
    missing_platforms = [p.value for p in Platform if p not in _PLATFORM_REQUIREMENTS]
    if missing_platforms:
        raise RuntimeError(f"Platform requirements missing for: {', '.join(missing_platforms)}")
    missing_rules = [k.value for k in ComplianceRuleKey if k not in _GLOBAL_COMPLIANCE_RULES]
    if missing_rules:
        raise RuntimeError(f"Compliance rule definitions missing for: {', '.join(missing_rules)}")


_assert_complete()

PLATFORM_REQUIREMENTS: Mapping[Platform, PlatformRequirements] = MappingProxyType(_PLATFORM_REQUIREMENTS)
GLOBAL_COMPLIANCE_RULES: Mapping[ComplianceRuleKey, ComplianceRuleDefinition] = MappingProxyType(
    _GLOBAL_COMPLIANCE_RULES
)


# =============================================================================
# Lookup API
# =============================================================================

def _coerce_platform(platform: Platform | str) -> Platform:
    try:
        return Platform(platform)
    except ValueError:
        raise UnknownPlatformError(platform) from None


def lookup(platform: Platform | str) -> PlatformRequirements:
    """
    Get the requirements for a platform.

    Raises:
        UnknownPlatformError: If the platform is not supported.

    Example:
        >>> lookup("galaxus").title_max_length
        60
    """
    return PLATFORM_REQUIREMENTS[_coerce_platform(platform)]


def get_rule(key: ComplianceRuleKey | str) -> ComplianceRuleDefinition:
    return GLOBAL_COMPLIANCE_RULES[ComplianceRuleKey(key)]


def supported_platforms() -> tuple[Platform, ...]:
    return tuple(PLATFORM_REQUIREMENTS.keys())


def is_supported(platform: object) -> bool:
    try:
        Platform(platform)
    except (ValueError, TypeError):
        return False
    return True


def smallest_image_floor(platforms: list[Platform | str]) -> int:
    """Lowest image resolution floor across the given platforms (0 when empty)."""
    floors = [lookup(p).image_requirements.min_pixels for p in platforms]
    return min(floors) if floors else 0
