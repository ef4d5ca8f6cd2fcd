"""
Step computations for the listing pipeline.

Pure functions over product data and the platform registry. The orchestrator
wraps them in step boundaries; keeping them here makes each step's output
testable without running a pipeline.
"""

from typing import Any, Iterable, Optional

from listing_pipeline.compliance.checker import listing_title
from listing_pipeline.generators.templates import filter_technical_specs
from listing_pipeline.models.schemas import Platform, ProductData
from listing_pipeline.platforms.requirements import lookup, smallest_image_floor

# =============================================================================
# Constants
# =============================================================================

BANNER_FORMATS: tuple[str, ...] = ("1200x628", "1080x1080", "1920x1080")
BANNER_VARIANTS: tuple[str, ...] = ("Primary", "Lifestyle", "Features")
THUMBNAIL_SIZES: tuple[int, ...] = (500, 800, 1200)

BASE_KEYWORDS: tuple[str, ...] = ("Premium", "Qualität", "Original", "Neu")
BRAND_TITLE_RECOMMENDATION = "Include brand name in all platform titles"
META_DESCRIPTION_MAX_LENGTH = 160

# Spec keys are matched by substring to derive the categories a spec sheet covers
SPEC_CATEGORIES: dict[str, tuple[str, ...]] = {
    "Display": ("display", "screen", "bildschirm", "resolution", "auflösung", "hdr", "panel", "refresh"),
    "Audio": ("audio", "sound", "speaker", "lautsprecher", "dolby", "channel", "kanal"),
    "Connectivity": ("hdmi", "usb", "wifi", "wi-fi", "wlan", "bluetooth", "lan", "ethernet"),
    "Dimensions": ("dimension", "abmessung", "weight", "gewicht", "size", "größe", "breite", "höhe"),
    "Energy": ("energy", "energie", "power", "leistung", "watt", "consumption", "verbrauch"),
}


# =============================================================================
# Asset Verification
# =============================================================================

def format_size(size_bytes: int) -> str:
    """Human readable size, e.g. ``2.4 MB``."""
    size = float(size_bytes)
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


def verify_assets(product: ProductData, platforms: Iterable[Platform | str]) -> dict[str, Any]:
    """
    Check product images against the targeted platforms.

    The resolution floor is the smallest floor among the platforms, so an
    image is only flagged when no targeted platform would accept it.
    """
    platforms = [Platform(p).value for p in platforms]
    images = product.images
    floor = smallest_image_floor(platforms)
    issues: list[str] = []

    if not images:
        issues.append("No product images supplied")

    for idx, image in enumerate(images, start=1):
        side = image.shortest_side
        if side is not None and side < floor:
            issues.append(f"Image {idx} ({image.resolution}) is below the {floor}px minimum")

    for platform in platforms:
        req = lookup(platform)
        minimum = req.image_requirements.min_quantity
        if images and len(images) < minimum:
            issues.append(f"{req.display_name} requires at least {minimum} images, got {len(images)}")

    total_size = sum(img.size_bytes or 0 for img in images)
    resolutions = list(dict.fromkeys(img.resolution for img in images if img.resolution))

    return {
        "images_verified": len(images),
        "total_size": format_size(total_size),
        "total_size_bytes": total_size,
        "resolutions": resolutions,
        "min_resolution_floor": floor,
        "quality": "High" if not issues else "Needs attention",
        "issues": issues,
    }


# =============================================================================
# Spec Verification
# =============================================================================

def categorize_specs(keys: Iterable[str]) -> list[str]:
    lowered = [k.lower() for k in keys]
    return [
        category
        for category, needles in SPEC_CATEGORIES.items()
        if any(n in key for key in lowered for n in needles)
    ]


def verify_specs(product: ProductData, min_fields: int) -> dict[str, Any]:
    """Filter financing entries out of the spec sheet and grade what remains."""
    raw = product.specifications
    specs = filter_technical_specs(raw)
    removed = len(raw) - len(specs)
    quality = round(len(specs) / len(raw) * 100) if raw else 0

    warnings: list[str] = []
    if len(specs) < min_fields:
        warnings.append(
            f"Only {len(specs)} technical specification field(s) found, expected at least {min_fields}"
        )
    if removed:
        warnings.append(f"{removed} pricing or financing field(s) removed from specifications")

    return {
        "specs_validated": len(specs),
        "specs_removed": removed,
        "categories_checked": categorize_specs(specs.keys()),
        "data_quality": f"{quality}%",
        "warnings": warnings,
    }


# =============================================================================
# Asset References
# =============================================================================

def banner_url(asset_base_url: str, product_id: str, platform: Platform | str) -> str:
    return f"{asset_base_url.rstrip('/')}/banners/{product_id}/{Platform(platform).value}.jpg"


def thumbnail_urls(asset_base_url: str, product_id: str, platform: Platform | str) -> list[str]:
    base = asset_base_url.rstrip("/")
    platform = Platform(platform).value
    return [f"{base}/thumbs/{product_id}/{platform}_{size}.jpg" for size in THUMBNAIL_SIZES]


# =============================================================================
# SEO
# =============================================================================

def _dedupe(items: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(i for i in items if i))


def generate_keywords(brand: str, platform: Platform | str) -> list[str]:
    """Brand and quality keywords plus the platform's extras."""
    return _dedupe([brand, *BASE_KEYWORDS, *lookup(platform).extra_keywords])


def build_platform_seo(product: ProductData, platform: Platform | str) -> dict[str, Any]:
    """
    Titles, keywords and meta description for one platform.

    Deterministic: the same product and platform always give the same output.
    """
    req = lookup(platform)
    title = listing_title(product.brand, product.title, product.model_number)
    mobile: Optional[str] = title[:req.title_mobile_max_length] if req.title_mobile_max_length else None
    meta = (
        f"Entdecken Sie den {product.title}. Premium Qualität von {product.brand}. {req.philosophy}"
    )[:META_DESCRIPTION_MAX_LENGTH]
    return {
        "title": title[:req.title_max_length],
        "title_mobile": mobile,
        "keywords": _dedupe([*req.keywords, *generate_keywords(product.brand, platform)]),
        "meta_description": meta,
        "format": req.title_format,
        "seo_notes": req.seo_notes,
    }


def seo_recommendations(platforms: Iterable[Platform | str]) -> list[str]:
    advisories = [lookup(p).seo_recommendation for p in platforms]
    return [BRAND_TITLE_RECOMMENDATION, *(a for a in advisories if a)]
