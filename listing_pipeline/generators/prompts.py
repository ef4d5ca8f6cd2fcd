"""
Claude prompts for marketplace listing content.

One system prompt carries the house style (mobile first, single typeface,
inline CSS, brand palette). The user prompt is assembled per section from the
platform profile and the product facts, so each section can be generated and
regenerated independently.

Prompt Categories:
    1. Section generation - one HTML fragment per content section
    2. Full template - every editor section in one document
"""

from dataclasses import dataclass
from typing import Optional

from listing_pipeline.generators.templates import (
    BRAND_COLORS,
    DOCUMENT_TITLE_MAX_LENGTH,
    FONT_FAMILY,
    MAX_GALLERY_IMAGES,
    filter_technical_specs,
    section_title,
)
from listing_pipeline.models.schemas import (
    EDITOR_SECTIONS,
    Platform,
    ProductData,
    SectionKey,
)
from listing_pipeline.platforms.requirements import PlatformRequirements, lookup


# =============================================================================
# Prompt Configuration
# =============================================================================

@dataclass
class PromptConfig:
    """Configuration for a prompt template."""
    name: str
    description: str
    recommended_temperature: float
    recommended_max_tokens: int

    def __repr__(self) -> str:
        return f"PromptConfig({self.name}, temp={self.recommended_temperature})"


SECTION_PROMPT_CONFIG = PromptConfig(
    name="listing_section",
    description="Generate one inline-styled HTML listing section",
    recommended_temperature=0.7,
    recommended_max_tokens=4000,
)

LANGUAGE_INSTRUCTIONS: dict[str, str] = {
    "de": "Generate ALL text content in GERMAN (Deutsch). Use professional German marketing language.",
    "en": "Generate ALL text content in ENGLISH. Use professional marketing language.",
    "es": (
        "Generate ALL text content in SPANISH (Español). "
        "Use professional Spanish marketing language for Mexico market."
    ),
    "th": "Generate ALL text content in THAI (ภาษาไทย). Use professional Thai marketing language.",
}

MAX_PROMPT_FEATURES = 8
MAX_PROMPT_SPECS = 15


# =============================================================================
# System Prompt
# =============================================================================

SECTION_SYSTEM_PROMPT = f"""You are an expert e-commerce content designer. You write clean, professional HTML listing content for online marketplaces.

<guidelines>
1. MOBILE-FIRST: most buyers use mobile, keep layouts responsive and simple.
2. MINIMAL HTML: simple formatting, no complex layouts, no scripts.
3. SINGLE TYPEFACE: {FONT_FAMILY}
4. 14px body text, color {BRAND_COLORS["dark"]}.
5. NO EXTERNAL LINKS and NO EMOJIS.
6. Inline CSS only, container width at most 800px.
</guidelines>

<palette>
- Primary: {BRAND_COLORS["primary"]}
- Dark text: {BRAND_COLORS["dark"]}
- Gray text: {BRAND_COLORS["gray"]}
- Light background: {BRAND_COLORS["light_gray"]}
- White: {BRAND_COLORS["white"]}
</palette>

<output>
Return ONLY valid HTML with inline styles. No markdown, no code blocks, no explanations.
Never include prices, financing or payment information.
</output>"""


# =============================================================================
# Section Briefs
# =============================================================================

SECTION_BRIEFS: dict[str, str] = {
    SectionKey.HERO.value: (
        "HERO (product introduction). Image first: the main product image at the top, "
        "then the title, a model number badge, a category badge, one or two compelling "
        "sentences and a row of trust badges (warranty, free shipping)."
    ),
    SectionKey.GALLERY.value: (
        "GALLERY. A responsive grid of the supplied product images using the EXACT URLs. "
        f"Use at most {MAX_GALLERY_IMAGES} images."
    ),
    SectionKey.FEATURES.value: (
        "FEATURES. A vertical list of cards, each with a bold headline and a short "
        "description. Use supplied features directly; if none are supplied derive "
        "5-6 plausible features from the category."
    ),
    SectionKey.SPECIFICATIONS.value: (
        "SPECIFICATIONS. A two column table (property | value) with alternating row "
        "backgrounds. Technical data only, use the exact names and values supplied."
    ),
    SectionKey.BENEFITS.value: (
        "BENEFITS. A 2x2 grid of customer benefits (efficiency, comfort, smart home, "
        "durability) grounded in the product facts."
    ),
    SectionKey.WARRANTY.value: (
        "WARRANTY & SERVICE. Manufacturer warranty headline, a short reassurance "
        "paragraph and three service points (free repairs, genuine parts, nationwide service)."
    ),
    SectionKey.FAQ.value: (
        "FAQ. Five to seven question and answer pairs a buyer of this product would ask. "
        "Use supplied FAQ entries first."
    ),
}


# =============================================================================
# Prompt Builders
# =============================================================================

def _platform_block(req: PlatformRequirements) -> str:
    restrictions = "\n".join(f"- {r}" for r in req.restrictions) or "- None"
    return f"""<platform>
Marketplace: {req.display_name} ({req.country})
Accent colour: {req.brand_color}
Tone: {req.tone}
Philosophy: {req.philosophy}
Title limit: {req.title_max_length} characters
Restrictions:
{restrictions}
</platform>"""


def _product_block(product: ProductData) -> str:
    lines = [
        f"Brand: {product.brand}",
        f"Product name: {product.title[:DOCUMENT_TITLE_MAX_LENGTH]}",
        f"Model number: {product.model_number or 'N/A'}",
        f"Category: {product.category_name or 'N/A'}",
    ]
    if product.description:
        lines.append(f"Description: {product.description}")
    if product.features:
        lines.append("Features:")
        lines.extend(f"{i}. {f}" for i, f in enumerate(product.features[:MAX_PROMPT_FEATURES], 1))
    if product.highlights:
        lines.append("Highlights:")
        lines.extend(f"- {h}" for h in product.highlights[:4])
    specs = list(filter_technical_specs(product.specifications).items())[:MAX_PROMPT_SPECS]
    if specs:
        lines.append("Technical specifications:")
        lines.extend(f"- {k}: {v}" for k, v in specs)
    if product.images:
        lines.append("Images (use these exact URLs):")
        lines.extend(
            f'- Image {i}: URL="{img.url}" ALT="{img.alt or product.title}" kind={img.kind}'
            for i, img in enumerate(product.images, 1)
        )
    if product.faq:
        lines.append("FAQ:")
        lines.extend(f"- Q: {e.question} A: {e.answer}" for e in product.faq)
    body = "\n".join(lines)
    return f"<product>\n{body}\n</product>"


def build_section_prompt(
    product: ProductData,
    platform: Platform | str,
    section: Optional[SectionKey | str] = None,
) -> str:
    """
    Build the user prompt for one section, or the full template when
    ``section`` is None.
    """
    req = lookup(platform)
    locale = req.locale

    if section is None:
        titles = ", ".join(section_title(locale, s) for s in EDITOR_SECTIONS)
        task = (
            "Generate a complete listing description containing these sections in order: "
            f"{titles}. Wrap them in a single container."
        )
    else:
        key = SectionKey(section).value
        task = (
            f"Generate ONLY the following section.\n"
            f"Section heading: \"{section_title(locale, key)}\"\n"
            f"{SECTION_BRIEFS[key]}"
        )

    return f"""{LANGUAGE_INSTRUCTIONS[locale]}

{_platform_block(req)}

{_product_block(product)}

<task>
{task}
</task>"""


__all__ = [
    "PromptConfig",
    "SECTION_PROMPT_CONFIG",
    "LANGUAGE_INSTRUCTIONS",
    "SECTION_SYSTEM_PROMPT",
    "SECTION_BRIEFS",
    "build_section_prompt",
]
