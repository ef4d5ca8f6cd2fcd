"""
Deterministic HTML templates for marketplace listing sections.

Used directly for previews and as the fallback whenever the model-backed
generator fails, so every section always has content. Output is plain
inline-styled HTML (mobile first, single typeface, no external links) and is
localised through the platform's locale.
"""

from html import escape
from typing import Mapping, Optional

from pydantic import Field

from listing_pipeline.generators.base import ContentGenerator
from listing_pipeline.models.schemas import (
    BaseModel,
    EDITOR_SECTIONS,
    Platform,
    ProductData,
    SectionKey,
)
from listing_pipeline.platforms.requirements import lookup

# =============================================================================
# Constants
# =============================================================================

# Canonical section order for documents
AVAILABLE_SECTIONS: tuple[str, ...] = tuple(s.value for s in SectionKey)
# Document <title> is cut to this many characters (the eBay title limit)
DOCUMENT_TITLE_MAX_LENGTH = 80

BRAND_COLORS = {
    "primary": "#A50034",
    "dark": "#1A1A1A",
    "gray": "#6B6B6B",
    "light_gray": "#F5F5F5",
    "white": "#FFFFFF",
}

FONT_FAMILY = "'LG EI Text', 'Helvetica Neue', Arial, sans-serif"

SECTION_TITLES: dict[str, dict[str, str]] = {
    "de": {
        "features": "Hauptmerkmale",
        "specifications": "Technische Daten",
        "benefits": "Ihre Vorteile",
        "warranty": "Garantie & Service",
        "gallery": "Produktgalerie",
        "faq": "Häufig gestellte Fragen",
    },
    "en": {
        "features": "Key Features",
        "specifications": "Technical Specifications",
        "benefits": "Your Benefits",
        "warranty": "Warranty & Service",
        "gallery": "Product Gallery",
        "faq": "Frequently Asked Questions",
    },
    "es": {
        "features": "Características Principales",
        "specifications": "Especificaciones Técnicas",
        "benefits": "Sus Beneficios",
        "warranty": "Garantía y Servicio",
        "gallery": "Galería de Productos",
        "faq": "Preguntas Frecuentes",
    },
    "th": {
        "features": "คุณสมบัติเด่น",
        "specifications": "ข้อมูลจำเพาะทางเทคนิค",
        "benefits": "ข้อดีของคุณ",
        "warranty": "การรับประกันและบริการ",
        "gallery": "แกลเลอรี่สินค้า",
        "faq": "คำถามที่พบบ่อย",
    },
}

# Template microcopy; ``{brand}`` is substituted at render time
I18N: dict[str, dict[str, str]] = {
    "de": {
        "official_partner": "Offizieller {brand} Partner",
        "model": "Modell",
        "premium_quality": "Premium-Qualität von {brand}",
        "warranty_2_year": "2 Jahre Garantie",
        "free_shipping": "Kostenloser Versand",
        "energy_efficient": "Energieeffizient",
        "whisper_quiet": "Flüsterleise",
        "smart_home": "Smart Home Ready",
        "durable": "Langlebig",
        "warranty_title": "2 Jahre Herstellergarantie",
        "free_repairs": "Kostenlose Reparatur",
        "genuine_parts": "Original {brand} Ersatzteile",
        "nationwide_service": "Landesweiter Service",
    },
    "en": {
        "official_partner": "Official {brand} Partner",
        "model": "Model",
        "premium_quality": "Premium quality from {brand}",
        "warranty_2_year": "2 Year Warranty",
        "free_shipping": "Free Shipping",
        "energy_efficient": "Energy Efficient",
        "whisper_quiet": "Whisper Quiet",
        "smart_home": "Smart Home Ready",
        "durable": "Long-lasting",
        "warranty_title": "2 Year Manufacturer Warranty",
        "free_repairs": "Free Repairs",
        "genuine_parts": "Genuine {brand} Parts",
        "nationwide_service": "Nationwide Service",
    },
    "es": {
        "official_partner": "Distribuidor Oficial {brand}",
        "model": "Modelo",
        "premium_quality": "Calidad premium de {brand}",
        "warranty_2_year": "2 Años de Garantía",
        "free_shipping": "Envío Gratis",
        "energy_efficient": "Eficiencia Energética",
        "whisper_quiet": "Ultra Silencioso",
        "smart_home": "Smart Home Ready",
        "durable": "Durabilidad",
        "warranty_title": "2 Años de Garantía del Fabricante",
        "free_repairs": "Reparaciones Gratis",
        "genuine_parts": "Partes Originales {brand}",
        "nationwide_service": "Servicio Nacional",
    },
    "th": {
        "official_partner": "ตัวแทนจำหน่ายอย่างเป็นทางการ {brand}",
        "model": "รุ่น",
        "premium_quality": "คุณภาพระดับพรีเมียมจาก {brand}",
        "warranty_2_year": "รับประกัน 2 ปี",
        "free_shipping": "จัดส่งฟรี",
        "energy_efficient": "ประหยัดพลังงาน",
        "whisper_quiet": "เงียบเงียบ",
        "smart_home": "รองรับ Smart Home",
        "durable": "ทนทาน",
        "warranty_title": "รับประกันจากผู้ผลิต 2 ปี",
        "free_repairs": "ซ่อมฟรี",
        "genuine_parts": "อะไหล่แท้ {brand}",
        "nationwide_service": "บริการทั่วประเทศ",
    },
}

# Financing and price entries that crawlers pick up next to real specs
FINANCING_PATTERNS: tuple[str, ...] = (
    "monatliche", "rate", "zinssatz", "zinsen", "gesamtbetrag",
    "monthly", "financing", "interest", "total amount",
    "mensual", "financiación", "interés",
    "€", "$", "฿", "EUR", "USD", "THB",
)

MAX_SPEC_ROWS = 10
MAX_GALLERY_IMAGES = 6


# =============================================================================
# Helpers
# =============================================================================

def filter_technical_specs(specs: Mapping[str, str | int | float]) -> dict[str, str | int | float]:
    """
    Drop financing and price entries from a crawled specification map.

    Matching is a substring test against key and value; the lower-case
    patterns match case-insensitively, the currency codes match as written.
    """
    filtered = {}
    for key, value in specs.items():
        fields = (key, str(value))
        if any(p in f or p in f.lower() for p in FINANCING_PATTERNS for f in fields):
            continue
        filtered[key] = value
    return filtered


def section_title(locale: str, section: SectionKey | str) -> str:
    section = SectionKey(section).value
    titles = SECTION_TITLES.get(locale, SECTION_TITLES["en"])
    return titles.get(section, section.title())


def _t(locale: str, key: str, brand: str) -> str:
    strings = I18N.get(locale, I18N["en"])
    return strings[key].format(brand=brand)


def _heading(text: str) -> str:
    return (
        f'<h2 style="font-size: 22px; font-weight: 700; color: {BRAND_COLORS["dark"]}; '
        f'margin: 0 0 16px 0;">{escape(text)}</h2>'
    )


def _card(body: str, accent: str) -> str:
    return (
        f'<div style="max-width: 800px; background: {BRAND_COLORS["white"]}; padding: 32px; '
        f'font-family: {FONT_FAMILY}; font-size: 14px; color: {BRAND_COLORS["dark"]}; '
        f'border-radius: 8px; border-top: 4px solid {accent};">\n{body}\n</div>'
    )


def render_document(
    product: ProductData,
    platform: Platform | str,
    sections_html: list[str],
) -> str:
    """Wrap section fragments in a standalone HTML document."""
    req = lookup(platform)
    title = escape(product.title[:DOCUMENT_TITLE_MAX_LENGTH])
    body = "\n\n".join(sections_html)
    return (
        "<!DOCTYPE html>\n"
        f'<html lang="{req.locale}">\n'
        "<head>\n"
        '  <meta charset="UTF-8">\n'
        '  <meta name="viewport" content="width=device-width, initial-scale=1.0">\n'
        f"  <title>{title} - {escape(product.brand)}</title>\n"
        f"  <style>body {{ background: {BRAND_COLORS['light_gray']}; font-family: {FONT_FAMILY}; "
        f"color: {BRAND_COLORS['dark']}; font-size: 14px; line-height: 1.6; }}</style>\n"
        "</head>\n"
        "<body>\n"
        '  <div style="max-width: 800px; margin: 0 auto; display: flex; flex-direction: column; '
        'gap: 16px; padding: 16px;">\n'
        f"{body}\n"
        "  </div>\n"
        "</body>\n"
        "</html>"
    )


def consolidate_sections(
    product: ProductData,
    platform: Platform | str,
    section_htmls: Mapping[str, str],
) -> tuple[str, list[str]]:
    """
    Merge pre-generated section HTML into one document.

    Sections are ordered canonically; unknown keys and empty fragments are
    dropped. Returns the document and the sections actually included.
    """
    included = [s for s in AVAILABLE_SECTIONS if section_htmls.get(s)]
    html = render_document(product, platform, [section_htmls[s] for s in included])
    return html, included


# =============================================================================
# Fallback Listing
# =============================================================================

class FallbackListing(BaseModel):
    """Listing text assembled from raw product fields."""

    platform: Platform
    title: str
    description: str
    bullet_points: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    meta_description: str = ""


def build_fallback_listing(product: ProductData, platform: Platform | str) -> FallbackListing:
    req = lookup(platform)
    features = product.features
    keywords = [
        product.category_name,
        product.model_number,
        product.brand,
        req.platform,
        *features[:3],
    ]
    lead = features[0] if features else product.category_name
    return FallbackListing(
        platform=req.platform,
        title=f"{product.brand} {product.title} | {product.model_number}",
        description=product.description or product.title,
        bullet_points=features[:req.bullet_points_max],
        keywords=[k for k in keywords if k],
        meta_description=f"Buy {product.brand} {product.title} ({product.model_number}). {lead}"[:160],
    )


# =============================================================================
# Template Generator
# =============================================================================

class TemplateContentGenerator(ContentGenerator):
    """
    Renders sections from raw product fields without any model call.

    Never raises ``GenerationError``: every section, including an empty
    gallery, renders non-empty HTML.
    """

    name = "template"

    async def generate(
        self,
        product: ProductData,
        platform: Platform | str,
        section: Optional[SectionKey | str] = None,
    ) -> str:
        return self.render(product, platform, section)

    def render(
        self,
        product: ProductData,
        platform: Platform | str,
        section: Optional[SectionKey | str] = None,
    ) -> str:
        if section is None:
            return self.render_full(product, platform)
        renderers = {
            SectionKey.HERO.value: self._hero,
            SectionKey.GALLERY.value: self._gallery,
            SectionKey.FEATURES.value: self._features,
            SectionKey.SPECIFICATIONS.value: self._specifications,
            SectionKey.BENEFITS.value: self._benefits,
            SectionKey.WARRANTY.value: self._warranty,
            SectionKey.FAQ.value: self._faq,
        }
        req = lookup(platform)
        return renderers[SectionKey(section).value](product, req.locale, req.brand_color)

    def render_full(self, product: ProductData, platform: Platform | str) -> str:
        sections = [self.render(product, platform, s) for s in EDITOR_SECTIONS]
        return render_document(product, platform, sections)

    def _hero(self, product: ProductData, locale: str, accent: str) -> str:
        brand = product.brand
        hero_image = next((img for img in product.images if img.kind == "main"), None)
        if hero_image is None and product.images:
            hero_image = product.images[0]
        image = (
            f'<img src="{escape(hero_image.url)}" alt="{escape(hero_image.alt or product.title)}" '
            'style="width: 100%; max-width: 600px; object-fit: contain;" />'
            if hero_image
            else ""
        )
        intro = product.description[:200] if product.description else _t(locale, "premium_quality", brand)
        body = (
            f'{image}\n'
            f'<div style="text-align: center;">\n'
            f'<span style="display: inline-block; background: {BRAND_COLORS["primary"]}; color: white; '
            f'padding: 6px 16px; font-size: 12px; font-weight: bold;">{escape(_t(locale, "official_partner", brand))}</span>\n'
            f'<h1 style="font-size: 24px; margin: 12px 0;">{escape(product.title[:DOCUMENT_TITLE_MAX_LENGTH])}</h1>\n'
            f'<p style="color: {BRAND_COLORS["gray"]};">{escape(_t(locale, "model", brand))}: {escape(product.model_number)}</p>\n'
            f'<p>{escape(intro)}</p>\n'
            f'<p><strong>{escape(_t(locale, "warranty_2_year", brand))}</strong> | '
            f'<strong>{escape(_t(locale, "free_shipping", brand))}</strong></p>\n'
            f'</div>'
        )
        return _card(body, accent)

    def _gallery(self, product: ProductData, locale: str, accent: str) -> str:
        images = [img for img in product.images if img.kind != "main"][:MAX_GALLERY_IMAGES]
        if images:
            cells = "\n".join(
                f'<img src="{escape(img.url)}" alt="{escape(img.alt or product.title)}" '
                'style="width: 100%; aspect-ratio: 1/1; object-fit: cover;" />'
                for img in images
            )
        else:
            cells = f'<p style="color: {BRAND_COLORS["gray"]};">{escape(product.title)}</p>'
        body = (
            f"{_heading(section_title(locale, SectionKey.GALLERY))}\n"
            f'<div style="display: grid; grid-template-columns: repeat(3, 1fr); gap: 8px;">\n{cells}\n</div>'
        )
        return _card(body, accent)

    def _features(self, product: ProductData, locale: str, accent: str) -> str:
        items = product.features or product.highlights or [product.title]
        rows = "\n".join(
            f'<li style="margin-bottom: 10px;"><strong style="color: {accent};">{i}.</strong> {escape(item)}</li>'
            for i, item in enumerate(items, start=1)
        )
        body = (
            f"{_heading(section_title(locale, SectionKey.FEATURES))}\n"
            f'<ol style="list-style: none; padding: 0; margin: 0;">\n{rows}\n</ol>'
        )
        return _card(body, accent)

    def _specifications(self, product: ProductData, locale: str, accent: str) -> str:
        specs = list(filter_technical_specs(product.specifications).items())[:MAX_SPEC_ROWS]
        if not specs:
            specs = [(_t(locale, "model", product.brand), product.model_number or product.title)]
        rows = "\n".join(
            f'<tr style="background: {BRAND_COLORS["light_gray"] if idx % 2 == 0 else BRAND_COLORS["white"]};">'
            f'<td style="padding: 12px 16px; font-weight: 600; width: 45%;">{escape(str(key))}</td>'
            f'<td style="padding: 12px 16px; text-align: right; color: {BRAND_COLORS["gray"]};">{escape(str(value))}</td></tr>'
            for idx, (key, value) in enumerate(specs)
        )
        body = (
            f"{_heading(section_title(locale, SectionKey.SPECIFICATIONS))}\n"
            f'<table style="width: 100%; border-collapse: collapse;">\n{rows}\n</table>'
        )
        return _card(body, accent)

    def _benefits(self, product: ProductData, locale: str, accent: str) -> str:
        keys = ("energy_efficient", "whisper_quiet", "smart_home", "durable")
        cards = "\n".join(
            f'<div style="background: {BRAND_COLORS["light_gray"]}; padding: 16px; border-radius: 6px;">'
            f"<h3 style=\"font-size: 15px; margin: 0;\">{escape(_t(locale, key, product.brand))}</h3></div>"
            for key in keys
        )
        body = (
            f"{_heading(section_title(locale, SectionKey.BENEFITS))}\n"
            f'<div style="display: grid; grid-template-columns: repeat(2, 1fr); gap: 16px;">\n{cards}\n</div>'
        )
        return _card(body, accent)

    def _warranty(self, product: ProductData, locale: str, accent: str) -> str:
        brand = product.brand
        points = " | ".join(
            escape(_t(locale, key, brand)) for key in ("free_repairs", "genuine_parts", "nationwide_service")
        )
        body = (
            f"{_heading(section_title(locale, SectionKey.WARRANTY))}\n"
            f'<h3 style="font-size: 16px;">{escape(_t(locale, "warranty_title", brand))}</h3>\n'
            f'<p style="color: {BRAND_COLORS["gray"]};">{points}</p>'
        )
        return _card(body, accent)

    def _faq(self, product: ProductData, locale: str, accent: str) -> str:
        if product.faq:
            entries = "\n".join(
                f"<dt style=\"font-weight: 600; margin-top: 12px;\">{escape(entry.question)}</dt>"
                f"<dd style=\"margin: 4px 0 0 0; color: {BRAND_COLORS['gray']};\">{escape(entry.answer)}</dd>"
                for entry in product.faq
            )
        else:
            entries = (
                f"<dt style=\"font-weight: 600;\">{escape(_t(locale, 'model', product.brand))}</dt>"
                f"<dd style=\"margin: 4px 0 0 0;\">{escape(product.model_number or product.title)}</dd>"
            )
        body = f"{_heading(section_title(locale, SectionKey.FAQ))}\n<dl>\n{entries}\n</dl>"
        return _card(body, accent)
