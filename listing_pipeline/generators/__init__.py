"""Listing content generators: model-backed, template and fallback handling."""

from listing_pipeline.generators.base import (
    ContentGenerator,
    GenerationError,
    GenerationOutcome,
    generate_with_fallback,
)
from listing_pipeline.generators.claude_generator import ClaudeContentGenerator, strip_code_fences
from listing_pipeline.generators.prompts import build_section_prompt
from listing_pipeline.generators.templates import (
    AVAILABLE_SECTIONS,
    SECTION_TITLES,
    FallbackListing,
    TemplateContentGenerator,
    build_fallback_listing,
    consolidate_sections,
    filter_technical_specs,
    render_document,
    section_title,
)

__all__ = [
    "ContentGenerator",
    "GenerationError",
    "GenerationOutcome",
    "generate_with_fallback",
    "ClaudeContentGenerator",
    "strip_code_fences",
    "build_section_prompt",
    "AVAILABLE_SECTIONS",
    "SECTION_TITLES",
    "FallbackListing",
    "TemplateContentGenerator",
    "build_fallback_listing",
    "consolidate_sections",
    "filter_technical_specs",
    "render_document",
    "section_title",
]
