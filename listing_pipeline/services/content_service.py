"""
Content-section request handling.

Serves the section editor: single sections, a list of sections, the full
template, or consolidation of already generated sections into one document.
"""

import asyncio
from typing import Any, Optional

from listing_pipeline.generators.base import ContentGenerator, generate_with_fallback
from listing_pipeline.generators.templates import (
    AVAILABLE_SECTIONS,
    TemplateContentGenerator,
    consolidate_sections,
)
from listing_pipeline.models.schemas import ContentSectionRequest, ContentSectionResponse
from listing_pipeline.services.validation_service import ValidationService
from listing_pipeline.utils.logger import LogContext, get_logger

logger = get_logger(__name__)


class ContentService:
    """
    Dispatches content-section requests to a generator.

    Generation failures fall back to the template generator, so a response
    always carries HTML for every requested, known section.
    """

    def __init__(
        self,
        generator: ContentGenerator,
        fallback: Optional[ContentGenerator] = None,
        validator: Optional[ValidationService] = None,
    ):
        self.generator = generator
        self.fallback = fallback or TemplateContentGenerator()
        self.validator = validator or ValidationService()

    async def handle_payload(self, payload: dict[str, Any]) -> ContentSectionResponse:
        """Validate a raw JSON payload and handle it."""
        return await self.handle(self.validator.validate_content_request(payload))

    async def handle(self, request: ContentSectionRequest) -> ContentSectionResponse:
        mode = request.mode
        with LogContext(platform=request.platform, content_mode=mode):
            if mode == "consolidate":
                return self._consolidate(request)
            if mode == "sections":
                return await self._generate_sections(request)
            return await self._generate_one(request)

    def _consolidate(self, request: ContentSectionRequest) -> ContentSectionResponse:
        html, included = consolidate_sections(
            request.product, request.platform, request.section_htmls or {}
        )
        logger.info("Sections consolidated", included=included)
        return ContentSectionResponse(
            platform=request.platform,
            section="consolidated",
            html=html,
            included_sections=included,
        )

    async def _generate_sections(self, request: ContentSectionRequest) -> ContentSectionResponse:
        requested = list(dict.fromkeys(request.sections or []))
        known = [s for s in requested if s in AVAILABLE_SECTIONS]
        skipped = [s for s in requested if s not in AVAILABLE_SECTIONS]
        if skipped:
            logger.warning("Skipping unknown sections", sections=skipped)

        outcomes = await asyncio.gather(*(
            generate_with_fallback(self.generator, self.fallback, request.product, request.platform, s)
            for s in known
        ))

        sections = {s: outcome.html for s, outcome in zip(known, outcomes)}
        fallback_sections = [s for s, outcome in zip(known, outcomes) if outcome.used_fallback]
        logger.info(
            "Sections generated",
            generated=known,
            fallback=fallback_sections,
        )
        return ContentSectionResponse(
            platform=request.platform,
            section="sections",
            sections=sections,
            generated_sections=known,
            fallback_sections=fallback_sections,
        )

    async def _generate_one(self, request: ContentSectionRequest) -> ContentSectionResponse:
        outcome = await generate_with_fallback(
            self.generator, self.fallback, request.product, request.platform, request.section
        )
        section = request.section or "full"
        return ContentSectionResponse(
            platform=request.platform,
            section=section,
            html=outcome.html,
            generated_sections=[section],
            fallback_sections=[section] if outcome.used_fallback else [],
        )
