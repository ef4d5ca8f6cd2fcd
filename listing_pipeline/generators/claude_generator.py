"""
Model-backed content generator.

Builds a section prompt from the platform profile and product facts, calls
Claude through ``ClaudeService`` behind a circuit breaker, and cleans the
response down to bare HTML.
"""

import re
from typing import Optional

from listing_pipeline.config.settings import Settings, get_settings
from listing_pipeline.generators.base import ContentGenerator, GenerationError
from listing_pipeline.generators.prompts import SECTION_SYSTEM_PROMPT, build_section_prompt
from listing_pipeline.models.schemas import Platform, ProductData, SectionKey
from listing_pipeline.services.llm_service import ClaudeService, ClaudeServiceError, TaskType
from listing_pipeline.utils.logger import get_logger
from listing_pipeline.utils.retry import CircuitBreaker, ServiceUnavailableError

logger = get_logger(__name__)

_HTML_FENCE = re.compile(r"```html\n?")
_FENCE = re.compile(r"```\n?")


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences the model sometimes wraps HTML in."""
    return _FENCE.sub("", _HTML_FENCE.sub("", text)).strip()


class ClaudeContentGenerator(ContentGenerator):
    """
    Generates listing HTML with Claude.

    Example:
        >>> generator = ClaudeContentGenerator()
        >>> html = await generator.generate(product, "otto", SectionKey.HERO)
    """

    name = "claude"

    def __init__(
        self,
        llm_service: Optional[ClaudeService] = None,
        settings: Optional[Settings] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self.settings = settings or get_settings()
        self._llm = llm_service
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=self.settings.circuit_failure_threshold,
            recovery_timeout=self.settings.circuit_recovery_seconds,
            name="claude-generation",
        )

    @property
    def llm(self) -> ClaudeService:
        if self._llm is None:
            self._llm = ClaudeService(settings=self.settings)
        return self._llm

    async def generate(
        self,
        product: ProductData,
        platform: Platform | str,
        section: Optional[SectionKey | str] = None,
    ) -> str:
        platform_value = Platform(platform).value
        section_value = SectionKey(section).value if section is not None else None
        prompt = build_section_prompt(product, platform_value, section_value)
        task_type = TaskType.SECTION if section_value else TaskType.FULL_TEMPLATE

        try:
            raw = await self.circuit_breaker.call(
                self.llm.generate_html,
                prompt,
                system=SECTION_SYSTEM_PROMPT,
                task_type=task_type,
            )
        except (ClaudeServiceError, ServiceUnavailableError) as e:
            raise GenerationError(
                f"Claude generation failed: {e}",
                platform=platform_value,
                section=section_value,
                cause=e,
            ) from e

        html = strip_code_fences(raw)
        if not html:
            raise GenerationError(
                "Claude returned no HTML",
                platform=platform_value,
                section=section_value,
            )

        logger.debug(
            "Section generated",
            platform=platform_value,
            section=section_value or "full",
            length=len(html),
        )
        return html

    async def close(self) -> None:
        if self._llm is not None:
            await self._llm.close()
