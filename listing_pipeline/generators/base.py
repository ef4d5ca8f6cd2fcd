"""
Content generator contract.

Steps 4 to 6 of the pipeline and the section editor call a generator once
per (platform, section). Failures surface as ``GenerationError`` and callers
substitute deterministic template content instead of leaving a section empty.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from listing_pipeline.models.schemas import Platform, ProductData, SectionKey
from listing_pipeline.utils.logger import get_logger

logger = get_logger(__name__)


class GenerationError(Exception):
    """Raised when content generation fails or yields unusable output."""

    def __init__(
        self,
        message: str,
        platform: Optional[str] = None,
        section: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.platform = platform
        self.section = section
        self.cause = cause


class ContentGenerator(ABC):
    """Produces marketing HTML for one content section on one platform."""

    name: str = "generator"

    @abstractmethod
    async def generate(
        self,
        product: ProductData,
        platform: Platform | str,
        section: Optional[SectionKey | str] = None,
    ) -> str:
        """
        Generate content for ``section`` (``None`` means the full template).

        Raises:
            GenerationError: If the upstream call fails or output is empty.
        """

    async def close(self) -> None:
        """Release any held resources."""
        return None


@dataclass
class GenerationOutcome:
    html: str
    used_fallback: bool = False
    error: Optional[str] = None


async def generate_with_fallback(
    generator: ContentGenerator,
    fallback: ContentGenerator,
    product: ProductData,
    platform: Platform | str,
    section: Optional[SectionKey | str] = None,
) -> GenerationOutcome:
    """
    Generate with ``generator``, substituting ``fallback`` output on failure.

    Only ``GenerationError`` triggers the fallback; anything else is a bug
    and propagates to the caller's boundary.
    """
    try:
        html = await generator.generate(product, platform, section)
        return GenerationOutcome(html=html)
    except GenerationError as e:
        logger.warning(
            "Generation failed, using fallback",
            generator=generator.name,
            platform=getattr(platform, "value", platform),
            section=getattr(section, "value", section) or "full",
            error=e.message,
        )
        html = await fallback.generate(product, platform, section)
        return GenerationOutcome(html=html, used_fallback=True, error=e.message)
