"""
Section generation state for the per-platform content editor.

Each (platform, section) pair moves ``idle -> generating -> complete | error``;
``complete`` and ``error`` may go back to ``generating`` on a manual
regenerate or retry. Disabling a section removes it from the next sweep but
keeps its HTML.
"""

import asyncio
from typing import Any, Iterable, Optional

from listing_pipeline.generators.base import ContentGenerator, GenerationError
from listing_pipeline.generators.templates import TemplateContentGenerator
from listing_pipeline.models.schemas import (
    EDITOR_SECTIONS,
    Platform,
    ProductData,
    SectionGenerationState,
    SectionKey,
    SectionStatus,
    utcnow,
)
from listing_pipeline.utils.logger import get_logger

logger = get_logger(__name__)


class InvalidSectionTransition(Exception):
    def __init__(self, platform: str, section: str, current: str, target: str):
        super().__init__(
            f"Section '{section}' on '{platform}' cannot move from {current} to {target}"
        )
        self.platform = platform
        self.section = section
        self.current = current
        self.target = target


_ALLOWED = {
    SectionStatus.IDLE.value: {SectionStatus.GENERATING.value},
    SectionStatus.GENERATING.value: {SectionStatus.COMPLETE.value, SectionStatus.ERROR.value},
    SectionStatus.COMPLETE.value: {SectionStatus.GENERATING.value},
    SectionStatus.ERROR.value: {SectionStatus.GENERATING.value},
}


def _key(platform: Platform | str, section: SectionKey | str) -> tuple[str, str]:
    return Platform(platform).value, SectionKey(section).value


class SectionStateStore:
    """
    Owns section states for one product context.

    States are created lazily with defaults (idle, empty, enabled) on first
    access. A platform is complete when every enabled section is complete.
    """

    def __init__(
        self,
        sections: Iterable[SectionKey | str] = EDITOR_SECTIONS,
        fallback: Optional[ContentGenerator] = None,
    ):
        self.sections = [SectionKey(s).value for s in sections]
        self.fallback = fallback or TemplateContentGenerator()
        self._states: dict[tuple[str, str], SectionGenerationState] = {}

    def get(self, platform: Platform | str, section: SectionKey | str) -> SectionGenerationState:
        key = _key(platform, section)
        if key not in self._states:
            self._states[key] = SectionGenerationState()
        return self._states[key]

    def _transition(
        self,
        platform: Platform | str,
        section: SectionKey | str,
        target: SectionStatus,
        **changes: Any,
    ) -> SectionGenerationState:
        state = self.get(platform, section)
        if target.value not in _ALLOWED[state.status]:
            p, s = _key(platform, section)
            raise InvalidSectionTransition(p, s, state.status, target.value)
        updated = state.model_copy(update={"status": target.value, "updated_at": utcnow(), **changes})
        self._states[_key(platform, section)] = updated
        return updated

    # =========================================================================
    # Transitions
    # =========================================================================

    def begin(self, platform: Platform | str, section: SectionKey | str) -> SectionGenerationState:
        return self._transition(platform, section, SectionStatus.GENERATING, error=None)

    def complete(self, platform: Platform | str, section: SectionKey | str, html: str) -> SectionGenerationState:
        return self._transition(platform, section, SectionStatus.COMPLETE, html=html, error=None)

    def fail(
        self,
        platform: Platform | str,
        section: SectionKey | str,
        error: str,
        fallback_html: str = "",
    ) -> SectionGenerationState:
        """Move to ``error``, keeping previous HTML or storing the fallback."""
        previous = self.get(platform, section).html
        return self._transition(
            platform,
            section,
            SectionStatus.ERROR,
            error=error,
            html=previous or fallback_html,
        )

    def set_enabled(self, platform: Platform | str, section: SectionKey | str, enabled: bool) -> SectionGenerationState:
        state = self.get(platform, section).model_copy(update={"enabled": enabled})
        self._states[_key(platform, section)] = state
        return state

    def toggle(self, platform: Platform | str, section: SectionKey | str) -> SectionGenerationState:
        return self.set_enabled(platform, section, not self.get(platform, section).enabled)

    # =========================================================================
    # Queries
    # =========================================================================

    def enabled_sections(self, platform: Platform | str) -> list[str]:
        return [s for s in self.sections if self.get(platform, s).enabled]

    def is_platform_complete(self, platform: Platform | str) -> bool:
        return all(
            self.get(platform, s).status == SectionStatus.COMPLETE.value
            for s in self.enabled_sections(platform)
        )

    def snapshot(self) -> dict[str, dict[str, dict[str, Any]]]:
        """Serialisable view: platform -> section -> state."""
        view: dict[str, dict[str, dict[str, Any]]] = {}
        for (platform, section), state in sorted(self._states.items()):
            view.setdefault(platform, {})[section] = state.model_dump(mode="json")
        return view

    # =========================================================================
    # Generation
    # =========================================================================

    async def regenerate(
        self,
        platform: Platform | str,
        section: SectionKey | str,
        generator: ContentGenerator,
        product: ProductData,
    ) -> SectionGenerationState:
        """
        Generate one section, recording the outcome.

        Any generator failure moves the section to ``error`` with fallback
        HTML, so a later call can retry it; an ``InvalidSectionTransition``
        (section already generating) is raised.
        """
        self.begin(platform, section)
        try:
            html = await generator.generate(product, platform, section)
        except Exception as e:
            message = e.message if isinstance(e, GenerationError) else (str(e) or type(e).__name__)
            logger.warning(
                "Section generation failed",
                platform=Platform(platform).value,
                section=SectionKey(section).value,
                error=message,
                error_type=type(e).__name__,
            )
            return self.fail(platform, section, message, await self._fallback_html(product, platform, section))
        return self.complete(platform, section, html)

    async def _fallback_html(self, product: ProductData, platform: Platform | str, section: SectionKey | str) -> str:
        try:
            return await self.fallback.generate(product, platform, section)
        except Exception as e:
            logger.error(
                "Fallback section failed",
                platform=Platform(platform).value,
                section=SectionKey(section).value,
                error=str(e),
            )
            return ""

    async def generate_platform(
        self,
        platform: Platform | str,
        generator: ContentGenerator,
        product: ProductData,
    ) -> dict[str, SectionGenerationState]:
        """Sweep every enabled section of one platform, in order."""
        results = {}
        for section in self.enabled_sections(platform):
            results[section] = await self.regenerate(platform, section, generator, product)
        return results

    async def generate_platforms(
        self,
        platforms: Iterable[Platform | str],
        generator: ContentGenerator,
        product: ProductData,
    ) -> dict[str, dict[str, SectionGenerationState]]:
        """Sweep several platforms concurrently."""
        platforms = [Platform(p).value for p in platforms]
        sweeps = await asyncio.gather(*(
            self.generate_platform(p, generator, product) for p in platforms
        ))
        return dict(zip(platforms, sweeps))
