import pytest

from listing_pipeline.generators.base import ContentGenerator
from listing_pipeline.models.schemas import EDITOR_SECTIONS
from listing_pipeline.pipeline.sections import InvalidSectionTransition, SectionStateStore


@pytest.fixture
def store():
    return SectionStateStore()


def test_default_state(store):
    state = store.get("amazon", "hero")
    assert state.status == "idle"
    assert state.html == ""
    assert state.enabled
    assert state.error is None


def test_happy_path(store):
    store.begin("amazon", "hero")
    state = store.complete("amazon", "hero", "<div>hero</div>")
    assert state.status == "complete"
    assert state.html == "<div>hero</div>"
    assert state.updated_at is not None


def test_cannot_complete_from_idle(store):
    with pytest.raises(InvalidSectionTransition) as exc_info:
        store.complete("amazon", "hero", "<div/>")
    assert exc_info.value.current == "idle"
    assert exc_info.value.target == "complete"
    assert "cannot move from idle to complete" in str(exc_info.value)


def test_cannot_begin_twice(store):
    store.begin("otto", "faq")
    with pytest.raises(InvalidSectionTransition):
        store.begin("otto", "faq")


def test_regenerate_from_complete_and_error(store):
    store.begin("otto", "hero")
    store.complete("otto", "hero", "<p>v1</p>")
    assert store.begin("otto", "hero").status == "generating"
    store.fail("otto", "hero", "boom")
    assert store.begin("otto", "hero").error is None


def test_fail_keeps_previous_html(store):
    store.begin("otto", "hero")
    store.complete("otto", "hero", "<p>v1</p>")
    store.begin("otto", "hero")
    state = store.fail("otto", "hero", "upstream down", fallback_html="<p>fallback</p>")
    assert state.status == "error"
    assert state.html == "<p>v1</p>"
    assert state.error == "upstream down"


def test_fail_stores_fallback_when_empty(store):
    store.begin("otto", "hero")
    state = store.fail("otto", "hero", "upstream down", fallback_html="<p>fallback</p>")
    assert state.html == "<p>fallback</p>"


def test_toggle_keeps_html(store):
    store.begin("amazon", "faq")
    store.complete("amazon", "faq", "<dl/>")
    state = store.toggle("amazon", "faq")
    assert not state.enabled
    assert state.html == "<dl/>"
    assert store.toggle("amazon", "faq").enabled


def test_platform_completion_ignores_disabled(store):
    for section in EDITOR_SECTIONS[:-1]:
        store.begin("amazon", section)
        store.complete("amazon", section, "<p/>")
    assert not store.is_platform_complete("amazon")

    store.set_enabled("amazon", EDITOR_SECTIONS[-1], False)
    assert store.is_platform_complete("amazon")


def test_states_are_per_platform(store):
    store.begin("amazon", "hero")
    assert store.get("otto", "hero").status == "idle"


def test_snapshot(store):
    store.begin("amazon", "hero")
    snapshot = store.snapshot()
    assert snapshot["amazon"]["hero"]["status"] == "generating"


@pytest.mark.asyncio
async def test_regenerate_success(store, fake_generator, sample_product):
    state = await store.regenerate("amazon", "features", fake_generator, sample_product)
    assert state.status == "complete"
    assert 'data-section="features"' in state.html


@pytest.mark.asyncio
async def test_regenerate_failure_uses_fallback(store, failing_generator, sample_product):
    state = await store.regenerate("otto", "features", failing_generator, sample_product)
    assert state.status == "error"
    assert state.error == "upstream unavailable"
    assert "Hauptmerkmale" in state.html


@pytest.mark.asyncio
async def test_generate_platforms_sweeps_enabled_sections(store, fake_generator, sample_product):
    store.set_enabled("amazon", "warranty", False)

    results = await store.generate_platforms(["amazon", "otto"], fake_generator, sample_product)

    assert set(results) == {"amazon", "otto"}
    assert "warranty" not in results["amazon"]
    assert len(results["otto"]) == len(EDITOR_SECTIONS)
    assert store.is_platform_complete("amazon")
    assert store.is_platform_complete("otto")
    assert store.get("amazon", "warranty").status == "idle"


class CrashingGenerator(ContentGenerator):
    name = "crashing"

    def __init__(self, crashes: int = 1):
        self.crashes = crashes

    async def generate(self, product, platform, section=None) -> str:
        if self.crashes:
            self.crashes -= 1
            raise RuntimeError("connection reset")
        return "<div>recovered</div>"


@pytest.mark.asyncio
async def test_unexpected_generator_error_leaves_section_retryable(store, sample_product):
    generator = CrashingGenerator()

    state = await store.regenerate("otto", "hero", generator, sample_product)
    assert state.status == "error"
    assert state.error == "connection reset"
    assert state.html

    state = await store.regenerate("otto", "hero", generator, sample_product)
    assert state.status == "complete"
    assert state.html == "<div>recovered</div>"


@pytest.mark.asyncio
async def test_broken_fallback_still_records_error(store, sample_product):
    store.fallback = CrashingGenerator(crashes=1)

    state = await store.regenerate("amazon", "faq", CrashingGenerator(), sample_product)

    assert state.status == "error"
    assert state.html == ""
    assert store.begin("amazon", "faq").status == "generating"
