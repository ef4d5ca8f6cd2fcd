import pytest
from unittest.mock import AsyncMock, MagicMock

from listing_pipeline.generators.base import GenerationError, generate_with_fallback
from listing_pipeline.generators.claude_generator import ClaudeContentGenerator, strip_code_fences
from listing_pipeline.generators.prompts import SECTION_SYSTEM_PROMPT
from listing_pipeline.generators.templates import TemplateContentGenerator
from listing_pipeline.services.llm_service import ClaudeServiceError, TaskType
from listing_pipeline.utils.retry import CircuitBreaker, ServiceUnavailableError


@pytest.fixture
def mock_llm():
    llm = MagicMock()
    llm.generate_html = AsyncMock(return_value="```html\n<div>Hero</div>\n```")
    llm.close = AsyncMock()
    return llm


@pytest.fixture
def generator(mock_llm, mock_settings):
    return ClaudeContentGenerator(llm_service=mock_llm, settings=mock_settings)


def test_strip_code_fences():
    assert strip_code_fences("```html\n<p>x</p>\n```") == "<p>x</p>"
    assert strip_code_fences("```\n<p>y</p>```") == "<p>y</p>"
    assert strip_code_fences("  <p>z</p>  ") == "<p>z</p>"


@pytest.mark.asyncio
async def test_generate_section(generator, mock_llm, sample_product):
    html = await generator.generate(sample_product, "amazon", "hero")

    assert html == "<div>Hero</div>"
    mock_llm.generate_html.assert_awaited_once()
    args, kwargs = mock_llm.generate_html.call_args
    assert "Marketplace: Amazon (Germany)" in args[0]
    assert kwargs["system"] == SECTION_SYSTEM_PROMPT
    assert kwargs["task_type"] == TaskType.SECTION


@pytest.mark.asyncio
async def test_generate_full_template(generator, mock_llm, sample_product):
    await generator.generate(sample_product, "otto")
    assert mock_llm.generate_html.call_args.kwargs["task_type"] == TaskType.FULL_TEMPLATE


@pytest.mark.asyncio
async def test_service_error_becomes_generation_error(generator, mock_llm, sample_product):
    mock_llm.generate_html.side_effect = ClaudeServiceError("API error: overloaded")

    with pytest.raises(GenerationError) as exc_info:
        await generator.generate(sample_product, "amazon", "features")

    err = exc_info.value
    assert err.platform == "amazon"
    assert err.section == "features"
    assert isinstance(err.cause, ClaudeServiceError)
    assert "overloaded" in err.message


@pytest.mark.asyncio
async def test_empty_output_is_generation_error(generator, mock_llm, sample_product):
    mock_llm.generate_html.return_value = "```html\n```"

    with pytest.raises(GenerationError, match="Claude returned no HTML"):
        await generator.generate(sample_product, "amazon", "hero")


@pytest.mark.asyncio
async def test_open_circuit_short_circuits(mock_llm, mock_settings, sample_product):
    breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=60, name="test")
    generator = ClaudeContentGenerator(llm_service=mock_llm, settings=mock_settings, circuit_breaker=breaker)
    mock_llm.generate_html.side_effect = ClaudeServiceError("down")

    with pytest.raises(GenerationError):
        await generator.generate(sample_product, "amazon", "hero")
    with pytest.raises(GenerationError) as exc_info:
        await generator.generate(sample_product, "amazon", "hero")

    assert isinstance(exc_info.value.cause, ServiceUnavailableError)
    assert mock_llm.generate_html.await_count == 1


@pytest.mark.asyncio
async def test_close_releases_service(generator, mock_llm):
    await generator.close()
    mock_llm.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_fallback_substitutes_template(mock_llm, mock_settings, sample_product):
    mock_llm.generate_html.side_effect = ClaudeServiceError("down")
    generator = ClaudeContentGenerator(llm_service=mock_llm, settings=mock_settings)

    outcome = await generate_with_fallback(generator, TemplateContentGenerator(), sample_product, "otto", "warranty")

    assert outcome.used_fallback
    assert "2 Jahre Herstellergarantie" in outcome.html
    assert "down" in outcome.error


@pytest.mark.asyncio
async def test_fallback_not_used_on_success(generator, sample_product):
    outcome = await generate_with_fallback(generator, TemplateContentGenerator(), sample_product, "otto", "hero")
    assert not outcome.used_fallback
    assert outcome.error is None
    assert outcome.html == "<div>Hero</div>"


@pytest.mark.asyncio
async def test_fallback_does_not_mask_bugs(sample_product):
    broken = MagicMock()
    broken.name = "broken"
    broken.generate = AsyncMock(side_effect=KeyError("bug"))

    with pytest.raises(KeyError):
        await generate_with_fallback(broken, TemplateContentGenerator(), sample_product, "otto", "hero")
