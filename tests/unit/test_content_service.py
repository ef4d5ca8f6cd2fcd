import pytest

from listing_pipeline.services.content_service import ContentService
from listing_pipeline.services.validation_service import ValidationError


@pytest.fixture
def service(fake_generator):
    return ContentService(generator=fake_generator)


@pytest.fixture
def product_payload(sample_product):
    return sample_product.model_dump()


@pytest.mark.asyncio
async def test_single_section(service, fake_generator, product_payload):
    response = await service.handle_payload({"product": product_payload, "platform": "otto", "section": "hero"})

    assert response.platform == "otto"
    assert response.section == "hero"
    assert 'data-section="hero"' in response.html
    assert response.generated_sections == ["hero"]
    assert response.fallback_sections == []
    assert fake_generator.calls == [("otto", "hero")]


@pytest.mark.asyncio
async def test_full_template(service, fake_generator, product_payload):
    response = await service.handle_payload({"product": product_payload, "platform": "amazon"})

    assert response.section == "full"
    assert 'data-section="full"' in response.html
    assert fake_generator.calls == [("amazon", None)]


@pytest.mark.asyncio
async def test_multiple_sections_skip_unknown(service, fake_generator, product_payload):
    response = await service.handle_payload({
        "product": product_payload,
        "platform": "otto",
        "sections": ["hero", "bogus", "faq", "hero"],
    })

    assert response.section == "sections"
    assert response.generated_sections == ["hero", "faq"]
    assert set(response.sections) == {"hero", "faq"}
    assert response.html is None
    assert sorted(fake_generator.calls) == [("otto", "faq"), ("otto", "hero")]


@pytest.mark.asyncio
async def test_failures_fall_back_to_templates(failing_generator, product_payload):
    service = ContentService(generator=failing_generator)

    response = await service.handle_payload({
        "product": product_payload,
        "platform": "mediamarkt",
        "sections": ["features", "warranty"],
    })

    assert response.fallback_sections == ["features", "warranty"]
    assert "Hauptmerkmale" in response.sections["features"]
    assert all(html.strip() for html in response.sections.values())


@pytest.mark.asyncio
async def test_single_section_fallback(failing_generator, product_payload):
    service = ContentService(generator=failing_generator)
    response = await service.handle_payload({"product": product_payload, "platform": "otto", "section": "faq"})
    assert response.fallback_sections == ["faq"]
    assert "Ist der TV wandmontierbar?" in response.html


@pytest.mark.asyncio
async def test_consolidate(service, fake_generator, product_payload):
    response = await service.handle_payload({
        "product": product_payload,
        "platform": "otto",
        "action": "consolidate",
        "sectionHtmls": {"warranty": "<p>w</p>", "hero": "<p>h</p>", "extra": "<p>e</p>"},
    })

    assert response.section == "consolidated"
    assert response.included_sections == ["hero", "warranty"]
    assert response.html.index("<p>h</p>") < response.html.index("<p>w</p>")
    assert fake_generator.calls == []


@pytest.mark.asyncio
async def test_invalid_payload(service):
    with pytest.raises(ValidationError):
        await service.handle_payload({"platform": "otto"})
