import pytest
from typing import Optional
from unittest.mock import MagicMock, patch

from listing_pipeline.config.settings import Settings
from listing_pipeline.generators.base import ContentGenerator, GenerationError
from listing_pipeline.models.schemas import (
    FaqEntry,
    Platform,
    ProductComplianceAttributes,
    ProductData,
    ProductImage,
    SectionKey,
)
from listing_pipeline.pipeline.orchestrator import ContentPipeline
from listing_pipeline.pipeline.persistence import InMemoryStatePersistence
from listing_pipeline.pipeline.publisher import SimulatedPublisher
from listing_pipeline.services.event_service import InMemoryEventSink

VALID_EAN = "4006381333931"


@pytest.fixture
def mock_settings(tmp_path):
    """Real settings pointed at a temp dir, tuned for fast tests."""
    return Settings(
        anthropic_api_key=None,
        app_env="development",
        log_json=False,
        review_mode="auto",
        review_auto_approve_delay=0,
        review_timeout_seconds=None,
        step_timeout_seconds=5,
        max_concurrent_generations=4,
        event_webhook_url=None,
        state_dir=tmp_path / "state",
        output_dir=tmp_path / "reports",
        save_run_reports=False,
    )


@pytest.fixture(autouse=True)
def patch_get_settings(mock_settings):
    """Globally patch get_settings to return mock_settings."""
    with patch("listing_pipeline.config.settings.get_settings", return_value=mock_settings):
        # Also patch the places where get_settings is imported directly
        with patch("listing_pipeline.pipeline.orchestrator.get_settings", return_value=mock_settings):
            with patch("listing_pipeline.generators.claude_generator.get_settings", return_value=mock_settings):
                with patch("listing_pipeline.services.llm_service.get_settings", return_value=mock_settings):
                    with patch("listing_pipeline.main.get_settings", return_value=mock_settings):
                        yield mock_settings


@pytest.fixture
def mock_logger():
    return MagicMock()


# =============================================================================
# Product fixtures
# =============================================================================

@pytest.fixture
def sample_images():
    return [
        ProductImage(url=f"https://cdn.example.com/oled65c3/{i}.jpg", width=1500, height=1500, size_bytes=800_000)
        for i in range(1, 4)
    ]


@pytest.fixture
def sample_product(sample_images):
    return ProductData(
        title="OLED evo C3 65 Zoll 4K Smart TV",
        model_number="OLED65C37LA",
        brand="LG",
        category_name="TV",
        description="Selbstleuchtende Pixel für perfektes Schwarz und unendlichen Kontrast.",
        features=[
            "α9 AI Processor Gen6",
            "Dolby Vision & Dolby Atmos",
            "webOS 23 mit ThinQ AI",
            "4x HDMI 2.1",
            "NVIDIA G-SYNC kompatibel",
        ],
        highlights=["Perfektes Schwarz", "Unendlicher Kontrast"],
        specifications={
            "Bildschirmdiagonale": "65 Zoll",
            "Auflösung": "3840 x 2160",
            "HDR": "Dolby Vision, HDR10, HLG",
            "Lautsprecher": "40 W, 2.2 Kanal",
            "HDMI": "4",
            "WLAN": "Wi-Fi 5",
            "Gewicht": "18.9 kg",
            "Monatliche Rate": "49,99 €",
        },
        images=sample_images,
        faq=[FaqEntry(question="Ist der TV wandmontierbar?", answer="Ja, VESA 300x200.")],
        price="1.999,00",
        currency="EUR",
    )


@pytest.fixture
def compliant_attributes():
    return ProductComplianceAttributes(
        ean=VALID_EAN,
        lucid_number="DE1234567890123",
        weee_number="DE12345678",
        product_category="TV",
        has_german_return_address=True,
        has_impressum=True,
        has_warranty_info=True,
    )


@pytest.fixture
def attributes_missing_lucid(compliant_attributes):
    return compliant_attributes.model_copy(update={"lucid_number": None})


@pytest.fixture
def trigger_payload(sample_product, attributes_missing_lucid):
    return {
        "productId": "OLED65C37LA",
        "productTitle": "OLED evo C3 65 Zoll 4K Smart TV",
        "channel": "3p",
        "platforms": ["mediamarkt", "amazon"],
        "product": sample_product.model_dump(),
        "compliance": attributes_missing_lucid.model_dump(),
    }


# =============================================================================
# Generators
# =============================================================================

class FakeGenerator(ContentGenerator):
    """Deterministic generator that records every call."""

    name = "fake"

    def __init__(self):
        self.calls: list[tuple[str, Optional[str]]] = []
        self.closed = False

    async def generate(self, product, platform, section=None) -> str:
        platform = Platform(platform).value
        section = SectionKey(section).value if section is not None else None
        self.calls.append((platform, section))
        return f'<section data-platform="{platform}" data-section="{section or "full"}">{product.title}</section>'

    async def close(self) -> None:
        self.closed = True


class FailingGenerator(ContentGenerator):
    """Generator whose upstream always fails."""

    name = "failing"

    def __init__(self, fail_platforms: Optional[set[str]] = None):
        self.fail_platforms = fail_platforms
        self.calls = 0

    async def generate(self, product, platform, section=None) -> str:
        self.calls += 1
        platform = Platform(platform).value
        if self.fail_platforms is None or platform in self.fail_platforms:
            raise GenerationError("upstream unavailable", platform=platform, section=section)
        return f"<section>{product.title}</section>"


@pytest.fixture
def fake_generator():
    return FakeGenerator()


@pytest.fixture
def failing_generator():
    return FailingGenerator()


# =============================================================================
# Pipeline
# =============================================================================

@pytest.fixture
def event_sink():
    return InMemoryEventSink()


@pytest.fixture
def persistence():
    return InMemoryStatePersistence()


@pytest.fixture
def publisher():
    return SimulatedPublisher()


@pytest.fixture
def pipeline(mock_settings, fake_generator, persistence, event_sink, publisher):
    return ContentPipeline(
        settings=mock_settings,
        generator=fake_generator,
        persistence=persistence,
        event_sink=event_sink,
        publisher=publisher,
        publish_attempts=2,
        publish_min_wait=0,
    )
