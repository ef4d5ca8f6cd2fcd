import pytest

from listing_pipeline.services.validation_service import (
    ValidationError,
    ValidationService,
)
from listing_pipeline.utils.retry import ErrorHandler


@pytest.fixture
def validator():
    return ValidationService()


@pytest.fixture
def base_payload():
    return {
        "productId": "OLED65C37LA",
        "productTitle": "OLED evo C3 65 Zoll",
        "channel": "3p",
        "platforms": ["mediamarkt", "amazon"],
    }


def test_valid_trigger(validator, base_payload):
    trigger = validator.validate_trigger(base_payload)
    assert trigger.product_id == "OLED65C37LA"
    assert trigger.channel == "3p"
    assert trigger.platforms == ["mediamarkt", "amazon"]
    assert trigger.model_number == "OLED65C37LA"


def test_snake_case_keys(validator):
    trigger = validator.validate_trigger({
        "product_id": "GBB72",
        "product_title": "Kühlschrank",
        "channel": "d2c",
    })
    assert trigger.product_id == "GBB72"
    assert trigger.platforms == []


def test_duplicate_platforms_collapsed(validator, base_payload):
    base_payload["platforms"] = ["amazon", "amazon", "otto"]
    assert validator.validate_trigger(base_payload).platforms == ["amazon", "otto"]


def test_missing_fields(validator):
    with pytest.raises(ValidationError) as exc_info:
        validator.validate_trigger({"productId": "X1"})
    err = exc_info.value
    assert err.code == "MISSING_FIELDS"
    assert err.message == "Missing required fields: productId, productTitle, channel"
    assert err.details == {"missing": ["productTitle", "channel"]}


def test_invalid_channel(validator, base_payload):
    base_payload["channel"] = "retail"
    with pytest.raises(ValidationError) as exc_info:
        validator.validate_trigger(base_payload)
    assert exc_info.value.code == "INVALID_CHANNEL"
    assert exc_info.value.message == "Invalid channel 'retail'. Valid: d2c, 3p"


def test_third_party_requires_platform(validator, base_payload):
    base_payload["platforms"] = []
    with pytest.raises(ValidationError) as exc_info:
        validator.validate_trigger(base_payload)
    assert exc_info.value.code == "PLATFORM_REQUIRED"
    assert exc_info.value.message == "3P channel requires at least one platform"


def test_unknown_platform(validator, base_payload):
    base_payload["platforms"] = ["amazon", "walmart"]
    with pytest.raises(ValidationError) as exc_info:
        validator.validate_trigger(base_payload)
    assert exc_info.value.code == "UNKNOWN_PLATFORM"
    assert exc_info.value.details == {"unknown": ["walmart"]}
    assert exc_info.value.message.startswith("Unknown platform(s): walmart. Valid: mediamarkt")


def test_invalid_product_id(validator, base_payload):
    base_payload["productId"] = "bad id!"
    with pytest.raises(ValidationError) as exc_info:
        validator.validate_trigger(base_payload)
    assert exc_info.value.code == "INVALID_PRODUCT_ID"


def test_non_object_payload(validator):
    with pytest.raises(ValidationError) as exc_info:
        validator.validate_trigger(["not", "a", "dict"])
    assert exc_info.value.code == "INVALID_INPUT_FORMAT"


def test_invalid_nested_product(validator, base_payload):
    base_payload["product"] = {"title": ""}
    with pytest.raises(ValidationError) as exc_info:
        validator.validate_trigger(base_payload)
    assert exc_info.value.code == "INVALID_INPUT_FORMAT"
    assert exc_info.value.details["errors"]


def test_to_dict_and_categorisation(validator):
    with pytest.raises(ValidationError) as exc_info:
        validator.validate_trigger({})
    payload = exc_info.value.to_dict()
    assert payload["code"] == "MISSING_FIELDS"
    assert payload["error"] == "Missing required fields: productId, productTitle, channel"
    assert ErrorHandler.categorize_error(exc_info.value) == "VALIDATION_ERROR"


def test_content_request_modes(validator, sample_product):
    product = sample_product.model_dump()
    assert validator.validate_content_request({"product": product, "platform": "otto"}).mode == "full"
    assert validator.validate_content_request({"product": product, "platform": "otto", "section": "hero"}).mode == "section"
    assert validator.validate_content_request({"product": product, "platform": "otto", "sections": ["faq"]}).mode == "sections"
    consolidate = validator.validate_content_request({
        "product": product,
        "platform": "otto",
        "action": "consolidate",
        "sectionHtmls": {"hero": "<p>x</p>"},
    })
    assert consolidate.mode == "consolidate"


def test_content_request_missing_fields(validator):
    with pytest.raises(ValidationError) as exc_info:
        validator.validate_content_request({"platform": "otto"})
    assert exc_info.value.code == "MISSING_FIELDS"
    assert exc_info.value.message == "Missing product or platform"


def test_content_request_unknown_platform(validator, sample_product):
    with pytest.raises(ValidationError) as exc_info:
        validator.validate_content_request({"product": sample_product.model_dump(), "platform": "walmart"})
    assert exc_info.value.code == "UNKNOWN_PLATFORM"
    assert exc_info.value.message == "Unknown platform: walmart"


def test_content_request_unknown_section(validator, sample_product):
    with pytest.raises(ValidationError) as exc_info:
        validator.validate_content_request({"product": sample_product.model_dump(), "platform": "otto", "section": "pricing"})
    assert exc_info.value.code == "INVALID_INPUT_FORMAT"


@pytest.mark.parametrize("channel", [["3p"], {"name": "3p"}, 3])
def test_wrongly_typed_channel_is_rejected(validator, base_payload, channel):
    base_payload["channel"] = channel
    with pytest.raises(ValidationError) as exc_info:
        validator.validate_trigger(base_payload)
    assert exc_info.value.code == "INVALID_CHANNEL"


@pytest.mark.parametrize("platforms", [5, "amazon", {"amazon": True}])
def test_wrongly_typed_platforms_are_rejected(validator, base_payload, platforms):
    base_payload["platforms"] = platforms
    with pytest.raises(ValidationError) as exc_info:
        validator.validate_trigger(base_payload)
    assert exc_info.value.code == "INVALID_INPUT_FORMAT"


def test_unhashable_platform_entry_is_unknown(validator, base_payload):
    base_payload["platforms"] = ["amazon", ["otto"]]
    with pytest.raises(ValidationError) as exc_info:
        validator.validate_trigger(base_payload)
    assert exc_info.value.code == "UNKNOWN_PLATFORM"
