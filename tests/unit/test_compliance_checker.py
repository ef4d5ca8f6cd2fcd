import pytest

from listing_pipeline.compliance import (
    CHECK_WEIGHT,
    ComplianceChecker,
    compute_compliance_score,
    is_weee_category,
    listing_title,
)
from listing_pipeline.models.schemas import ProductComplianceAttributes

VALID_EAN = "4006381333931"


@pytest.fixture
def checker():
    return ComplianceChecker()


def _by_rule(result):
    return {r.rule: r for r in result.requirements}


def test_fully_compliant_mediamarkt(checker, compliant_attributes):
    result = checker.check("mediamarkt", compliant_attributes)
    assert result.passed
    assert all(r.status == "pass" for r in result.requirements)


def test_missing_lucid_is_hard_failure(checker, attributes_missing_lucid):
    result = checker.check("mediamarkt", attributes_missing_lucid)
    assert not result.passed
    lucid = _by_rule(result)["LUCID"]
    assert lucid.status == "fail"
    assert lucid.message == "LUCID Packaging Register number required for German marketplace"


def test_missing_return_address_only_warns(checker, compliant_attributes):
    attributes = compliant_attributes.model_copy(update={"has_german_return_address": False})
    result = checker.check("mediamarkt", attributes)
    assert result.passed
    assert _by_rule(result)["GERMAN_RETURN_ADDRESS"].status == "warning"
    assert len(result.warnings) == 1


def test_weee_not_applicable_outside_electronics(checker, compliant_attributes):
    attributes = compliant_attributes.model_copy(update={"product_category": "Furniture", "weee_number": None})
    weee = _by_rule(checker.check("mediamarkt", attributes))["WEEE"]
    assert weee.status == "not_applicable"
    assert weee.required is False


def test_weee_missing_for_tv(checker, compliant_attributes):
    attributes = compliant_attributes.model_copy(update={"weee_number": None})
    weee = _by_rule(checker.check("mediamarkt", attributes))["WEEE"]
    assert weee.status == "fail"


def test_invalid_ean_message_propagates(checker, compliant_attributes):
    attributes = compliant_attributes.model_copy(update={"ean": "4006381333932"})
    ean = _by_rule(checker.check("galaxus", attributes))["EAN_GTIN"]
    assert ean.status == "fail"
    assert ean.message == "Invalid EAN/GTIN checksum. Expected check digit: 1"


def test_mercadolibre_rules(checker):
    attributes = ProductComplianceAttributes(rfc_tax_id=None, has_warranty_info=False)
    result = checker.check("mercadolibre", attributes)
    rules = _by_rule(result)
    assert rules["RFC_TAX_ID"].status == "fail"
    assert rules["WARRANTY_INFO"].status == "warning"
    assert not result.passed


def test_platform_without_global_rules_passes(checker):
    result = checker.check("shopee", ProductComplianceAttributes())
    assert result.passed
    assert result.requirements == []


def test_is_weee_category():
    assert is_weee_category("TV")
    assert is_weee_category("oled tv")
    assert is_weee_category("Gaming Monitor")
    assert not is_weee_category("Kitchen")
    assert not is_weee_category(None)


def test_content_title_overrun(checker):
    result = checker.check_content("galaxus", product_title="X" * 80, model_number="M1")
    title = next(r for r in result.rules if r.rule == "title_length")
    assert title.status == "fail"
    assert title.current == len(listing_title("LG", "X" * 80, "M1"))
    assert not result.passed


def test_content_few_bullets_only_warns(checker):
    result = checker.check_content("amazon", product_title="OLED TV", model_number="M1", feature_count=2)
    bullets = next(r for r in result.rules if r.rule == "bullet_points")
    assert bullets.status == "warning"
    assert result.passed


def test_content_description_checked_when_supplied(checker):
    result = checker.check_content("otto", product_title="TV", model_number="M1", description="d" * 1600)
    description = next(r for r in result.rules if r.rule == "description_length")
    assert description.status == "fail"


def test_content_image_quantity(checker):
    result = checker.check_content("mediamarkt", product_title="TV", model_number="M1", feature_count=3, image_count=1)
    images = next(r for r in result.rules if r.rule == "image_requirements")
    assert images.status == "warning"
    assert "at least 3 required" in images.message


def test_missing_lucid_counts_once_per_platform(checker, sample_product, attributes_missing_lucid):
    report = checker.check_platforms(["mediamarkt", "amazon"], attributes_missing_lucid, sample_product)
    assert report.platforms_checked == 2
    assert report.total_checks == 2 * CHECK_WEIGHT
    assert report.total_issues == 2
    assert report.compliance_score == 80.0
    assert not report.passed
    for platform in ("mediamarkt", "amazon"):
        assert report.platform_checks[platform].issues == [
            "LUCID Packaging Register number required for German marketplace"
        ]
        assert not report.platform_checks[platform].passed


def test_compliant_product_scores_full(checker, sample_product, compliant_attributes):
    report = checker.check_platforms(["mediamarkt", "amazon"], compliant_attributes, sample_product)
    assert report.total_issues == 0
    assert report.compliance_score == 100.0
    assert report.passed
    assert "Amazon: Consider A+ Content for better visibility" in report.warnings


def test_duplicate_platforms_checked_once(checker, compliant_attributes):
    report = checker.check_platforms(["amazon", "amazon"], compliant_attributes)
    assert report.platforms_checked == 1


def test_score_strictly_decreases_with_more_issues(checker, compliant_attributes):
    degraded = [
        compliant_attributes,
        compliant_attributes.model_copy(update={"lucid_number": None}),
        compliant_attributes.model_copy(update={"lucid_number": None, "weee_number": None}),
        compliant_attributes.model_copy(update={"lucid_number": None, "weee_number": None, "ean": None}),
    ]
    scores = [checker.check_platforms(["mediamarkt"], a).compliance_score for a in degraded]
    assert all(a > b for a, b in zip(scores, scores[1:]))
    assert scores == [100.0, 80.0, 60.0, 40.0]


def test_compute_compliance_score():
    assert compute_compliance_score(0, 0) == 100.0
    assert compute_compliance_score(2, 2) == 80.0
    assert compute_compliance_score(1, 7) == -40.0


def test_status_summary(checker, attributes_missing_lucid):
    summary = checker.status_summary(attributes_missing_lucid)
    assert summary == {
        "lucid": "missing",
        "weee": "registered",
        "ean": "valid",
        "impressum": "configured",
        "german_return_address": "configured",
    }


def test_status_summary_weee_not_required():
    summary = ComplianceChecker.status_summary(ProductComplianceAttributes(ean=VALID_EAN, product_category="Kitchen"))
    assert summary["weee"] == "not_required"
    assert summary["ean"] == "valid"
