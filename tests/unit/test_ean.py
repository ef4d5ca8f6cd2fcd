import pytest

from listing_pipeline.compliance.ean import compute_check_digit, validate_ean


@pytest.mark.parametrize("code", ["4006381333931", "5901234123457", "4006381-333931", "4006381 333931"])
def test_valid_codes(code):
    result = validate_ean(code)
    assert result.valid
    assert result.error is None
    assert result.normalized == code.replace("-", "").replace(" ", "")


@pytest.mark.parametrize("code", [None, ""])
def test_missing_code(code):
    result = validate_ean(code)
    assert not result.valid
    assert result.error == "EAN/GTIN is required but not provided"


def test_wrong_length():
    result = validate_ean("123456789012")
    assert not result.valid
    assert result.error == "EAN/GTIN must be 13 digits, got: 12 characters"


@pytest.mark.parametrize(
    "code, error",
    [
        ("4006381333930", "Invalid EAN/GTIN checksum. Expected check digit: 1"),
        ("12345", "EAN/GTIN must be 13 digits, got: 5 characters"),
    ],
)
def test_invalid_codes(code, error):
    result = validate_ean(code)
    assert not result.valid
    assert result.error == error


def test_non_digit_characters():
    result = validate_ean("400638133393A")
    assert not result.valid
    assert "must be 13 digits" in result.error


def test_bad_checksum_reports_expected_digit():
    result = validate_ean("4006381333932")
    assert not result.valid
    assert result.error == "Invalid EAN/GTIN checksum. Expected check digit: 1"
    assert result.normalized == "4006381333932"


def test_check_digit_zero():
    # 12 zeros sum to 0, so the check digit wraps to 0 rather than 10
    assert compute_check_digit("000000000000") == 0
    assert validate_ean("0000000000000").valid


def test_compute_check_digit_rejects_bad_input():
    with pytest.raises(ValueError):
        compute_check_digit("12345")
    with pytest.raises(ValueError):
        compute_check_digit("12345678901a")


def test_validation_is_pure():
    first = validate_ean("4006381333931")
    second = validate_ean("4006381333931")
    assert first == second
