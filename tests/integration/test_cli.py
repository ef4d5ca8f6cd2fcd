"""
Integration tests for the CLI using Click's CliRunner.
"""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from listing_pipeline.main import cli

VALID_EAN = "4006381333931"

# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def payload_file(tmp_path, trigger_payload):
    path = tmp_path / "trigger.json"
    path.write_text(json.dumps(trigger_payload), encoding="utf-8")
    return path


# =============================================================================
# run / resume
# =============================================================================

def test_run_from_options(runner, tmp_path):
    state_dir = tmp_path / "runs"
    result = runner.invoke(cli, [
        "run",
        "--product-id", "OLED65C37LA",
        "--title", "OLED evo C3 65 Zoll",
        "--channel", "3p",
        "--platform", "amazon",
        "--state-dir", str(state_dir),
    ])

    assert result.exit_code == 0, result.output
    assert "Marketplace Listing Pipeline" in result.output
    assert "Status: completed" in result.output
    assert len(list(state_dir.glob("pipeline-OLED65C37LA-*.json"))) == 1


def test_run_from_payload_with_report(runner, payload_file, tmp_path, mock_settings):
    result = runner.invoke(cli, [
        "run",
        "--payload", str(payload_file),
        "--state-dir", str(tmp_path / "runs"),
        "--save-report",
        "--format", "json",
    ])

    assert result.exit_code == 0, result.output
    reports = list(Path(mock_settings.output_dir).glob("*.json"))
    assert len(reports) == 1
    assert json.loads(reports[0].read_text(encoding="utf-8"))["trigger"]["product_id"] == "OLED65C37LA"


def test_run_invalid_trigger(runner, tmp_path):
    result = runner.invoke(cli, [
        "run",
        "--product-id", "OLED65C37LA",
        "--title", "OLED evo C3 65 Zoll",
        "--channel", "3p",
        "--state-dir", str(tmp_path / "runs"),
    ])

    assert result.exit_code == 2
    assert "PLATFORM_REQUIRED" in result.output


def test_run_rejects_non_object_payload(runner, tmp_path):
    path = tmp_path / "list.json"
    path.write_text("[1, 2]", encoding="utf-8")

    result = runner.invoke(cli, ["run", "--payload", str(path)])

    assert result.exit_code == 1
    assert "Expected a JSON object" in result.output


def test_resume_unknown_run(runner, tmp_path):
    result = runner.invoke(cli, ["resume", "pipeline-missing", "--state-dir", str(tmp_path / "runs")])

    assert result.exit_code == 1
    assert "Resume failed" in result.output


def test_resume_finished_run(runner, tmp_path):
    state_dir = tmp_path / "runs"
    runner.invoke(cli, [
        "run", "--product-id", "SC9S", "--title", "Soundbar S95TR",
        "--channel", "d2c", "--state-dir", str(state_dir),
    ])
    run_id = next(state_dir.glob("*.json")).stem

    result = runner.invoke(cli, ["resume", run_id, "--state-dir", str(state_dir)])

    assert result.exit_code == 0, result.output
    assert "Status: completed" in result.output


# =============================================================================
# Compliance / EAN / platforms
# =============================================================================

def test_check_compliance_reports_issues(runner):
    result = runner.invoke(cli, [
        "check-compliance",
        "--platform", "mediamarkt",
        "--ean", VALID_EAN,
        "--category", "TV",
        "--return-address",
        "--impressum",
    ])

    assert result.exit_code == 0, result.output
    assert "Compliance score" in result.output


def test_check_compliance_strict(runner):
    result = runner.invoke(cli, ["check-compliance", "--platform", "amazon", "--strict"])
    assert result.exit_code == 1


def test_check_compliance_strict_passes_when_compliant(runner):
    result = runner.invoke(cli, [
        "check-compliance",
        "--platform", "mediamarkt",
        "--ean", VALID_EAN,
        "--lucid", "DE1234567890123",
        "--weee", "DE12345678",
        "--category", "TV",
        "--return-address",
        "--impressum",
        "--warranty",
        "--strict",
        "--json",
    ])

    assert result.exit_code == 0, result.output
    assert '"total_issues": 0' in result.output


def test_check_compliance_requires_platform(runner):
    result = runner.invoke(cli, ["check-compliance"])
    assert result.exit_code == 2


def test_validate_ean(runner):
    result = runner.invoke(cli, ["validate-ean", "400-6381 333931"])
    assert result.exit_code == 0
    assert f"{VALID_EAN} is a valid EAN-13" in result.output

    result = runner.invoke(cli, ["validate-ean", "4006381333932"])
    assert result.exit_code == 1


def test_platforms(runner):
    result = runner.invoke(cli, ["platforms"])
    assert result.exit_code == 0
    assert "Supported Platforms" in result.output
    assert "amazon" in result.output


# =============================================================================
# generate / validate-setup
# =============================================================================

def test_generate_section_to_file(runner, tmp_path, sample_product):
    request = tmp_path / "request.json"
    request.write_text(json.dumps({
        "product": sample_product.model_dump(),
        "platform": "amazon",
        "section": "hero",
    }), encoding="utf-8")
    output = tmp_path / "hero.html"

    result = runner.invoke(cli, ["generate", str(request), "--output", str(output)])

    assert result.exit_code == 0, result.output
    assert "Wrote" in result.output
    assert "<" in output.read_text(encoding="utf-8")


def test_generate_invalid_request(runner, tmp_path):
    request = tmp_path / "request.json"
    request.write_text(json.dumps({"platform": "amazon"}), encoding="utf-8")

    result = runner.invoke(cli, ["generate", str(request)])

    assert result.exit_code == 2
    assert "MISSING_FIELDS" in result.output


def test_validate_setup(runner):
    result = runner.invoke(cli, ["validate-setup"])
    assert result.exit_code == 0
    assert "Missing" in result.output
    assert "template" in result.output


def test_version(runner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "1.0.0" in result.output
