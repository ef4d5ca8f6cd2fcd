"""
Report formatting utilities.

Provides formatters for run reports in Markdown and JSON.
"""

from pathlib import Path
from typing import Any, Optional

from listing_pipeline.models.schemas import PipelineRun, StepId, utcnow
from listing_pipeline.utils.logger import get_logger

logger = get_logger(__name__)

STATUS_ICONS = {
    "completed": "✅",
    "warning": "⚠️",
    "failed": "❌",
    "skipped": "⏭️",
    "in_progress": "⏳",
    "pending": "·",
}

REPORT_SUFFIXES = {"markdown": ".md", "json": ".json"}


def _cell(value: Any) -> str:
    """Table-safe text."""
    if value is None or value == "":
        return "-"
    return str(value).replace("|", "-").replace("\n", " ")


def format_step_table(run: PipelineRun) -> str:
    """
    Create formatted markdown table for step results.

    | # | Step | Status | Duration | Error |
    |---|------|--------|----------|-------|
    | 1 | Asset Verification | ✅ completed | 12 ms | - |
    """
    header = "| # | Step | Status | Duration | Error |\n|---|------|--------|----------|-------|"
    rows = []
    for i, step in enumerate(run.steps, 1):
        icon = STATUS_ICONS.get(step.status, "")
        duration = f"{step.duration_ms:,} ms" if step.duration_ms is not None else "-"
        rows.append(f"| {i} | {_cell(step.name)} | {icon} {step.status} | {duration} | {_cell(step.error)} |")
    return header + "\n" + "\n".join(rows)


def format_compliance_table(report: Optional[dict[str, Any]]) -> str:
    """
    Create formatted markdown table for per-platform compliance.

    | Platform | Passed | Issues | Warnings |
    |----------|--------|--------|----------|
    """
    if not report or not report.get("platform_checks"):
        return "*No compliance results.*"

    header = "| Platform | Passed | Issues | Warnings |\n|----------|--------|--------|----------|"
    rows = []
    for platform, check in report["platform_checks"].items():
        issues = "; ".join(check.get("issues", [])) or "-"
        warnings = "; ".join(check.get("warnings", [])) or "-"
        passed = "Yes" if check.get("passed") else "No"
        rows.append(f"| {platform} | {passed} | {_cell(issues)} | {_cell(warnings)} |")
    return header + "\n" + "\n".join(rows)


def generate_run_report(run: PipelineRun) -> str:
    """
    Generate the Markdown report for a run.

    Structure:
    # Listing Pipeline Report: {product_id}
    ## Summary
    ## Steps
    ## Compliance
    ## Distribution
    """
    timestamp = utcnow().strftime("%Y-%m-%d %H:%M UTC")
    trigger = run.trigger
    summary = run.summary()

    compliance = run.get_step(StepId.COMPLIANCE_CHECK).output
    score = compliance.get("compliance_score") if compliance else None

    distribution = run.get_step(StepId.DISTRIBUTION).output or {}
    responses = distribution.get("api_responses", {})
    urls = distribution.get("published_urls", {})
    if responses:
        distribution_text = "\n".join(
            f"- **{platform}**: {response}" + (f" ({urls[platform]})" if platform in urls else "")
            for platform, response in responses.items()
        )
    else:
        distribution_text = "*Nothing distributed.*"

    errors_text = "\n".join(f"- {e}" for e in run.errors) if run.errors else "*None.*"

    return f"""# Listing Pipeline Report: {trigger.product_id}

## Summary
| Field | Value |
|-------|-------|
| Pipeline | {run.pipeline_id} |
| Product | {_cell(trigger.product_title)} |
| Model | {_cell(trigger.model_number)} |
| Channel | {trigger.channel} |
| Platforms | {_cell(", ".join(trigger.platforms))} |
| Status | {run.status} |
| Completed Steps | {summary.completed_steps}/{summary.total_steps} |
| Failed Steps | {summary.failed_steps} |
| Skipped Steps | {summary.skipped_steps} |
| Compliance Score | {_cell(score)} |

## Steps
{format_step_table(run)}

## Compliance
{format_compliance_table(compliance)}

## Distribution
{distribution_text}

## Errors
{errors_text}

---
Generated on: {timestamp}
"""


def save_report(report: str, output_path: Path, format: str = "markdown") -> Path:
    """
    Save report text to file.

    Args:
        report: Report content
        output_path: Destination path (without extension, or with)
        format: 'markdown' or 'json'
    """
    suffix = REPORT_SUFFIXES.get(format)
    if suffix is None:
        raise ValueError(f"Unsupported format: {format}")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    # Run ids may contain dots; only an exact suffix counts as an extension
    if output_path.suffix == suffix:
        file_path = output_path
    else:
        file_path = output_path.with_name(output_path.name + suffix)

    file_path.write_text(report, encoding="utf-8")
    logger.info("Saved report", path=str(file_path), format=format)
    return file_path


class RunReportFormatter:
    """Format and save pipeline run reports."""

    def render(self, run: PipelineRun, format_type: str = "markdown") -> str:
        if format_type == "json":
            return run.to_json()
        if format_type == "markdown":
            return generate_run_report(run)
        raise ValueError(f"Unsupported format: {format_type}")

    def save_report(self, run: PipelineRun, output_dir: Path, format_type: str = "markdown") -> Path:
        """Write the report for ``run`` to ``output_dir/{pipeline_id}.md|.json``."""
        content = self.render(run, format_type)
        return save_report(content, Path(output_dir) / run.pipeline_id, format_type)
