"""
Marketplace Listing Pipeline - CLI Entry Point.
CLI using Click and Rich.
"""

import sys
import asyncio
import json
from pathlib import Path
from functools import wraps
from typing import Any, Optional

import click
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.panel import Panel
from rich.table import Table

from listing_pipeline.compliance import ComplianceChecker, validate_ean
from listing_pipeline.config.settings import Settings, get_settings
from listing_pipeline.generators import ClaudeContentGenerator, TemplateContentGenerator
from listing_pipeline.models.schemas import Platform, PipelineRun, ProductComplianceAttributes
from listing_pipeline.pipeline import ContentPipeline, JsonFileStatePersistence, PipelineError
from listing_pipeline.platforms import lookup, supported_platforms
from listing_pipeline.services import ContentService, ValidationError
from listing_pipeline.utils.logger import setup_logging

# Initialize Rich Console
console = Console()

PLATFORM_CHOICES = [p.value for p in Platform]

STATUS_STYLES = {
    "completed": "green",
    "warning": "yellow",
    "failed": "red",
    "skipped": "dim",
    "pending": "dim",
    "in_progress": "cyan",
    "paused": "yellow",
    "awaiting_review": "cyan",
    "pass": "green",
    "fail": "red",
    "not_applicable": "dim",
}

# =============================================================================
# Helper Functions
# =============================================================================

def async_command(f):
    """Decorator to run async click commands."""
    @wraps(f)
    def wrapper(*args, **kwargs):
        return asyncio.run(f(*args, **kwargs))
    return wrapper


def setup_logger(verbose: bool):
    """Configure logging based on verbosity."""
    setup_logging(level="DEBUG" if verbose else "WARNING", json_format=False)


def _styled(status: str) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status}[/{style}]"


def _load_settings() -> Settings:
    try:
        return get_settings()
    except Exception as e:
        console.print(f"[bold red]Configuration Error:[/bold red] {e}")
        sys.exit(1)


def _read_json(path: str) -> dict[str, Any]:
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        console.print(f"[bold red]Invalid JSON in {path}:[/bold red] {e}")
        sys.exit(1)
    if not isinstance(data, dict):
        console.print(f"[bold red]Expected a JSON object in {path}[/bold red]")
        sys.exit(1)
    return data


def _print_run(run: PipelineRun) -> None:
    table = Table(title=f"Pipeline {run.pipeline_id}")
    table.add_column("#", justify="right")
    table.add_column("Step")
    table.add_column("Status")
    table.add_column("Duration", justify="right")
    table.add_column("Error")

    for i, step in enumerate(run.steps, 1):
        duration = f"{step.duration_ms} ms" if step.duration_ms is not None else "-"
        table.add_row(str(i), step.name, _styled(step.status), duration, step.error or "")
    console.print(table)

    summary = run.summary()
    console.print(Panel.fit(
        f"Status: {_styled(run.status)}\n"
        f"Completed: [green]{summary.completed_steps}[/green]/{summary.total_steps}  "
        f"Failed: [red]{summary.failed_steps}[/red]  "
        f"Skipped: {summary.skipped_steps}  "
        f"Progress: {run.progress_percent}%"
    ))


async def _execute(pipeline: ContentPipeline, coro_factory) -> PipelineRun:
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("[cyan]Running pipeline...", total=None)

        def update_progress(pct, msg):
            progress.update(task, description=f"[cyan]{msg} ({pct}%)")

        pipeline.progress_callback = update_progress
        run = await coro_factory()
        progress.update(task, description="[green]Pipeline finished")
    return run

# =============================================================================
# CLI Group
# =============================================================================

@click.group()
@click.version_option(version="1.0.0")
def cli():
    """Marketplace Listing Pipeline"""
    pass

# =============================================================================
# Commands
# =============================================================================

@cli.command()
@click.option('--payload', 'payload_file', type=click.Path(exists=True, dir_okay=False), help='Trigger payload JSON file')
@click.option('--product-id', help='Product identifier')
@click.option('--title', 'product_title', help='Product title')
@click.option('--model', 'model_number', help='Model number (defaults to the product id)')
@click.option('--channel', type=click.Choice(['d2c', '3p']), help='Distribution channel')
@click.option('--platform', 'platforms', multiple=True, type=click.Choice(PLATFORM_CHOICES), help='Target platform (repeatable)')
@click.option('--state-dir', type=click.Path(file_okay=False), help='Directory for run state files')
@click.option('--save-report', is_flag=True, help='Save a run report to the output directory')
@click.option('--format', 'report_format', type=click.Choice(['markdown', 'json']), default=None, help='Report format')
@click.option('--verbose', is_flag=True, help='Detailed logging')
@async_command
async def run(
    payload_file: Optional[str],
    product_id: Optional[str],
    product_title: Optional[str],
    model_number: Optional[str],
    channel: Optional[str],
    platforms: tuple[str, ...],
    state_dir: Optional[str],
    save_report: bool,
    report_format: Optional[str],
    verbose: bool,
):
    """
    Run the listing pipeline for one product.

    Options override values from the --payload file.
    """
    setup_logger(verbose)
    settings = _load_settings()

    payload: dict[str, Any] = _read_json(payload_file) if payload_file else {}
    overrides = {
        "productId": product_id,
        "productTitle": product_title,
        "modelNumber": model_number,
        "channel": channel,
        "platforms": list(platforms) or None,
    }
    payload.update({k: v for k, v in overrides.items() if v is not None})

    updates: dict[str, Any] = {}
    if save_report:
        updates["save_run_reports"] = True
    if report_format:
        updates["report_format"] = report_format
    settings = settings.model_copy(update=updates)

    persistence = JsonFileStatePersistence(Path(state_dir) if state_dir else settings.state_dir)

    try:
        async with ContentPipeline(settings=settings, persistence=persistence) as pipeline:
            trigger = pipeline.validator.validate_trigger(payload)
            console.print(Panel.fit(
                f"[bold blue]Marketplace Listing Pipeline[/bold blue]\n"
                f"Product: [cyan]{trigger.product_title}[/cyan] ({trigger.model_number})\n"
                f"Channel: {trigger.channel}  Platforms: {', '.join(trigger.platforms) or '-'}"
            ))
            result = await _execute(pipeline, lambda: pipeline.run(trigger))
    except ValidationError as e:
        console.print(f"[bold red]Invalid trigger ({e.code}):[/bold red] {e.message}")
        sys.exit(2)
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {str(e)}")
        if verbose:
            console.print_exception()
        sys.exit(1)

    _print_run(result)
    if result.status == "failed":
        sys.exit(1)


@cli.command()
@click.argument('run_id')
@click.option('--state-dir', type=click.Path(file_okay=False), help='Directory for run state files')
@click.option('--verbose', is_flag=True, help='Detailed logging')
@async_command
async def resume(run_id: str, state_dir: Optional[str], verbose: bool):
    """
    Resume a paused or interrupted run.

    RUN_ID: Pipeline identifier printed by the run command.
    """
    setup_logger(verbose)
    settings = _load_settings()
    persistence = JsonFileStatePersistence(Path(state_dir) if state_dir else settings.state_dir)

    try:
        async with ContentPipeline(settings=settings, persistence=persistence) as pipeline:
            result = await _execute(pipeline, lambda: pipeline.resume(run_id))
    except PipelineError as e:
        console.print(f"[bold red]Resume failed:[/bold red] {e.message}")
        sys.exit(1)

    _print_run(result)
    if result.status == "failed":
        sys.exit(1)


@cli.command(name='check-compliance')
@click.option('--platform', 'platforms', multiple=True, required=True, type=click.Choice(PLATFORM_CHOICES), help='Target platform (repeatable)')
@click.option('--ean', help='EAN/GTIN barcode')
@click.option('--lucid', 'lucid_number', help='LUCID packaging registration number')
@click.option('--weee', 'weee_number', help='WEEE registration number')
@click.option('--category', 'product_category', help='Product category')
@click.option('--return-address', is_flag=True, help='German return address configured')
@click.option('--impressum', is_flag=True, help='Impressum configured')
@click.option('--rfc', 'rfc_tax_id', help='RFC tax id')
@click.option('--warranty', is_flag=True, help='Warranty information available')
@click.option('--json', 'as_json', is_flag=True, help='Print the report as JSON')
@click.option('--strict', is_flag=True, help='Exit non-zero when issues are found')
def check_compliance(
    platforms: tuple[str, ...],
    ean: Optional[str],
    lucid_number: Optional[str],
    weee_number: Optional[str],
    product_category: Optional[str],
    return_address: bool,
    impressum: bool,
    rfc_tax_id: Optional[str],
    warranty: bool,
    as_json: bool,
    strict: bool,
):
    """Evaluate platform compliance rules for a product."""
    attributes = ProductComplianceAttributes(
        ean=ean,
        lucid_number=lucid_number,
        weee_number=weee_number,
        product_category=product_category,
        has_german_return_address=return_address,
        has_impressum=impressum,
        rfc_tax_id=rfc_tax_id,
        has_warranty_info=warranty,
    )
    report = ComplianceChecker().check_platforms(platforms, attributes)

    if as_json:
        console.print_json(report.model_dump_json())
    else:
        for platform, check in report.platform_checks.items():
            table = Table(title=f"{lookup(platform).display_name}")
            table.add_column("Rule")
            table.add_column("Severity")
            table.add_column("Status")
            table.add_column("Message")
            for rule in check.global_compliance:
                table.add_row(rule.name, rule.severity, _styled(rule.status), rule.message)
            console.print(table)

        for warning in report.warnings:
            console.print(f"[yellow]![/yellow] {warning}")
        console.print(Panel.fit(
            f"Compliance score: [bold]{report.compliance_score}[/bold]\n"
            f"Issues: [red]{report.total_issues}[/red]  Warnings: [yellow]{report.total_warnings}[/yellow]"
        ))

    if strict and report.total_issues:
        sys.exit(1)


@cli.command(name='validate-ean')
@click.argument('code')
def validate_ean_command(code: str):
    """
    Validate an EAN-13 barcode.

    CODE: 13-digit barcode (spaces and hyphens are ignored)
    """
    result = validate_ean(code)
    if result.valid:
        console.print(f"[green]✓[/green] {result.normalized} is a valid EAN-13")
    else:
        console.print(f"[red]✗[/red] {result.error}")
        sys.exit(1)


@cli.command()
def platforms():
    """List supported platforms and their key requirements."""
    table = Table(title="Supported Platforms")
    table.add_column("Platform")
    table.add_column("Name")
    table.add_column("Locale")
    table.add_column("Title max", justify="right")
    table.add_column("Images")
    table.add_column("Compliance")

    for platform in supported_platforms():
        req = lookup(platform)
        images = req.image_requirements
        table.add_row(
            req.platform,
            req.display_name,
            req.locale,
            str(req.title_max_length),
            f"{images.min_quantity}+ @ {images.min_pixels}px",
            ", ".join(req.global_compliance),
        )
    console.print(table)


@cli.command()
@click.argument('request_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--output', type=click.Path(dir_okay=False), help='Write the HTML to this file')
@click.option('--verbose', is_flag=True, help='Detailed logging')
@async_command
async def generate(request_file: str, output: Optional[str], verbose: bool):
    """
    Generate listing content from a content-section request.

    REQUEST_FILE: JSON file with product, platform and optional section,
    sections or consolidate action.
    """
    setup_logger(verbose)
    settings = _load_settings()
    payload = _read_json(request_file)

    if settings.has_generation_backend():
        generator = ClaudeContentGenerator(settings=settings)
    else:
        generator = TemplateContentGenerator()

    try:
        response = await ContentService(generator).handle_payload(payload)
    except ValidationError as e:
        console.print(f"[bold red]Invalid request ({e.code}):[/bold red] {e.message}")
        sys.exit(2)
    finally:
        await generator.close()

    if response.html is not None:
        html = response.html
    else:
        html = "\n".join(response.sections.values())

    if output:
        Path(output).write_text(html, encoding="utf-8")
        console.print(f"[green]✓[/green] Wrote {len(html)} characters to {output}")
    else:
        console.print(html, markup=False, highlight=False)

    if response.fallback_sections:
        console.print(f"[yellow]Fallback content used for: {', '.join(response.fallback_sections)}[/yellow]")


@cli.command(name='validate-setup')
def validate_setup():
    """Check API keys and environment configuration."""
    console.print("[bold]Validating Setup...[/bold]")

    settings = _load_settings()

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Check")
    table.add_column("Status")
    table.add_column("Details")

    if settings.anthropic_api_key is not None:
        key = settings.anthropic_api_key.get_secret_value()
        table.add_row("Anthropic API Key", "[green]Pass[/green]", f"configured ({len(key)} chars)")
        table.add_row("Generator", "[blue]Info[/blue]", f"claude ({settings.claude_model})")
    else:
        table.add_row("Anthropic API Key", "[yellow]Missing[/yellow]", "template generator will be used")
        table.add_row("Generator", "[blue]Info[/blue]", "template")

    table.add_row("Review Mode", "[blue]Info[/blue]", settings.effective_review_mode)
    table.add_row("Event Webhook", "[blue]Info[/blue]", settings.event_webhook_url or "not configured")
    table.add_row("State Dir", "[green]Pass[/green]", str(settings.state_dir))
    table.add_row("Output Dir", "[green]Pass[/green]", str(settings.output_dir))
    table.add_row("Environment", "[blue]Info[/blue]", settings.app_env)

    console.print(table)

    if settings.is_production and settings.effective_review_mode != "manual":
        console.print("\n[yellow]Warning: production runs are auto-approved (REVIEW_MODE=auto).[/yellow]")


if __name__ == "__main__":
    cli()
