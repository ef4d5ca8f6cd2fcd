"""
Pipeline orchestrator using LangGraph.

Coordinates the eight-step listing pipeline with state persistence, fault
isolation, pause/resume and human review.

Features:
    - Stateful execution with LangGraph StateGraph (one node per step)
    - Step boundary: skip handling, timeouts, categorised failures, events
    - Pause after the current step and resume from the next un-started step
    - Human review gate (auto or manual approval)
    - Progress tracking and structured logging
    - Testing hooks for step-by-step execution and mocked steps
"""

import asyncio
import time
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Awaitable, Callable, Literal, Optional, TypedDict
from uuid import uuid4

from langgraph.graph import END, StateGraph
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from listing_pipeline.compliance.checker import ComplianceChecker
from listing_pipeline.config.settings import Settings, get_settings
from listing_pipeline.generators.base import (
    ContentGenerator,
    GenerationError,
    GenerationOutcome,
    generate_with_fallback,
)
from listing_pipeline.generators.claude_generator import ClaudeContentGenerator
from listing_pipeline.generators.templates import TemplateContentGenerator, build_fallback_listing
from listing_pipeline.models.schemas import (
    STEP_ORDER,
    ErrorType,
    PipelineEvent,
    PipelineRun,
    PipelineTrigger,
    ReviewMode,
    ReviewOutcome,
    RunStatus,
    SectionKey,
    StepId,
    StepStatus,
    utcnow,
)
from listing_pipeline.pipeline import steps
from listing_pipeline.pipeline.persistence import InMemoryStatePersistence, StatePersistence
from listing_pipeline.pipeline.publisher import PublishError, Publisher, SimulatedPublisher
from listing_pipeline.pipeline.review import ReviewGate
from listing_pipeline.services.event_service import (
    PIPELINE_COMPLETED_EVENT,
    STEP_COMPLETED_EVENT,
    EventDeliveryError,
    EventSink,
    create_event_sink,
)
from listing_pipeline.services.validation_service import ValidationService
from listing_pipeline.utils.formatters import RunReportFormatter
from listing_pipeline.utils.logger import LogContext, get_logger
from listing_pipeline.utils.retry import ErrorHandler

logger = get_logger(__name__)


# =============================================================================
# Constants and Configuration
# =============================================================================

FINALIZE_NODE = "finalize"
APPROVED_REVIEW_STATUSES = frozenset({"approved", "auto-approved"})

# Human review may wait indefinitely for a decision; its own timeout applies
UNTIMED_STEPS = frozenset({StepId.HUMAN_REVIEW.value})

StepWork = Callable[[PipelineRun], Awaitable[tuple[StepStatus, dict[str, Any]]]]
StepMock = Callable[[PipelineRun], Awaitable[dict[str, Any]]]


def new_pipeline_id(product_id: str) -> str:
    """``pipeline-{productId}-{epoch_ms}-{suffix}``."""
    return f"pipeline-{product_id}-{int(time.time() * 1000)}-{uuid4().hex[:8]}"


# =============================================================================
# Pipeline State Definition (TypedDict for LangGraph)
# =============================================================================

class PipelineStateDict(TypedDict, total=False):
    """
    Graph state passed between nodes.

    ``run`` is the JSON-serialised ``PipelineRun``; every node validates it,
    updates one step and hands back the new serialisation.
    """
    run_id: str
    run: dict


# =============================================================================
# Error Classes
# =============================================================================

class PipelineError(Exception):
    """Base exception for pipeline errors."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.INTERNAL_ERROR,
        details: dict | None = None,
        recoverable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.error_type = ErrorType(error_type)
        self.details = details or {}
        self.recoverable = recoverable


class StepTimeoutError(PipelineError):
    def __init__(self, step_id: str, timeout_seconds: float):
        super().__init__(
            message=f"Step '{step_id}' timed out after {timeout_seconds} seconds",
            error_type=ErrorType.TIMEOUT_ERROR,
            details={"step": step_id, "timeout": timeout_seconds},
            recoverable=True,
        )


class StepExecutionError(PipelineError):
    """Unrecoverable problem inside a step's own logic."""

    def __init__(self, step_id: str, message: str, details: dict | None = None):
        super().__init__(
            message=message,
            error_type=ErrorType.INTERNAL_ERROR,
            details={"step": step_id, **(details or {})},
        )


class RunNotFoundError(PipelineError):
    def __init__(self, run_id: str):
        super().__init__(
            message=f"No saved state found for run_id: {run_id}",
            error_type=ErrorType.NOT_FOUND_ERROR,
            details={"run_id": run_id},
        )


class ReviewRejectedError(PipelineError):
    def __init__(self, run_id: str, outcome: ReviewOutcome):
        super().__init__(
            message=f"Content rejected by {outcome.reviewer}",
            error_type=ErrorType.REVIEW_ERROR,
            details=outcome.model_dump(mode="json"),
        )
        self.run_id = run_id


# =============================================================================
# Decorators for Step Execution
# =============================================================================

def with_timeout(timeout_seconds: Optional[float], name: Optional[str] = None):
    """Decorator to add a timeout to async functions; ``None`` disables it."""
    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            if timeout_seconds is None:
                return await func(*args, **kwargs)
            try:
                return await asyncio.wait_for(func(*args, **kwargs), timeout=timeout_seconds)
            except asyncio.TimeoutError:
                raise StepTimeoutError(name or func.__name__, timeout_seconds) from None
        return wrapper
    return decorator


def _is_retryable_publish(error: BaseException) -> bool:
    return isinstance(error, PublishError) and error.retryable


def with_retry(max_attempts: int = 3, min_wait: float = 1, max_wait: float = 10):
    """Decorator to retry retryable publish failures with exponential backoff."""
    def decorator(func: Callable):
        @wraps(func)
        @retry(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=min_wait, min=min_wait, max=max_wait),
            retry=retry_if_exception(_is_retryable_publish),
            reraise=True,
        )
        async def wrapper(*args, **kwargs):
            return await func(*args, **kwargs)
        return wrapper
    return decorator


def track_timing(func: Callable):
    """Decorator to log step work start, duration and failure."""
    @wraps(func)
    async def wrapper(self, run: PipelineRun):
        start_time = time.time()
        step_name = func.__name__.strip("_").replace("_step", "")

        logger.info(f"Starting step: {step_name}", run_id=run.pipeline_id)

        try:
            result = await func(self, run)
        except Exception as e:
            logger.error(
                f"Step failed: {step_name}",
                run_id=run.pipeline_id,
                duration_ms=int((time.time() - start_time) * 1000),
                error=str(e),
            )
            raise

        logger.info(
            f"Completed step: {step_name}",
            run_id=run.pipeline_id,
            duration_ms=int((time.time() - start_time) * 1000),
            status=getattr(result[0], "value", result[0]),
        )
        return result

    return wrapper


# =============================================================================
# Progress Tracker
# =============================================================================

class ProgressTracker:
    """Tracks and reports pipeline progress."""

    STEP_WEIGHTS = {
        StepId.ASSET_VERIFICATION.value: 10,
        StepId.SPEC_VERIFICATION.value: 10,
        StepId.COMPLIANCE_CHECK.value: 15,
        StepId.BANNER_GENERATION.value: 15,
        StepId.THUMBNAIL_GENERATION.value: 10,
        StepId.SEO_OPTIMIZATION.value: 15,
        StepId.HUMAN_REVIEW.value: 10,
        StepId.DISTRIBUTION.value: 10,
        FINALIZE_NODE: 5,
    }

    def __init__(self, callback: Optional[Callable[[int, str], None]] = None):
        """
        Initialize progress tracker.

        Args:
            callback: Optional callback(progress_percent, message) for progress updates
        """
        self.callback = callback
        self.completed_steps: list[str] = []

    def mark_complete(self, step: str) -> int:
        """Mark a step as complete and return new progress percentage."""
        if step not in self.completed_steps:
            self.completed_steps.append(step)
        progress = self.get_progress()

        if self.callback:
            try:
                self.callback(progress, f"Completed: {step}")
            except Exception as e:
                logger.warning("Progress callback failed", step=step, error=str(e))

        return progress

    def get_progress(self) -> int:
        """Get current progress percentage."""
        return sum(self.STEP_WEIGHTS.get(s, 0) for s in self.completed_steps)


@dataclass
class RunControl:
    """Mutable control flags for one active run."""

    progress: ProgressTracker
    pause_requested: bool = False
    skip_requests: set[str] = field(default_factory=set)


# =============================================================================
# Main Pipeline Class
# =============================================================================

class ContentPipeline:
    """
    LangGraph-based pipeline for marketplace listing content.

    Runs asset and spec verification, compliance, banner, thumbnail and SEO
    generation, human review and distribution for every target platform.
    A failing step is recorded and the run moves on to the next step.

    Example:
        >>> async with ContentPipeline() as pipeline:
        ...     run = await pipeline.run({"productId": "OLED65C37LA", ...})
        ...     print(run.summary())
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        generator: Optional[ContentGenerator] = None,
        fallback_generator: Optional[ContentGenerator] = None,
        persistence: Optional[StatePersistence] = None,
        event_sink: Optional[EventSink] = None,
        publisher: Optional[Publisher] = None,
        review_gate: Optional[ReviewGate] = None,
        checker: Optional[ComplianceChecker] = None,
        progress_callback: Optional[Callable[[int, str], None]] = None,
        publish_attempts: int = 3,
        publish_min_wait: float = 1.0,
    ):
        """
        Initialize the pipeline.

        Args:
            settings: Application settings (uses defaults if not provided)
            generator: Content generator for steps 4-6 (Claude when an API key
                is configured, templates otherwise)
            fallback_generator: Deterministic generator used on generation errors
            persistence: State persistence implementation
            event_sink: Destination for pipeline events
            publisher: Marketplace publisher for the distribution step
            review_gate: Human review signals
            checker: Compliance checker
            progress_callback: Callback for progress updates
            publish_attempts: Attempts per platform publish call
            publish_min_wait: Initial backoff between publish attempts
        """
        self.settings = settings or get_settings()
        self.persistence = persistence or InMemoryStatePersistence()
        self.event_sink = event_sink or create_event_sink(self.settings.event_webhook_url)
        self.publisher = publisher or SimulatedPublisher(self.settings.publish_url_template)
        self.review_gate = review_gate or ReviewGate(
            auto_reviewer=self.settings.auto_reviewer,
            auto_approve_delay=self.settings.review_auto_approve_delay,
        )
        self.checker = checker or ComplianceChecker()
        self.progress_callback = progress_callback
        self.publish_attempts = publish_attempts
        self.publish_min_wait = publish_min_wait

        # Generators (initialized lazily or provided)
        self._generator = generator
        self.fallback_generator = fallback_generator or TemplateContentGenerator()

        # Other services
        self.validator = ValidationService()
        self.formatter = RunReportFormatter()

        self._step_work: dict[str, StepWork] = {
            StepId.ASSET_VERIFICATION.value: self._asset_verification_step,
            StepId.SPEC_VERIFICATION.value: self._spec_verification_step,
            StepId.COMPLIANCE_CHECK.value: self._compliance_check_step,
            StepId.BANNER_GENERATION.value: self._banner_generation_step,
            StepId.THUMBNAIL_GENERATION.value: self._thumbnail_generation_step,
            StepId.SEO_OPTIMIZATION.value: self._seo_optimization_step,
            StepId.HUMAN_REVIEW.value: self._human_review_step,
            StepId.DISTRIBUTION.value: self._distribution_step,
        }

        # Build graph
        self._graph = self._build_graph()

        # Per-run control objects for active runs
        self._controls: dict[str, RunControl] = {}

        # Testing hooks
        self._mock_steps: dict[str, StepMock] = {}

    async def __aenter__(self):
        """Async context manager entry."""
        await self._initialize_services()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def _initialize_services(self) -> None:
        """Initialize required services."""
        if self._generator is None:
            if self.settings.has_generation_backend():
                self._generator = ClaudeContentGenerator(settings=self.settings)
            else:
                logger.info("No generation backend configured, using template generator")
                self._generator = TemplateContentGenerator()

    @property
    def generator(self) -> ContentGenerator:
        """Get the content generator."""
        if self._generator is None:
            raise RuntimeError("Pipeline not initialized. Use async context manager.")
        return self._generator

    def _build_graph(self):
        """
        Build the LangGraph state machine.

        Graph structure:
            asset-verification -> spec-verification -> ... -> distribution -> finalize -> END

        After every step except distribution a conditional edge routes to END
        when a pause was requested for the run.
        """
        graph = StateGraph(PipelineStateDict)

        for step_id in STEP_ORDER:
            graph.add_node(step_id, self._make_step_node(step_id))
        graph.add_node(FINALIZE_NODE, self._finalize_node)

        graph.set_entry_point(STEP_ORDER[0])

        for current, following in zip(STEP_ORDER, STEP_ORDER[1:]):
            graph.add_conditional_edges(
                current,
                self._route_after_step,
                {"continue": following, "halt": END},
            )
        graph.add_edge(STEP_ORDER[-1], FINALIZE_NODE)
        graph.add_edge(FINALIZE_NODE, END)

        return graph.compile()

    def _route_after_step(self, state: PipelineStateDict) -> Literal["continue", "halt"]:
        control = self._controls.get(state.get("run_id", ""))
        if control is not None and control.pause_requested:
            logger.info("Pause requested, halting run", run_id=state.get("run_id"))
            return "halt"
        return "continue"

    def _make_step_node(self, step_id: str):
        async def node(state: PipelineStateDict) -> dict[str, Any]:
            run = PipelineRun.model_validate(state["run"])
            run = await self._execute_step(run, step_id)
            return {"run": run.model_dump(mode="json")}

        node.__name__ = f"{step_id.replace('-', '_')}_node"
        return node

    # =========================================================================
    # Step Boundary
    # =========================================================================

    def _control(self, run: PipelineRun) -> RunControl:
        control = self._controls.get(run.pipeline_id)
        if control is None:
            control = RunControl(progress=self._tracker_for(run))
            self._controls[run.pipeline_id] = control
        return control

    def _tracker_for(self, run: PipelineRun) -> ProgressTracker:
        tracker = ProgressTracker(self.progress_callback)
        tracker.completed_steps = [s.step_id for s in run.steps if s.is_terminal]
        if run.completion_emitted:
            tracker.completed_steps.append(FINALIZE_NODE)
        return tracker

    async def _execute_step(self, run: PipelineRun, step_id: str) -> PipelineRun:
        """
        Run one step inside its boundary.

        Terminal steps are left untouched. Any exception raised by the step's
        work is recorded on the step; it is never re-raised.
        """
        step = run.get_step(step_id)
        if step.is_terminal:
            logger.debug("Skipping step (already terminal)", run_id=run.pipeline_id, step=step_id)
            return run

        control = self._control(run)
        if step_id in control.skip_requests or step_id in run.skip_requests:
            control.skip_requests.discard(step_id)
            run.skip_requests = [s for s in run.skip_requests if s != step_id]
            now = utcnow()
            run.replace_step(step.model_copy(update={
                "status": StepStatus.SKIPPED.value,
                "started_at": now,
                "completed_at": now,
                "duration_ms": 0,
                "output": {"reason": "Skipped on request"},
            }))
            logger.info("Step skipped", run_id=run.pipeline_id, step=step_id)
            return await self._close_step(run, step_id, control)

        started_at = utcnow()
        run.status = RunStatus.RUNNING.value
        if step_id == StepId.HUMAN_REVIEW.value and self.settings.effective_review_mode == ReviewMode.MANUAL.value:
            run.status = RunStatus.AWAITING_REVIEW.value
        run.replace_step(step.model_copy(update={
            "status": StepStatus.IN_PROGRESS.value,
            "started_at": started_at,
        }))
        await self._save(run)

        timeout = None if step_id in UNTIMED_STEPS else self.settings.step_timeout_seconds
        start = time.monotonic()
        error: Optional[str] = None
        error_type: Optional[str] = None
        try:
            if step_id in self._mock_steps:
                mock = self._mock_steps[step_id]
                output = await with_timeout(timeout, step_id)(mock)(run)
                if not isinstance(output, dict):
                    raise StepExecutionError(
                        step_id,
                        f"Mocked step returned {type(output).__name__}, expected dict",
                    )
                status = StepStatus.COMPLETED
            else:
                status, output = await with_timeout(timeout, step_id)(self._step_work[step_id])(run)
        except Exception as e:
            status = StepStatus.FAILED
            error = str(e)
            error_type = self._categorize(e)
            output = e.details if isinstance(e, PipelineError) and e.details else None
            logger.error(
                "Step failed",
                run_id=run.pipeline_id,
                step=step_id,
                error=error,
                error_type=error_type,
            )

        run.status = RunStatus.RUNNING.value
        run.replace_step(run.get_step(step_id).model_copy(update={
            "status": StepStatus(status).value,
            "completed_at": utcnow(),
            "duration_ms": int((time.monotonic() - start) * 1000),
            "output": output,
            "error": error,
            "error_type": error_type,
        }))
        return await self._close_step(run, step_id, control)

    async def _close_step(self, run: PipelineRun, step_id: str, control: RunControl) -> PipelineRun:
        step = run.get_step(step_id)
        run.progress_percent = control.progress.mark_complete(step_id)
        run.updated_at = utcnow()
        await self._emit(run, PipelineEvent(
            name=STEP_COMPLETED_EVENT,
            data={
                "pipeline_id": run.pipeline_id,
                "step_id": step.step_id,
                "name": step.name,
                "status": step.status,
                "duration_ms": step.duration_ms,
                "error": step.error,
            },
        ))
        await self._save(run)
        return run

    @staticmethod
    def _categorize(error: Exception) -> str:
        if isinstance(error, PipelineError):
            return error.error_type.value
        if isinstance(error, GenerationError):
            return ErrorType.GENERATION_ERROR.value
        return ErrorHandler.categorize_error(error).lower()

    async def _emit(self, run: PipelineRun, event: PipelineEvent) -> None:
        try:
            await self.event_sink.emit(event)
        except EventDeliveryError as e:
            logger.error("Event delivery failed", run_id=run.pipeline_id, event=event.name, error=str(e))
            run.errors.append(f"Event delivery failed ({event.name}): {e}")

    async def _save(self, run: PipelineRun) -> None:
        run.updated_at = utcnow()
        await self.persistence.save_state(run.pipeline_id, run)

    # =========================================================================
    # Step Implementations
    # =========================================================================

    @track_timing
    async def _asset_verification_step(self, run: PipelineRun) -> tuple[StepStatus, dict[str, Any]]:
        product = run.trigger.resolved_product()
        return StepStatus.COMPLETED, steps.verify_assets(product, run.trigger.platforms)

    @track_timing
    async def _spec_verification_step(self, run: PipelineRun) -> tuple[StepStatus, dict[str, Any]]:
        product = run.trigger.resolved_product()
        return StepStatus.COMPLETED, steps.verify_specs(product, self.settings.min_spec_fields)

    @track_timing
    async def _compliance_check_step(self, run: PipelineRun) -> tuple[StepStatus, dict[str, Any]]:
        """Status is ``warning`` whenever any platform reports an issue; the run continues."""
        trigger = run.trigger
        report = self.checker.check_platforms(
            trigger.platforms,
            trigger.resolved_compliance(),
            trigger.resolved_product(),
        )
        status = StepStatus.COMPLETED if report.total_issues == 0 else StepStatus.WARNING
        return status, report.model_dump(mode="json")

    async def _generate_for_platforms(
        self,
        run: PipelineRun,
        section: SectionKey,
    ) -> dict[str, GenerationOutcome]:
        """Generate one section for every platform concurrently, with fallback."""
        product = run.trigger.resolved_product()
        semaphore = asyncio.Semaphore(self.settings.max_concurrent_generations)

        async def one(platform: str) -> GenerationOutcome:
            async with semaphore:
                with LogContext(platform=platform):
                    return await generate_with_fallback(
                        self.generator,
                        self.fallback_generator,
                        product,
                        platform,
                        section,
                    )

        platforms = list(run.trigger.platforms)
        outcomes = await asyncio.gather(*(one(p) for p in platforms))
        return dict(zip(platforms, outcomes))

    @staticmethod
    def _outcome_fields(outcome: GenerationOutcome) -> dict[str, Any]:
        return {
            "content_length": len(outcome.html),
            "used_fallback": outcome.used_fallback,
            "error": outcome.error,
            "html": outcome.html,
        }

    @track_timing
    async def _banner_generation_step(self, run: PipelineRun) -> tuple[StepStatus, dict[str, Any]]:
        outcomes = await self._generate_for_platforms(run, SectionKey.HERO)
        product_id = run.trigger.product_id
        platforms = {
            platform: {
                "banner_url": steps.banner_url(self.settings.asset_base_url, product_id, platform),
                **self._outcome_fields(outcome),
            }
            for platform, outcome in outcomes.items()
        }
        return StepStatus.COMPLETED, {
            "banners_created": len(platforms) * len(steps.BANNER_FORMATS),
            "formats": list(steps.BANNER_FORMATS),
            "variants": list(steps.BANNER_VARIANTS),
            "platforms": platforms,
            "fallback_platforms": [p for p, o in outcomes.items() if o.used_fallback],
        }

    @track_timing
    async def _thumbnail_generation_step(self, run: PipelineRun) -> tuple[StepStatus, dict[str, Any]]:
        outcomes = await self._generate_for_platforms(run, SectionKey.GALLERY)
        product_id = run.trigger.product_id
        platforms = {
            platform: {
                "thumbnails": steps.thumbnail_urls(self.settings.asset_base_url, product_id, platform),
                **self._outcome_fields(outcome),
            }
            for platform, outcome in outcomes.items()
        }
        return StepStatus.COMPLETED, {
            "thumbnails_created": len(platforms) * len(steps.THUMBNAIL_SIZES),
            "sizes": [f"{size}x{size}" for size in steps.THUMBNAIL_SIZES],
            "platforms": platforms,
            "fallback_platforms": [p for p, o in outcomes.items() if o.used_fallback],
        }

    @track_timing
    async def _seo_optimization_step(self, run: PipelineRun) -> tuple[StepStatus, dict[str, Any]]:
        product = run.trigger.resolved_product()
        outcomes = await self._generate_for_platforms(run, SectionKey.FEATURES)
        platforms = {
            platform: {
                **steps.build_platform_seo(product, platform),
                **self._outcome_fields(outcome),
            }
            for platform, outcome in outcomes.items()
        }
        # Listing text from raw product fields stands in for failed generations
        for platform, outcome in outcomes.items():
            if outcome.used_fallback:
                listing = build_fallback_listing(product, platform)
                platforms[platform]["fallback_listing"] = listing.model_dump(mode="json")
        return StepStatus.COMPLETED, {
            "platforms": platforms,
            "keywords_added": sum(len(p["keywords"]) for p in platforms.values()),
            "recommendations": steps.seo_recommendations(run.trigger.platforms),
            "fallback_platforms": [p for p, o in outcomes.items() if o.used_fallback],
        }

    @track_timing
    async def _human_review_step(self, run: PipelineRun) -> tuple[StepStatus, dict[str, Any]]:
        """
        Wait for the review decision.

        Raises:
            ReviewRejectedError: If the reviewer rejected the content.
            ReviewTimeoutError: If no manual decision arrived in time.
        """
        mode = self.settings.effective_review_mode
        timeout = self.settings.review_timeout_seconds if mode == ReviewMode.MANUAL.value else None
        outcome = await self.review_gate.wait(run.pipeline_id, mode, timeout=timeout)
        if not outcome.approved:
            raise ReviewRejectedError(run.pipeline_id, outcome)
        return StepStatus.COMPLETED, outcome.model_dump(mode="json")

    def _review_approved(self, run: PipelineRun) -> bool:
        review = run.get_step(StepId.HUMAN_REVIEW)
        if review.status != StepStatus.COMPLETED.value or not review.output:
            return False
        return review.output.get("status") in APPROVED_REVIEW_STATUSES

    def _listing_content(self, run: PipelineRun, platform: str) -> dict[str, Any]:
        """Collect what earlier steps produced for one platform."""
        content: dict[str, Any] = {}
        for step_id, key in (
            (StepId.BANNER_GENERATION, "banner"),
            (StepId.THUMBNAIL_GENERATION, "thumbnails"),
            (StepId.SEO_OPTIMIZATION, "seo"),
        ):
            output = run.get_step(step_id).output or {}
            entry = output.get("platforms", {}).get(platform)
            if entry is not None:
                content[key] = entry
        return content

    @track_timing
    async def _distribution_step(self, run: PipelineRun) -> tuple[StepStatus, dict[str, Any]]:
        platforms = list(run.trigger.platforms)
        api_responses: dict[str, str] = {}
        published_urls: dict[str, str] = {}

        if not self._review_approved(run):
            logger.warning("Review not approved, withholding distribution", run_id=run.pipeline_id)
            api_responses = {p: "withheld" for p in platforms}
            return StepStatus.WARNING if platforms else StepStatus.COMPLETED, {
                "platforms_published": 0,
                "status": "withheld",
                "api_responses": api_responses,
                "published_urls": published_urls,
            }

        publish = with_retry(
            max_attempts=self.publish_attempts,
            min_wait=self.publish_min_wait,
        )(self.publisher.publish)

        async def one(platform: str):
            try:
                return await publish(platform, run.trigger.product_id, self._listing_content(run, platform))
            except PublishError as e:
                logger.error("Publish failed", run_id=run.pipeline_id, platform=platform, error=str(e))
                return e

        results = await asyncio.gather(*(one(p) for p in platforms))
        for platform, result in zip(platforms, results):
            if isinstance(result, PublishError):
                api_responses[platform] = "failed"
            else:
                api_responses[platform] = result.response
                published_urls[platform] = result.url

        failed = [p for p, r in api_responses.items() if r == "failed"]
        return StepStatus.WARNING if failed else StepStatus.COMPLETED, {
            "platforms_published": len(published_urls),
            "status": "partial" if failed else "success",
            "api_responses": api_responses,
            "published_urls": published_urls,
        }

    # =========================================================================
    # Finalize
    # =========================================================================

    async def _finalize_node(self, state: PipelineStateDict) -> dict[str, Any]:
        """Settle the run status and emit the single completion event."""
        run = PipelineRun.model_validate(state["run"])
        if run.completion_emitted:
            return {"run": state["run"]}

        summary = run.summary()
        run.status = RunStatus.FAILED.value if summary.failed_steps else RunStatus.COMPLETED.value
        run.completed_at = utcnow()
        run.progress_percent = self._control(run).progress.mark_complete(FINALIZE_NODE)

        await self._emit(run, PipelineEvent(
            name=PIPELINE_COMPLETED_EVENT,
            data={
                "pipeline_id": run.pipeline_id,
                "status": run.status,
                "summary": summary.model_dump(
                    include={"total_steps", "completed_steps", "failed_steps", "skipped_steps"}
                ),
            },
        ))
        run.completion_emitted = True

        if self.settings.save_run_reports:
            path = self.formatter.save_report(run, self.settings.output_dir, self.settings.report_format)
            logger.info("Run report saved", run_id=run.pipeline_id, path=str(path))

        await self._save(run)
        self.review_gate.discard(run.pipeline_id)

        logger.info(
            "Pipeline finished",
            run_id=run.pipeline_id,
            status=run.status,
            failed_steps=summary.failed_steps,
        )
        return {"run": run.model_dump(mode="json")}

    # =========================================================================
    # Public API
    # =========================================================================

    async def run(
        self,
        trigger: PipelineTrigger | dict[str, Any],
        run_id: Optional[str] = None,
    ) -> PipelineRun:
        """
        Execute the pipeline for a product.

        Args:
            trigger: Validated trigger or raw trigger payload
            run_id: Optional run ID (generated when not provided)

        Returns:
            PipelineRun with every step result in canonical order

        Raises:
            ValidationError: If a raw payload is invalid (no run is created)
        """
        if not isinstance(trigger, PipelineTrigger):
            trigger = self.validator.validate_trigger(trigger)

        await self._initialize_services()

        run = PipelineRun(
            pipeline_id=run_id or new_pipeline_id(trigger.product_id),
            trigger=trigger,
        )
        logger.info(
            "Starting pipeline run",
            run_id=run.pipeline_id,
            product_id=trigger.product_id,
            channel=trigger.channel,
            platforms=list(trigger.platforms),
        )
        return await self._execute(run)

    async def _execute(self, run: PipelineRun) -> PipelineRun:
        run_id = run.pipeline_id
        control = self._control(run)
        control.pause_requested = False
        run.status = RunStatus.RUNNING.value
        await self._save(run)

        try:
            with LogContext(run_id=run_id):
                final_state = await self._graph.ainvoke({
                    "run_id": run_id,
                    "run": run.model_dump(mode="json"),
                })
        finally:
            self._controls.pop(run_id, None)

        run = PipelineRun.model_validate(final_state["run"])
        if not run.completion_emitted:
            run.status = RunStatus.PAUSED.value
            await self._save(run)
            next_step = run.next_pending_step()
            logger.info(
                "Pipeline paused",
                run_id=run_id,
                next_step=next_step.step_id if next_step else None,
            )
        return run

    async def resume(self, run_id: str) -> PipelineRun:
        """
        Resume a paused or interrupted pipeline run.

        Terminal steps are not replayed; execution continues from the next
        un-started step.

        Raises:
            RunNotFoundError: If run_id not found
            PipelineError: If the run is still active
        """
        if run_id in self._controls:
            raise PipelineError(
                message=f"Run '{run_id}' is already running",
                error_type=ErrorType.VALIDATION_ERROR,
                details={"run_id": run_id},
            )

        run = await self.persistence.load_state(run_id)
        if run is None:
            raise RunNotFoundError(run_id)

        if run.completion_emitted:
            logger.info("Run already finished", run_id=run_id, status=run.status)
            return run

        # Steps interrupted mid-flight start over
        for step in run.steps:
            if step.status == StepStatus.IN_PROGRESS.value:
                run.replace_step(step.model_copy(update={"status": StepStatus.PENDING.value, "started_at": None}))

        next_step = run.next_pending_step()
        logger.info(
            "Resuming pipeline",
            run_id=run_id,
            from_step=next_step.step_id if next_step else FINALIZE_NODE,
        )
        await self._initialize_services()
        return await self._execute(run)

    async def pause(self, run_id: str) -> bool:
        """
        Request a pause; an active run stops after its current step.

        Returns:
            False if the run has already finished
        """
        control = self._controls.get(run_id)
        if control is not None:
            control.pause_requested = True
            logger.info("Pause requested", run_id=run_id)
            return True

        run = await self._load_or_raise(run_id)
        if run.completion_emitted:
            return False
        run.status = RunStatus.PAUSED.value
        await self._save(run)
        return True

    async def skip(self, run_id: str, step_id: Optional[StepId | str] = None) -> str:
        """
        Mark the next un-started step (or ``step_id``) to be skipped.

        Returns:
            The step that will be skipped

        Raises:
            RunNotFoundError: If run_id not found
            PipelineError: If the step already started
        """
        run = await self._load_or_raise(run_id)
        if step_id is None:
            pending = [s for s in run.steps if s.status == StepStatus.PENDING.value]
            if not pending:
                raise PipelineError(
                    message=f"Run '{run_id}' has no un-started step to skip",
                    error_type=ErrorType.VALIDATION_ERROR,
                )
            target = pending[0].step_id
        else:
            target = StepId(step_id).value
            if run.get_step(target).status != StepStatus.PENDING.value:
                raise PipelineError(
                    message=f"Step '{target}' has already started",
                    error_type=ErrorType.VALIDATION_ERROR,
                    details={"run_id": run_id, "step": target},
                )

        control = self._controls.get(run_id)
        if control is not None:
            control.skip_requests.add(target)
        else:
            if target not in run.skip_requests:
                run.skip_requests.append(target)
            await self._save(run)

        logger.info("Skip requested", run_id=run_id, step=target)
        return target

    async def approve(self, run_id: str, reviewer: str, comments: str = "") -> ReviewOutcome:
        """Deliver an approval to the human-review step of ``run_id``."""
        await self._load_or_raise(run_id)
        outcome = ReviewOutcome(status="approved", reviewer=reviewer, comments=comments)
        self.review_gate.submit(run_id, outcome)
        return outcome

    async def reject(self, run_id: str, reviewer: str, comments: str = "") -> ReviewOutcome:
        """Deliver a rejection; the human-review step fails and distribution is withheld."""
        await self._load_or_raise(run_id)
        outcome = ReviewOutcome(status="rejected", reviewer=reviewer, comments=comments)
        self.review_gate.submit(run_id, outcome)
        return outcome

    async def get_run(self, run_id: str) -> Optional[PipelineRun]:
        """Get the last persisted state of a run."""
        return await self.persistence.load_state(run_id)

    async def _load_or_raise(self, run_id: str) -> PipelineRun:
        run = await self.persistence.load_state(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        return run

    async def run_step(self, step_id: StepId | str, run: PipelineRun) -> PipelineRun:
        """
        Execute a single pipeline step (for testing/debugging).

        Args:
            step_id: Step to execute
            run: Current run state

        Returns:
            Updated run state
        """
        try:
            step_id = StepId(step_id).value
        except ValueError:
            raise ValueError(f"Unknown step: {step_id}") from None

        await self._initialize_services()
        try:
            return await self._execute_step(run.model_copy(deep=True), step_id)
        finally:
            self._controls.pop(run.pipeline_id, None)

    # =========================================================================
    # Testing Hooks
    # =========================================================================

    def mock_step(self, step_id: StepId | str, mock_func: StepMock) -> None:
        """
        Register a mock for a step (testing).

        Args:
            step_id: Step to mock
            mock_func: Async function taking the run and returning the step output
        """
        self._mock_steps[StepId(step_id).value] = mock_func

    def clear_mocks(self) -> None:
        """Clear all registered mocks."""
        self._mock_steps.clear()

    # =========================================================================
    # Cleanup
    # =========================================================================

    async def close(self) -> None:
        """Close generator and event sink connections."""
        if self._generator:
            await self._generator.close()
        await self.event_sink.close()


# =============================================================================
# Convenience Functions
# =============================================================================

async def run_pipeline(
    payload: PipelineTrigger | dict[str, Any],
    settings: Optional[Settings] = None,
    progress_callback: Optional[Callable[[int, str], None]] = None,
) -> PipelineRun:
    """
    Convenience function to run the pipeline once.

    Example:
        >>> run = await run_pipeline({"productId": "OLED65C37LA", "productTitle": "OLED evo C3",
        ...                           "channel": "3p", "platforms": ["mediamarkt"]})
        >>> run.status
        'completed'
    """
    async with ContentPipeline(
        settings=settings,
        progress_callback=progress_callback,
    ) as pipeline:
        return await pipeline.run(payload)
