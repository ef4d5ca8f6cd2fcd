import asyncio
import re
import pytest
from unittest.mock import AsyncMock, MagicMock

from listing_pipeline.generators.base import GenerationError
from listing_pipeline.models.schemas import ErrorType, ReviewOutcome, StepId
from listing_pipeline.pipeline.orchestrator import (
    FINALIZE_NODE,
    ContentPipeline,
    PipelineError,
    ProgressTracker,
    ReviewRejectedError,
    RunNotFoundError,
    StepExecutionError,
    StepTimeoutError,
    new_pipeline_id,
    with_retry,
    with_timeout,
)
from listing_pipeline.pipeline.publisher import PublishError


def test_pipeline_error_defaults():
    err = PipelineError("boom")
    assert err.message == "boom"
    assert err.error_type == ErrorType.INTERNAL_ERROR
    assert err.details == {}
    assert not err.recoverable


def test_pipeline_error_accepts_string_type():
    assert PipelineError("x", error_type="timeout_error").error_type == ErrorType.TIMEOUT_ERROR


def test_step_timeout_error():
    err = StepTimeoutError("banner-generation", 30)
    assert str(err) == "Step 'banner-generation' timed out after 30 seconds"
    assert err.error_type == ErrorType.TIMEOUT_ERROR
    assert err.recoverable
    assert err.details == {"step": "banner-generation", "timeout": 30}


def test_step_execution_error():
    err = StepExecutionError("seo-optimization", "bad output", {"type": "list"})
    assert err.details == {"step": "seo-optimization", "type": "list"}
    assert err.error_type == ErrorType.INTERNAL_ERROR


def test_run_not_found_error():
    err = RunNotFoundError("pipeline-x")
    assert str(err) == "No saved state found for run_id: pipeline-x"
    assert err.error_type == ErrorType.NOT_FOUND_ERROR


def test_review_rejected_error():
    outcome = ReviewOutcome(status="rejected", reviewer="anna@example.com", comments="Wrong hero image")
    err = ReviewRejectedError("pipeline-x", outcome)
    assert str(err) == "Content rejected by anna@example.com"
    assert err.error_type == ErrorType.REVIEW_ERROR
    assert err.details["comments"] == "Wrong hero image"
    assert err.run_id == "pipeline-x"


def test_new_pipeline_id():
    pid = new_pipeline_id("OLED65C37LA")
    assert re.fullmatch(r"pipeline-OLED65C37LA-\d{13}-[0-9a-f]{8}", pid)
    assert new_pipeline_id("OLED65C37LA") != pid


@pytest.mark.asyncio
async def test_with_timeout_raises_step_timeout():
    @with_timeout(0.01, name="slow-step")
    async def slow():
        await asyncio.sleep(1)

    with pytest.raises(StepTimeoutError, match="slow-step"):
        await slow()


@pytest.mark.asyncio
async def test_with_timeout_none_disables():
    @with_timeout(None)
    async def quick():
        await asyncio.sleep(0.01)
        return "done"

    assert await quick() == "done"


@pytest.mark.asyncio
async def test_with_retry_retries_retryable_publish_errors():
    func = AsyncMock(side_effect=[PublishError("busy", "amazon"), PublishError("busy", "amazon"), "ok"])

    result = await with_retry(max_attempts=3, min_wait=0)(func)()

    assert result == "ok"
    assert func.await_count == 3


@pytest.mark.asyncio
async def test_with_retry_reraises_after_last_attempt():
    func = AsyncMock(side_effect=PublishError("busy", "amazon"))

    with pytest.raises(PublishError, match="busy"):
        await with_retry(max_attempts=2, min_wait=0)(func)()
    assert func.await_count == 2


@pytest.mark.asyncio
async def test_with_retry_skips_non_retryable():
    func = AsyncMock(side_effect=PublishError("rejected", "amazon", retryable=False))
    with pytest.raises(PublishError):
        await with_retry(max_attempts=3, min_wait=0)(func)()
    assert func.await_count == 1

    other = AsyncMock(side_effect=ValueError("bug"))
    with pytest.raises(ValueError):
        await with_retry(max_attempts=3, min_wait=0)(other)()
    assert other.await_count == 1


def test_progress_weights_total_100():
    assert sum(ProgressTracker.STEP_WEIGHTS.values()) == 100
    assert set(ProgressTracker.STEP_WEIGHTS) == {s.value for s in StepId} | {FINALIZE_NODE}


def test_progress_tracker():
    callback = MagicMock()
    tracker = ProgressTracker(callback)

    assert tracker.mark_complete("asset-verification") == 10
    assert tracker.mark_complete("asset-verification") == 10
    assert tracker.mark_complete("compliance-check") == 25
    callback.assert_called_with(25, "Completed: compliance-check")


def test_progress_callback_errors_are_contained():
    tracker = ProgressTracker(MagicMock(side_effect=RuntimeError("ui gone")))
    assert tracker.mark_complete("distribution") == 10


def test_error_categorisation():
    assert ContentPipeline._categorize(StepTimeoutError("x", 1)) == "timeout_error"
    assert ContentPipeline._categorize(GenerationError("down")) == "generation_error"
    assert ContentPipeline._categorize(ValueError("bad")) == "validation_error"
    assert ContentPipeline._categorize(ConnectionError("reset")) == "network_error"
    assert ContentPipeline._categorize(RuntimeError("odd")) == "unknown_error"


def test_generator_requires_initialisation(mock_settings):
    pipeline = ContentPipeline(settings=mock_settings)
    with pytest.raises(RuntimeError, match="not initialized"):
        _ = pipeline.generator


@pytest.mark.asyncio
async def test_template_generator_without_api_key(mock_settings):
    async with ContentPipeline(settings=mock_settings) as pipeline:
        assert pipeline.generator.name == "template"
