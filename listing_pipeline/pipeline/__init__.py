"""Pipeline module for the Marketplace Listing Pipeline."""

from listing_pipeline.pipeline.persistence import (
    StatePersistence,
    InMemoryStatePersistence,
    JsonFileStatePersistence,
)
from listing_pipeline.pipeline.publisher import PublishAck, PublishError, Publisher, SimulatedPublisher
from listing_pipeline.pipeline.review import ReviewGate, ReviewTimeoutError
from listing_pipeline.pipeline.sections import InvalidSectionTransition, SectionStateStore
from listing_pipeline.pipeline.orchestrator import (
    ContentPipeline,
    PipelineError,
    StepTimeoutError,
    StepExecutionError,
    RunNotFoundError,
    ReviewRejectedError,
    PipelineStateDict,
    ProgressTracker,
    new_pipeline_id,
    run_pipeline,
)
from listing_pipeline.pipeline.launcher import PipelineLauncher

__all__ = [
    "ContentPipeline",
    "PipelineLauncher",
    "PipelineError",
    "StepTimeoutError",
    "StepExecutionError",
    "RunNotFoundError",
    "ReviewRejectedError",
    "PipelineStateDict",
    "ProgressTracker",
    "StatePersistence",
    "InMemoryStatePersistence",
    "JsonFileStatePersistence",
    "Publisher",
    "PublishAck",
    "PublishError",
    "SimulatedPublisher",
    "ReviewGate",
    "ReviewTimeoutError",
    "SectionStateStore",
    "InvalidSectionTransition",
    "new_pipeline_id",
    "run_pipeline",
]
