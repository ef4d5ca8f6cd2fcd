"""
Background run launcher.

``start`` validates a trigger payload synchronously, so malformed requests
fail before any run exists, then schedules the run as an asyncio task and
returns its id straight away.
"""

import asyncio
from typing import Any, Optional

from listing_pipeline.models.schemas import PipelineRun
from listing_pipeline.pipeline.orchestrator import ContentPipeline, RunNotFoundError, new_pipeline_id
from listing_pipeline.services.validation_service import ValidationService
from listing_pipeline.utils.logger import get_logger

logger = get_logger(__name__)


class PipelineLauncher:
    def __init__(self, pipeline: ContentPipeline, validator: Optional[ValidationService] = None):
        self.pipeline = pipeline
        self.validator = validator or pipeline.validator
        self._tasks: dict[str, asyncio.Task[PipelineRun]] = {}

    def start(self, payload: dict[str, Any]) -> str:
        """
        Validate ``payload`` and enqueue a run.

        Must be called with a running event loop.

        Raises:
            ValidationError: If the payload is invalid
        """
        trigger = self.validator.validate_trigger(payload)
        pipeline_id = new_pipeline_id(trigger.product_id)
        task = asyncio.get_running_loop().create_task(
            self.pipeline.run(trigger, run_id=pipeline_id),
            name=pipeline_id,
        )
        task.add_done_callback(self._log_result)
        self._tasks[pipeline_id] = task
        logger.info("Pipeline enqueued", run_id=pipeline_id, product_id=trigger.product_id)
        return pipeline_id

    def _log_result(self, task: asyncio.Task) -> None:
        pipeline_id = task.get_name()
        if self._tasks.get(pipeline_id) is task:
            del self._tasks[pipeline_id]
        if task.cancelled():
            logger.warning("Pipeline task cancelled", run_id=pipeline_id)
        elif task.exception() is not None:
            logger.error("Pipeline task crashed", run_id=pipeline_id, error=str(task.exception()))

    def is_running(self, pipeline_id: str) -> bool:
        task = self._tasks.get(pipeline_id)
        return task is not None and not task.done()

    async def wait(self, pipeline_id: str) -> PipelineRun:
        """
        Wait for an enqueued run and return its final (or paused) state.

        Runs that already finished are read back from persistence.
        """
        task = self._tasks.get(pipeline_id)
        if task is not None:
            return await task
        run = await self.pipeline.get_run(pipeline_id)
        if run is None:
            raise RunNotFoundError(pipeline_id)
        return run

    async def shutdown(self) -> None:
        """Cancel runs that are still in flight."""
        pending = [t for t in self._tasks.values() if not t.done()]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self._tasks.clear()
