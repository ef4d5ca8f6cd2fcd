"""
Human review gate.

In ``auto`` mode the gate approves after a short delay. In ``manual`` mode
the human-review step suspends until ``approve``/``reject`` delivers a
decision for its run, optionally bounded by a timeout. A timeout never
approves.
"""

import asyncio
from typing import Optional

from listing_pipeline.models.schemas import ReviewMode, ReviewOutcome
from listing_pipeline.utils.logger import get_logger
from listing_pipeline.utils.retry import AppTimeoutError

logger = get_logger(__name__)

AUTO_APPROVE_COMMENT = "Auto-approved for development environment"


class ReviewTimeoutError(AppTimeoutError):
    def __init__(self, run_id: str, timeout_seconds: float):
        super().__init__(f"No review decision for run '{run_id}' within {timeout_seconds} seconds")
        self.run_id = run_id
        self.timeout_seconds = timeout_seconds


class ReviewGate:
    """Per-run review signals."""

    def __init__(self, auto_reviewer: str = "system@lg.com", auto_approve_delay: float = 0.5):
        self.auto_reviewer = auto_reviewer
        self.auto_approve_delay = auto_approve_delay
        self._signals: dict[str, asyncio.Event] = {}
        self._decisions: dict[str, ReviewOutcome] = {}

    def _signal(self, run_id: str) -> asyncio.Event:
        return self._signals.setdefault(run_id, asyncio.Event())

    def submit(self, run_id: str, outcome: ReviewOutcome) -> None:
        """Record a decision; a decision submitted before the step waits is kept."""
        self._decisions[run_id] = outcome
        self._signal(run_id).set()
        logger.info("Review decision submitted", run_id=run_id, status=outcome.status, reviewer=outcome.reviewer)

    def is_waiting(self, run_id: str) -> bool:
        return run_id in self._signals and run_id not in self._decisions

    async def wait(
        self,
        run_id: str,
        mode: ReviewMode | str,
        timeout: Optional[float] = None,
    ) -> ReviewOutcome:
        """
        Wait for the review decision of ``run_id``.

        Raises:
            ReviewTimeoutError: If ``timeout`` elapses in manual mode.
        """
        if ReviewMode(mode) == ReviewMode.AUTO:
            await asyncio.sleep(self.auto_approve_delay)
            return ReviewOutcome(
                status="auto-approved",
                reviewer=self.auto_reviewer,
                comments=AUTO_APPROVE_COMMENT,
                requires_manual_review=False,
            )

        signal = self._signal(run_id)
        logger.info("Awaiting manual review", run_id=run_id, timeout_seconds=timeout)
        try:
            if timeout is not None:
                await asyncio.wait_for(signal.wait(), timeout=timeout)
            else:
                await signal.wait()
        except asyncio.TimeoutError:
            raise ReviewTimeoutError(run_id, timeout) from None
        finally:
            self._signals.pop(run_id, None)

        return self._decisions.pop(run_id)

    def discard(self, run_id: str) -> None:
        self._signals.pop(run_id, None)
        self._decisions.pop(run_id, None)
