"""
Pipeline run persistence.

Runs are saved after every step boundary so a paused or interrupted run can
be resumed from its next un-started step.
"""

import asyncio
import json
import re
from pathlib import Path
from typing import Optional

from listing_pipeline.models.schemas import PipelineRun
from listing_pipeline.utils.logger import get_logger

logger = get_logger(__name__)

_SAFE_RUN_ID = re.compile(r"^[\w\-.]+$")


class StatePersistence:
    """Abstract interface for state persistence."""

    async def save_state(self, run_id: str, run: PipelineRun) -> None:
        """Save pipeline state for recovery."""
        raise NotImplementedError

    async def load_state(self, run_id: str) -> Optional[PipelineRun]:
        """Load saved pipeline state."""
        raise NotImplementedError

    async def delete_state(self, run_id: str) -> None:
        """Delete saved pipeline state."""
        raise NotImplementedError

    async def list_runs(self) -> list[str]:
        """Ids of every saved run."""
        raise NotImplementedError


class InMemoryStatePersistence(StatePersistence):
    """
    In-memory state persistence for tests and single-process use.

    Stores serialized snapshots, so callers never share a mutable run object
    with the store.
    """

    def __init__(self):
        self._states: dict[str, dict] = {}

    async def save_state(self, run_id: str, run: PipelineRun) -> None:
        self._states[run_id] = run.model_dump(mode="json")

    async def load_state(self, run_id: str) -> Optional[PipelineRun]:
        data = self._states.get(run_id)
        return PipelineRun.model_validate(data) if data is not None else None

    async def delete_state(self, run_id: str) -> None:
        self._states.pop(run_id, None)

    async def list_runs(self) -> list[str]:
        return list(self._states)


class JsonFileStatePersistence(StatePersistence):
    """One JSON file per run in ``directory``."""

    def __init__(self, directory: Path | str):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, run_id: str) -> Path:
        if not _SAFE_RUN_ID.match(run_id):
            raise ValueError(f"Invalid run id: {run_id!r}")
        return self.directory / f"{run_id}.json"

    def _write(self, path: Path, payload: str) -> None:
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(payload, encoding="utf-8")
        tmp.replace(path)

    async def save_state(self, run_id: str, run: PipelineRun) -> None:
        payload = json.dumps(run.model_dump(mode="json"), indent=2, ensure_ascii=False)
        await asyncio.to_thread(self._write, self._path(run_id), payload)

    async def load_state(self, run_id: str) -> Optional[PipelineRun]:
        path = self._path(run_id)
        if not path.exists():
            return None
        text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        return PipelineRun.model_validate_json(text)

    async def delete_state(self, run_id: str) -> None:
        self._path(run_id).unlink(missing_ok=True)

    async def list_runs(self) -> list[str]:
        return sorted(p.stem for p in self.directory.glob("*.json"))
