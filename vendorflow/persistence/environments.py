"""Per-workflow environment documents on disk."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path

from ..constants import ENVIRONMENT_FILE_PREFIX
from ..variables import VariableStore

logger = logging.getLogger(__name__)


class EnvironmentDocumentStore:
    """Keeps one environment document per active workflow.

    Documents are written in the Postman environment format so the trigger
    collection can also be replayed by hand against them.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def path_for(self, workflow_id: str) -> Path:
        return self.directory / f"{ENVIRONMENT_FILE_PREFIX}{workflow_id}.json"

    # ------------------------------------------------------------------
    def _write(self, workflow_id: str, store: VariableStore) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.path_for(workflow_id)
        tmp = path.with_suffix(".json.tmp")
        with open(tmp, "w") as f:
            json.dump(store.to_document(document_id=workflow_id), f, indent=2)
        os.replace(tmp, path)

    def _read(self, workflow_id: str) -> VariableStore | None:
        path = self.path_for(workflow_id)
        if not path.exists():
            return None
        with open(path) as f:
            return VariableStore.from_document(json.load(f))

    def _remove(self, workflow_id: str) -> bool:
        try:
            self.path_for(workflow_id).unlink()
        except FileNotFoundError:
            return False
        return True

    # ------------------------------------------------------------------
    async def save(self, workflow_id: str, store: VariableStore) -> None:
        await asyncio.to_thread(self._write, workflow_id, store)
        logger.debug(f"Saved environment for {workflow_id}")

    async def load(self, workflow_id: str) -> VariableStore | None:
        return await asyncio.to_thread(self._read, workflow_id)

    async def delete(self, workflow_id: str) -> None:
        """Remove the document. A missing document is not an error."""
        try:
            removed = await asyncio.to_thread(self._remove, workflow_id)
        except OSError as exc:
            logger.warning(f"Could not remove environment for {workflow_id}: {exc}")
            return
        if removed:
            logger.info(f"Cleaned up environment for {workflow_id}")
