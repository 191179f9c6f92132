"""Flat-file JSON implementation of workflow storage."""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Any, Callable, TypeVar

from ..contracts import (
    ApproverRecord,
    FileRecord,
    TransactionLogEntry,
    Workflow,
    WorkflowStatus,
    utcnow,
)
from .repository import WorkflowStorage

T = TypeVar("T")

COLLECTIONS = ("workflows", "approvers", "transactions", "files")


class JsonFileWorkflowStorage(WorkflowStorage):
    """Persist workflow state as one JSON array document per entity type.

    Every write rewrites the affected document through a temporary file so a
    crash never leaves a truncated document behind.
    """

    def __init__(self, data_dir: str | Path):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        for name in COLLECTIONS:
            path = self._path(name)
            if not path.exists():
                self._write(name, [])
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Helper methods
    def _path(self, name: str) -> Path:
        return self.data_dir / f"{name}.json"

    def _read(self, name: str) -> list[dict[str, Any]]:
        with open(self._path(name)) as f:
            return json.load(f)

    def _write(self, name: str, rows: list[dict[str, Any]]) -> None:
        path = self._path(name)
        tmp = path.with_suffix(".json.tmp")
        with open(tmp, "w") as f:
            json.dump(rows, f, indent=2)
        os.replace(tmp, path)

    async def _load(self, name: str) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._read, name)

    async def _modify(self, name: str, change: Callable[[list[dict[str, Any]]], T]) -> T:
        async with self._lock:
            rows = await asyncio.to_thread(self._read, name)
            result = change(rows)
            await asyncio.to_thread(self._write, name, rows)
            return result

    @staticmethod
    def _newest_first(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        indexed = list(enumerate(rows))
        indexed.sort(key=lambda pair: (pair[1]["created_at"], pair[0]), reverse=True)
        return [row for _, row in indexed]

    async def _find_workflow(self, field: str, value: str) -> Workflow | None:
        rows = [r for r in await self._load("workflows") if r.get(field) == value]
        if not rows:
            return None
        return Workflow.model_validate(self._newest_first(rows)[0])

    async def _update_workflow(self, workflow_id: str, **fields: Any) -> bool:
        def change(rows: list[dict[str, Any]]) -> bool:
            for row in rows:
                if row["workflow_id"] == workflow_id:
                    row.update(fields)
                    row["updated_at"] = utcnow().isoformat()
                    return True
            return False

        return await self._modify("workflows", change)

    # ------------------------------------------------------------------
    # Storage API
    async def create_workflow(self, workflow: Workflow) -> None:
        await self._modify(
            "workflows", lambda rows: rows.append(workflow.model_dump(mode="json"))
        )

    async def get_workflow_by_id(self, workflow_id: str) -> Workflow | None:
        return await self._find_workflow("workflow_id", workflow_id)

    async def get_workflow_by_applicant_email(self, applicant_email: str) -> Workflow | None:
        return await self._find_workflow("applicant_email", applicant_email)

    async def get_workflow_by_correlation_id(self, correlation_id: str) -> Workflow | None:
        return await self._find_workflow("correlation_id", correlation_id)

    async def update_workflow_status(self, workflow_id: str, status: WorkflowStatus) -> bool:
        return await self._update_workflow(workflow_id, status=WorkflowStatus(status).value)

    async def set_correlation_id(self, workflow_id: str, correlation_id: str) -> bool:
        return await self._update_workflow(workflow_id, correlation_id=correlation_id)

    async def list_workflows(self, status: WorkflowStatus | None = None) -> list[Workflow]:
        rows = await self._load("workflows")
        if status is not None:
            rows = [r for r in rows if r["status"] == WorkflowStatus(status).value]
        return [Workflow.model_validate(r) for r in self._newest_first(rows)]

    async def upsert_approver_action(self, record: ApproverRecord) -> None:
        data = record.model_dump(mode="json")

        def change(rows: list[dict[str, Any]]) -> None:
            for i, row in enumerate(rows):
                if (
                    row["workflow_id"] == record.workflow_id
                    and row["approver_id"] == record.approver_id
                ):
                    rows[i] = data
                    return
            rows.append(data)

        await self._modify("approvers", change)

    async def list_approver_actions(self, workflow_id: str) -> list[ApproverRecord]:
        rows = [r for r in await self._load("approvers") if r["workflow_id"] == workflow_id]
        records = [ApproverRecord.model_validate(r) for r in rows]
        return sorted(records, key=lambda r: r.approver_id)

    async def append_transaction(self, entry: TransactionLogEntry) -> TransactionLogEntry:
        def change(rows: list[dict[str, Any]]) -> TransactionLogEntry:
            stored = entry.model_copy(update={"id": len(rows) + 1})
            rows.append(stored.model_dump(mode="json"))
            return stored

        return await self._modify("transactions", change)

    async def list_transactions(self, workflow_id: str | None = None) -> list[TransactionLogEntry]:
        rows = await self._load("transactions")
        entries = [
            TransactionLogEntry.model_validate(r)
            for r in rows
            if workflow_id is None or r["workflow_id"] == workflow_id
        ]
        return list(reversed(entries))

    async def create_file_record(self, record: FileRecord) -> None:
        await self._modify(
            "files", lambda rows: rows.append(record.model_dump(mode="json"))
        )

    async def list_file_records(self, workflow_id: str) -> list[FileRecord]:
        rows = await self._load("files")
        return [FileRecord.model_validate(r) for r in rows if r["workflow_id"] == workflow_id]

    async def health(self) -> dict[str, Any]:
        workflows = await self._load("workflows")
        transactions = await self._load("transactions")
        return {
            "status": "healthy",
            "type": "file-storage",
            "data_dir": str(self.data_dir),
            "workflows": len(workflows),
            "transactions": len(transactions),
        }

    async def close(self) -> None:
        pass
