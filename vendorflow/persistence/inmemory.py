"""In-memory implementation of workflow storage."""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

from ..contracts import (
    ApproverRecord,
    FileRecord,
    TransactionLogEntry,
    Workflow,
    WorkflowStatus,
    utcnow,
)
from .repository import WorkflowStorage


class InMemoryWorkflowStorage(WorkflowStorage):
    """Store workflow state in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._workflows: Dict[str, Workflow] = {}
        self._approvers: Dict[Tuple[str, int], ApproverRecord] = {}
        self._transactions: List[TransactionLogEntry] = []
        self._files: List[FileRecord] = []

    # ------------------------------------------------------------------
    def _newest_first(self, workflows: List[Workflow]) -> List[Workflow]:
        order = {wf_id: i for i, wf_id in enumerate(self._workflows)}
        return sorted(
            workflows,
            key=lambda wf: (wf.created_at, order[wf.workflow_id]),
            reverse=True,
        )

    async def create_workflow(self, workflow: Workflow) -> None:
        self._workflows[workflow.workflow_id] = workflow.model_copy(deep=True)

    async def get_workflow_by_id(self, workflow_id: str) -> Workflow | None:
        wf = self._workflows.get(workflow_id)
        return wf.model_copy(deep=True) if wf else None

    async def get_workflow_by_applicant_email(self, applicant_email: str) -> Workflow | None:
        matches = [
            wf for wf in self._workflows.values() if wf.applicant_email == applicant_email
        ]
        if not matches:
            return None
        return self._newest_first(matches)[0].model_copy(deep=True)

    async def get_workflow_by_correlation_id(self, correlation_id: str) -> Workflow | None:
        for wf in self._workflows.values():
            if wf.correlation_id == correlation_id:
                return wf.model_copy(deep=True)
        return None

    async def update_workflow_status(self, workflow_id: str, status: WorkflowStatus) -> bool:
        wf = self._workflows.get(workflow_id)
        if not wf:
            return False
        wf.status = WorkflowStatus(status)
        wf.updated_at = utcnow()
        return True

    async def set_correlation_id(self, workflow_id: str, correlation_id: str) -> bool:
        wf = self._workflows.get(workflow_id)
        if not wf:
            return False
        wf.correlation_id = correlation_id
        wf.updated_at = utcnow()
        return True

    async def list_workflows(self, status: WorkflowStatus | None = None) -> list[Workflow]:
        workflows = [
            wf.model_copy(deep=True)
            for wf in self._workflows.values()
            if status is None or wf.status == status
        ]
        return self._newest_first(workflows)

    async def upsert_approver_action(self, record: ApproverRecord) -> None:
        self._approvers[(record.workflow_id, record.approver_id)] = record.model_copy()

    async def list_approver_actions(self, workflow_id: str) -> list[ApproverRecord]:
        records = [r for (wf_id, _), r in self._approvers.items() if wf_id == workflow_id]
        return sorted((r.model_copy() for r in records), key=lambda r: r.approver_id)

    async def append_transaction(self, entry: TransactionLogEntry) -> TransactionLogEntry:
        stored = entry.model_copy(update={"id": len(self._transactions) + 1})
        self._transactions.append(stored)
        return stored

    async def list_transactions(self, workflow_id: str | None = None) -> list[TransactionLogEntry]:
        entries = [
            t for t in self._transactions if workflow_id is None or t.workflow_id == workflow_id
        ]
        return list(reversed(entries))

    async def create_file_record(self, record: FileRecord) -> None:
        self._files.append(record.model_copy())

    async def list_file_records(self, workflow_id: str) -> list[FileRecord]:
        return [f.model_copy() for f in self._files if f.workflow_id == workflow_id]

    async def health(self) -> dict[str, Any]:
        return {
            "status": "healthy",
            "type": "inmemory",
            "workflows": len(self._workflows),
            "transactions": len(self._transactions),
        }

    async def close(self) -> None:
        pass
