"""Storage abstraction for workflow state persistence."""

from __future__ import annotations

from typing import Any, Protocol

from ..contracts import (
    ApproverRecord,
    FileRecord,
    TransactionLogEntry,
    Workflow,
    WorkflowStatus,
)


class WorkflowStorage(Protocol):
    """Protocol for workflow storage backends.

    Reads for unknown identifiers return ``None`` or an empty list; only
    genuine I/O failures raise.
    """

    async def create_workflow(self, workflow: Workflow) -> None:
        """Persist a new workflow."""

    async def get_workflow_by_id(self, workflow_id: str) -> Workflow | None:
        """Retrieve a workflow by its local identifier."""

    async def get_workflow_by_applicant_email(self, applicant_email: str) -> Workflow | None:
        """Retrieve the most recently created workflow of an applicant."""

    async def get_workflow_by_correlation_id(self, correlation_id: str) -> Workflow | None:
        """Retrieve the workflow stamped with an external correlation id."""

    async def update_workflow_status(self, workflow_id: str, status: WorkflowStatus) -> bool:
        """Set status and update time. Returns ``False`` if nothing changed."""

    async def set_correlation_id(self, workflow_id: str, correlation_id: str) -> bool:
        """Stamp the external correlation id on a workflow."""

    async def list_workflows(self, status: WorkflowStatus | None = None) -> list[Workflow]:
        """Return workflows, newest first, optionally filtered by status."""

    async def upsert_approver_action(self, record: ApproverRecord) -> None:
        """Insert or replace the record for (workflow, approver ordinal)."""

    async def list_approver_actions(self, workflow_id: str) -> list[ApproverRecord]:
        """Return approver records of a workflow ordered by ordinal."""

    async def append_transaction(self, entry: TransactionLogEntry) -> TransactionLogEntry:
        """Append an audit entry and return it with its assigned id."""

    async def list_transactions(self, workflow_id: str | None = None) -> list[TransactionLogEntry]:
        """Return audit entries, newest first."""

    async def create_file_record(self, record: FileRecord) -> None:
        """Persist uploaded file metadata."""

    async def list_file_records(self, workflow_id: str) -> list[FileRecord]:
        """Return file records of a workflow in upload order."""

    async def health(self) -> dict[str, Any]:
        """Report backend status and entity counts."""

    async def close(self) -> None:
        """Release backend resources."""
