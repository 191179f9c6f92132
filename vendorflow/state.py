"""Workflow state machine for the vendor approval process."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional

from .contracts import (
    ApproverRecord,
    Decision,
    TransactionLogEntry,
    Workflow,
    WorkflowStatus,
    uploaded_files,
)
from .exceptions import InvalidTransitionError, NotFoundError, ValidationError
from .persistence import WorkflowStorage

logger = logging.getLogger(__name__)

RESOLVABLE = (WorkflowStatus.APPROVED, WorkflowStatus.REJECTED)


def current_step(status: WorkflowStatus | str, approvers: Iterable[ApproverRecord]) -> str:
    """Human readable progress label derived from status and decisions."""
    status = WorkflowStatus(status)
    if status is WorkflowStatus.APPROVED:
        return "Completed"
    if status is WorkflowStatus.REJECTED:
        return "Rejected"

    decisions = [a.decision for a in approvers]
    pending = sum(1 for d in decisions if d is Decision.PENDING)
    approved = sum(1 for d in decisions if d is Decision.APPROVED)
    if pending == len(decisions):
        return "Waiting for all approvers"
    if pending == 0:
        return "All approvers responded — processing"
    return f"{approved} approved, {pending} pending"


class WorkflowStateMachine:
    """Owns workflow status transitions and approver decisions.

    Terminal states (APPROVED, REJECTED, ERROR) accept no further
    transitions; attempts are reported as successful no-ops so duplicate
    callbacks are harmless.
    """

    def __init__(self, storage: WorkflowStorage, approver_count: int) -> None:
        self._storage = storage
        self.approver_count = approver_count

    async def log(self, workflow_id: str, type: str, status: str, details: str) -> None:
        await self._storage.append_transaction(
            TransactionLogEntry(
                workflow_id=workflow_id, type=type, status=status, details=details
            )
        )

    async def _require(self, workflow_id: str) -> Workflow:
        workflow = await self._storage.get_workflow_by_id(workflow_id)
        if workflow is None:
            raise NotFoundError(workflow_id)
        return workflow

    # ------------------------------------------------------------------
    async def submit(self, form_data: Dict[str, Any]) -> Workflow:
        """Create a RUNNING workflow with all approvers PENDING."""
        applicant_email = str(form_data.get("applicant_email") or "").strip()
        business_name = str(form_data.get("business_name") or "").strip()
        missing = [
            name
            for name, value in (
                ("applicant_email", applicant_email),
                ("business_name", business_name),
            )
            if not value
        ]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        # file references are checked before anything is written
        uploaded_files(form_data)

        workflow = Workflow(
            applicant_email=applicant_email,
            business_name=business_name,
            form_data=dict(form_data),
        )
        await self._storage.create_workflow(workflow)
        for ordinal in range(1, self.approver_count + 1):
            await self._storage.upsert_approver_action(
                ApproverRecord(workflow_id=workflow.workflow_id, approver_id=ordinal)
            )
        await self.log(
            workflow.workflow_id,
            "SUBMISSION",
            "SUBMITTED",
            f"Application submitted by {applicant_email}",
        )
        logger.info(f"Workflow {workflow.workflow_id} submitted for {business_name}")
        return workflow

    async def record_approver_decision(
        self,
        workflow_id: str,
        approver_id: int,
        decision: Decision | str,
        reason: Optional[str] = None,
    ) -> ApproverRecord:
        """Upsert one approver's decision. Workflow status is left unchanged."""
        try:
            decision = Decision(decision)
        except ValueError:
            raise ValidationError(f"Unknown decision: {decision}") from None
        if not 1 <= int(approver_id) <= self.approver_count:
            raise ValidationError(
                f"Approver {approver_id} out of range 1..{self.approver_count}"
            )

        workflow = await self._require(workflow_id)
        if workflow.is_terminal:
            raise InvalidTransitionError(
                f"Workflow {workflow_id} is {workflow.status.value}; decisions are closed"
            )

        record = ApproverRecord(
            workflow_id=workflow_id,
            approver_id=int(approver_id),
            decision=decision,
            reason=reason,
        )
        await self._storage.upsert_approver_action(record)
        await self.log(
            workflow_id,
            "APPROVER_RESPONSE",
            decision.value,
            f"Approver {approver_id} {decision.value.lower()}: {reason or 'No reason provided'}",
        )
        logger.info(f"Approver {approver_id} {decision.value} on {workflow_id}")
        return record

    async def resolve(self, workflow_id: str, status: WorkflowStatus | str) -> bool:
        """Move a RUNNING workflow to APPROVED or REJECTED.

        Returns ``False`` when the workflow was already terminal.
        """
        try:
            status = WorkflowStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown workflow status: {status}") from None
        if status not in RESOLVABLE:
            raise ValidationError(f"Cannot resolve workflow to {status.value}")

        workflow = await self._require(workflow_id)
        if workflow.is_terminal:
            logger.info(
                f"Workflow {workflow_id} already {workflow.status.value}; ignoring {status.value}"
            )
            return False

        await self._storage.update_workflow_status(workflow_id, status)
        await self.log(
            workflow_id,
            "WEBHOOK",
            status.value,
            f"Final {'approval' if status is WorkflowStatus.APPROVED else 'rejection'} received",
        )
        logger.info(f"Workflow {workflow_id} {status.value.lower()}")
        return True

    async def mark_error(self, workflow_id: str, reason: str) -> bool:
        workflow = await self._require(workflow_id)
        if workflow.is_terminal:
            return False
        await self._storage.update_workflow_status(workflow_id, WorkflowStatus.ERROR)
        await self.log(workflow_id, "ERROR", "FAILED", reason)
        logger.error(f"Workflow {workflow_id} marked ERROR: {reason}")
        return True

    async def stamp_correlation_id(self, workflow_id: str, correlation_id: str) -> bool:
        """Record the external engine's identifier. The first stamp wins."""
        workflow = await self._require(workflow_id)
        if workflow.correlation_id:
            return False
        await self._storage.set_correlation_id(workflow_id, correlation_id)
        logger.info(f"Workflow {workflow_id} correlated with {correlation_id}")
        return True

    async def approvers(self, workflow_id: str) -> list[ApproverRecord]:
        return await self._storage.list_approver_actions(workflow_id)
