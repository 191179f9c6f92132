"""Application service coordinating submissions, approvals and callbacks."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .config import VendorflowConfig, load_config
from .contracts import (
    Ack,
    ApplicationSummary,
    Decision,
    FileRecord,
    PendingApplication,
    SubmissionReceipt,
    TransactionLogEntry,
    WorkflowStatus,
    WorkflowStatusView,
    uploaded_files,
)
from .correlation import CallbackCorrelator
from .environment import EnvironmentSynthesizer
from .exceptions import CorrelationMiss, NotFoundError, TriggerError
from .persistence import EnvironmentDocumentStore, WorkflowStorage, get_storage
from .state import WorkflowStateMachine, current_step
from .triggers import BaseTrigger, TriggerResult, get_trigger
from .variables import VariableStore

logger = logging.getLogger(__name__)


class VendorApprovalService:
    """Entry points consumed by the HTTP boundary and the CLI."""

    def __init__(
        self,
        config: VendorflowConfig,
        storage: WorkflowStorage,
        trigger: BaseTrigger,
        environments: EnvironmentDocumentStore,
        correlator: Optional[CallbackCorrelator] = None,
    ) -> None:
        self.config = config
        self.storage = storage
        self.trigger = trigger
        self.environments = environments
        self.synthesizer = EnvironmentSynthesizer(config)
        self.state = WorkflowStateMachine(storage, config.approver_count)
        self.correlator = correlator or CallbackCorrelator(storage)

    # ------------------------------------------------------------------
    # Trigger bridging
    async def _apply_reported(
        self, workflow_id: str, store: VariableStore, result: TriggerResult
    ) -> None:
        self.synthesizer.merge(store, result.environment)
        await self.environments.save(workflow_id, store)

        correlation_id = self.synthesizer.reported_value(
            result.environment, self.config.trigger.correlation_variable
        )
        if correlation_id:
            await self.state.stamp_correlation_id(workflow_id, correlation_id)

    # ------------------------------------------------------------------
    async def submit_application(
        self, form_data: Dict[str, Any], base_url: Optional[str] = None
    ) -> SubmissionReceipt:
        """Create the workflow and start it on the external engine.

        Raises:
            ValidationError: Applicant email or business name is missing.
        """
        workflow = await self.state.submit(form_data)
        workflow_id = workflow.workflow_id
        logger.info(
            f"Received application {workflow_id} from {workflow.applicant_email}"
        )

        for upload in uploaded_files(form_data):
            await self.storage.create_file_record(
                FileRecord(
                    workflow_id=workflow_id,
                    file_id=upload.file_id,
                    original_name=upload.original_name,
                    filename=upload.filename,
                    public_url=upload.public_url,
                    size=upload.size,
                    mime_type=upload.type,
                )
            )

        store = self.synthesizer.build_initial(
            form_data, workflow_id, base_url or self.config.base_url
        )
        await self.environments.save(workflow_id, store)

        steps = self.config.trigger.start_steps
        try:
            result = await self.trigger.invoke(steps, store)
        except TriggerError as exc:
            logger.error(f"Start sequence failed for {workflow_id}: {exc}")
            await self.state.mark_error(workflow_id, f"Workflow start failed: {exc}")
            await self.environments.delete(workflow_id)
        else:
            await self._apply_reported(workflow_id, store, result)
            await self.state.log(
                workflow_id, "WORKFLOW", "STARTED", "Workflow start sequence completed"
            )

        return SubmissionReceipt(workflow_id=workflow_id)

    async def record_approver_response(
        self,
        workflow_id: str,
        approver_id: int,
        decision: Decision | str,
        reason: Optional[str] = None,
    ) -> Ack:
        """Record a decision locally, then forward it to the external engine.

        Raises:
            NotFoundError: The workflow is unknown.
            ValidationError: Ordinal or decision is invalid.
            InvalidTransitionError: The workflow is already terminal.
        """
        record = await self.state.record_approver_decision(
            workflow_id, approver_id, decision, reason
        )

        store = await self.environments.load(workflow_id)
        if store is None:
            logger.warning(
                f"No environment for {workflow_id}; approver {approver_id} not forwarded"
            )
            return Ack(message="Approver response recorded")

        self.synthesizer.append_decision(store, record.approver_id, record.decision, reason)
        await self.environments.save(workflow_id, store)

        try:
            result = await self.trigger.invoke(self.config.trigger.approver_sequence(), store)
        except TriggerError as exc:
            logger.error(
                f"Forwarding approver {approver_id} response for {workflow_id} failed: {exc}"
            )
            await self.state.log(
                workflow_id, "ERROR", "FAILED", f"Approver response forwarding failed: {exc}"
            )
        else:
            await self._apply_reported(workflow_id, store, result)
            await self.state.log(
                workflow_id,
                "WORKFLOW",
                "FORWARDED",
                f"Approver {approver_id} response forwarded",
            )
            logger.info(f"Approver {approver_id} response forwarded for {workflow_id}")

        return Ack(message="Approver response submitted successfully")

    async def get_workflow_status(self, workflow_id: str) -> WorkflowStatusView:
        workflow = await self.storage.get_workflow_by_id(workflow_id)
        if workflow is None:
            raise NotFoundError(workflow_id)
        approvers = await self.storage.list_approver_actions(workflow_id)
        return WorkflowStatusView(
            workflow_id=workflow_id,
            status=workflow.status,
            current_step=current_step(workflow.status, approvers),
            approver_statuses={f"approver{a.approver_id}": a.decision for a in approvers},
            business_name=workflow.business_name,
            applicant_email=workflow.applicant_email,
            created_at=workflow.created_at,
            last_update=workflow.updated_at,
        )

    # ------------------------------------------------------------------
    # Callbacks
    async def _handle_callback(self, payload: Dict[str, Any], status: WorkflowStatus) -> Ack:
        label = status.value.lower()
        logger.info(f"Received {label} callback")
        try:
            match = await self.correlator.require(payload)
        except CorrelationMiss:
            logger.warning(f"Unmatched {label} callback: {payload!r}")
            return Ack(message=f"{status.value.title()} callback acknowledged")

        workflow_id = match.workflow.workflow_id
        changed = await self.state.resolve(workflow_id, status)
        await self.environments.delete(workflow_id)
        if not changed:
            logger.info(f"Duplicate {label} callback for {workflow_id}")
        return Ack(message=f"{status.value.title()} callback processed")

    async def handle_approval_callback(self, payload: Dict[str, Any]) -> Ack:
        return await self._handle_callback(payload, WorkflowStatus.APPROVED)

    async def handle_rejection_callback(self, payload: Dict[str, Any]) -> Ack:
        return await self._handle_callback(payload, WorkflowStatus.REJECTED)

    # ------------------------------------------------------------------
    # Read side
    async def list_applications(self) -> List[ApplicationSummary]:
        summaries: List[ApplicationSummary] = []
        for workflow in await self.storage.list_workflows():
            files = await self.storage.list_file_records(workflow.workflow_id)
            summaries.append(
                ApplicationSummary(
                    workflow=workflow,
                    file_count=len(files),
                    file_urls=[f.public_url for f in files],
                    file_names=[f.original_name for f in files],
                )
            )
        return summaries

    async def list_transactions(
        self, workflow_id: Optional[str] = None
    ) -> List[TransactionLogEntry]:
        return await self.storage.list_transactions(workflow_id)

    async def pending_for_approver(self, approver_id: int) -> List[PendingApplication]:
        """RUNNING workflows still waiting on ``approver_id``."""
        queue: List[PendingApplication] = []
        for workflow in await self.storage.list_workflows(status=WorkflowStatus.RUNNING):
            approvers = await self.storage.list_approver_actions(workflow.workflow_id)
            if any(
                a.approver_id == approver_id and a.decision is Decision.PENDING
                for a in approvers
            ):
                queue.append(
                    PendingApplication(
                        workflow_id=workflow.workflow_id,
                        business_name=workflow.business_name,
                        applicant_email=workflow.applicant_email,
                        created_at=workflow.created_at,
                        approver_id=approver_id,
                    )
                )
        return queue

    async def health(self) -> Dict[str, Any]:
        try:
            return await self.storage.health()
        except Exception as exc:
            logger.error(f"Storage health check failed: {exc}")
            return {"status": "unhealthy", "error": str(exc)}

    async def close(self) -> None:
        await self.storage.close()


def build_service(
    config: Optional[VendorflowConfig] = None,
    storage: Optional[WorkflowStorage] = None,
    trigger: Optional[BaseTrigger] = None,
) -> VendorApprovalService:
    """Wire a service from configuration."""
    config = config or load_config()
    return VendorApprovalService(
        config=config,
        storage=storage or get_storage(config=config),
        trigger=trigger or get_trigger(config=config),
        environments=EnvironmentDocumentStore(config.trigger.environment_dir),
    )
