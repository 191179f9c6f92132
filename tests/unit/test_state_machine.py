import pytest

from vendorflow.contracts import ApproverRecord, Decision, WorkflowStatus
from vendorflow.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from vendorflow.state import WorkflowStateMachine, current_step


def _records(*decisions):
    return [
        ApproverRecord(workflow_id="wf_1", approver_id=i, decision=d)
        for i, d in enumerate(decisions, start=1)
    ]


@pytest.fixture
def machine(storage):
    return WorkflowStateMachine(storage, approver_count=3)


@pytest.mark.asyncio
async def test_submit_creates_running_workflow_with_pending_approvers(machine, storage, form_data):
    workflow = await machine.submit(form_data)

    stored = await storage.get_workflow_by_id(workflow.workflow_id)
    assert stored.status == WorkflowStatus.RUNNING
    assert stored.workflow_id.startswith("wf_")
    approvers = await storage.list_approver_actions(workflow.workflow_id)
    assert [a.approver_id for a in approvers] == [1, 2, 3]
    assert all(a.decision == Decision.PENDING for a in approvers)

    log = await storage.list_transactions(workflow.workflow_id)
    assert [(t.type, t.status) for t in log] == [("SUBMISSION", "SUBMITTED")]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "form",
    [
        {"business_name": "Acme"},
        {"applicant_email": "a@b.test"},
        {"applicant_email": "  ", "business_name": "Acme"},
    ],
)
async def test_submit_rejects_missing_identity_without_side_effects(machine, storage, form):
    with pytest.raises(ValidationError):
        await machine.submit(form)
    assert await storage.list_workflows() == []
    assert await storage.list_transactions() == []


@pytest.mark.parametrize(
    "status, decisions, expected",
    [
        (WorkflowStatus.APPROVED, (Decision.APPROVED,) * 3, "Completed"),
        (WorkflowStatus.REJECTED, (Decision.PENDING,) * 3, "Rejected"),
        (WorkflowStatus.RUNNING, (Decision.PENDING,) * 3, "Waiting for all approvers"),
        (
            WorkflowStatus.RUNNING,
            (Decision.APPROVED, Decision.PENDING, Decision.PENDING),
            "1 approved, 2 pending",
        ),
        (
            WorkflowStatus.RUNNING,
            (Decision.APPROVED, Decision.REJECTED, Decision.PENDING),
            "1 approved, 1 pending",
        ),
        (
            WorkflowStatus.RUNNING,
            (Decision.APPROVED, Decision.REJECTED, Decision.APPROVED),
            "All approvers responded — processing",
        ),
        (WorkflowStatus.RUNNING, (), "Waiting for all approvers"),
    ],
)
def test_current_step(status, decisions, expected):
    assert current_step(status, _records(*decisions)) == expected
    # same inputs, same label
    assert current_step(status.value, _records(*decisions)) == expected


@pytest.mark.asyncio
async def test_record_decision_upserts_without_changing_status(machine, storage, form_data):
    workflow = await machine.submit(form_data)

    await machine.record_approver_decision(workflow.workflow_id, 2, "APPROVED")
    await machine.record_approver_decision(workflow.workflow_id, 2, Decision.REJECTED, "late doubt")

    approvers = await storage.list_approver_actions(workflow.workflow_id)
    assert len(approvers) == 3
    assert approvers[1].decision == Decision.REJECTED
    assert approvers[1].reason == "late doubt"
    stored = await storage.get_workflow_by_id(workflow.workflow_id)
    assert stored.status == WorkflowStatus.RUNNING


@pytest.mark.asyncio
async def test_record_decision_errors(machine, form_data):
    with pytest.raises(NotFoundError):
        await machine.record_approver_decision("wf_missing", 1, "APPROVED")

    workflow = await machine.submit(form_data)
    with pytest.raises(ValidationError):
        await machine.record_approver_decision(workflow.workflow_id, 4, "APPROVED")
    with pytest.raises(ValidationError):
        await machine.record_approver_decision(workflow.workflow_id, 1, "MAYBE")

    await machine.resolve(workflow.workflow_id, WorkflowStatus.APPROVED)
    with pytest.raises(InvalidTransitionError):
        await machine.record_approver_decision(workflow.workflow_id, 1, "REJECTED")


@pytest.mark.asyncio
async def test_resolve_is_idempotent_first_write_wins(machine, storage, form_data):
    workflow = await machine.submit(form_data)

    assert await machine.resolve(workflow.workflow_id, WorkflowStatus.APPROVED) is True
    assert await machine.resolve(workflow.workflow_id, WorkflowStatus.REJECTED) is False

    stored = await storage.get_workflow_by_id(workflow.workflow_id)
    assert stored.status == WorkflowStatus.APPROVED
    webhook_entries = [
        t for t in await storage.list_transactions(workflow.workflow_id) if t.type == "WEBHOOK"
    ]
    assert len(webhook_entries) == 1


@pytest.mark.asyncio
async def test_resolve_only_accepts_final_decisions(machine, form_data):
    workflow = await machine.submit(form_data)
    with pytest.raises(ValidationError):
        await machine.resolve(workflow.workflow_id, WorkflowStatus.ERROR)
    with pytest.raises(ValidationError):
        await machine.resolve(workflow.workflow_id, "DONE")


@pytest.mark.asyncio
async def test_mark_error_is_terminal(machine, storage, form_data):
    workflow = await machine.submit(form_data)

    assert await machine.mark_error(workflow.workflow_id, "engine down") is True
    assert await machine.mark_error(workflow.workflow_id, "again") is False
    assert await machine.resolve(workflow.workflow_id, WorkflowStatus.APPROVED) is False

    stored = await storage.get_workflow_by_id(workflow.workflow_id)
    assert stored.status == WorkflowStatus.ERROR


@pytest.mark.asyncio
async def test_stamp_correlation_id_first_stamp_wins(machine, storage, form_data):
    workflow = await machine.submit(form_data)

    assert await machine.stamp_correlation_id(workflow.workflow_id, "ext-1") is True
    assert await machine.stamp_correlation_id(workflow.workflow_id, "ext-2") is False
    stored = await storage.get_workflow_by_correlation_id("ext-1")
    assert stored.workflow_id == workflow.workflow_id


@pytest.mark.asyncio
async def test_partial_approver_set_reads_back_as_is(storage, form_data):
    machine = WorkflowStateMachine(storage, approver_count=3)
    workflow = await machine.submit(form_data)
    # simulate a crash after creating only the first record
    other = WorkflowStateMachine(storage, approver_count=1)
    partial = await other.submit({**form_data, "applicant_email": "other@acme.test"})

    assert len(await machine.approvers(partial.workflow_id)) == 1
    assert len(await machine.approvers(workflow.workflow_id)) == 3
    records = await machine.approvers(partial.workflow_id)
    assert current_step(WorkflowStatus.RUNNING, records) == "Waiting for all approvers"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "uploads",
    [
        [{"fileId": "f1"}],
        ["license.pdf"],
        "license.pdf",
    ],
)
async def test_submit_rejects_malformed_uploads_without_side_effects(machine, storage, uploads):
    form = {"applicant_email": "a@x.test", "business_name": "B", "uploaded_files": uploads}

    with pytest.raises(ValidationError):
        await machine.submit(form)

    assert await storage.list_workflows() == []
    assert await storage.list_transactions() == []
