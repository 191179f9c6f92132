import json

import pytest
from typer.testing import CliRunner

from vendorflow.cli import app


@pytest.fixture
def cli_config(tmp_path, monkeypatch):
    for name in ("VENDORFLOW_DATABASE_URL", "DATABASE_URL", "VENDORFLOW_TRIGGER"):
        monkeypatch.delenv(name, raising=False)
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        f"""
database_url: sqlite://{tmp_path}/vendorflow.db
base_url: https://vendors.test
approvers:
  - email: procurement@corp.test
  - email: finance@corp.test
  - email: compliance@corp.test
trigger:
  backend: inmemory
  environment_path: null
  environment_dir: {tmp_path}/envs
"""
    )
    return config_path


def _invoke(config_path, *args):
    runner = CliRunner()
    return runner.invoke(app, ["--config", str(config_path), *args])


def _submit(config_path, tmp_path, form_data):
    form_path = tmp_path / "form.json"
    form_path.write_text(json.dumps(form_data))
    result = _invoke(config_path, "application", "submit", str(form_path))
    assert result.exit_code == 0, f"Submit failed: {result.output}"
    return result.output.strip()


def test_submit_respond_and_status(cli_config, tmp_path, form_data):
    workflow_id = _submit(cli_config, tmp_path, form_data)
    assert workflow_id.startswith("wf_")

    result = _invoke(
        cli_config, "application", "respond", workflow_id, "1", "approved", "--reason", "ok"
    )
    assert result.exit_code == 0, f"Respond failed: {result.output}"
    assert "submitted successfully" in result.output

    result = _invoke(cli_config, "application", "status", workflow_id)
    assert result.exit_code == 0, f"Status failed: {result.output}"
    assert f"Workflow {workflow_id}: RUNNING" in result.output
    assert "Step: 1 approved, 2 pending" in result.output
    assert "- approver1: APPROVED" in result.output
    assert "- approver3: PENDING" in result.output


def test_status_of_missing_workflow_exits_1(cli_config):
    result = _invoke(cli_config, "application", "status", "wf_missing")
    assert result.exit_code == 1, f"Expected exit code 1, got {result.exit_code}"
    assert "Workflow not found" in result.output


def test_invalid_submission_exits_1(cli_config):
    result = _invoke(cli_config, "application", "submit", '{"business_name": "Acme"}')
    assert result.exit_code == 1
    assert "applicant_email" in result.output


def test_callback_resolves_workflow(cli_config, tmp_path, form_data):
    workflow_id = _submit(cli_config, tmp_path, form_data)

    payload = json.dumps({"workflowInput": {"applicant_email": form_data["applicant_email"]}})
    result = _invoke(cli_config, "callback", "reject", payload)
    assert result.exit_code == 0, f"Callback failed: {result.output}"
    assert "Rejected callback processed" in result.output

    result = _invoke(cli_config, "application", "status", workflow_id)
    assert f"Workflow {workflow_id}: REJECTED" in result.output
    assert "Step: Rejected" in result.output

    result = _invoke(cli_config, "callback", "approve", '{"applicant_email": "ghost@x.test"}')
    assert result.exit_code == 0
    assert "acknowledged" in result.output


def test_list_queue_transactions_and_health(cli_config, tmp_path, form_data):
    result = _invoke(cli_config, "application", "list")
    assert "No applications found" in result.output

    workflow_id = _submit(cli_config, tmp_path, form_data)

    result = _invoke(cli_config, "application", "list")
    assert workflow_id in result.output
    assert "2 file(s)" in result.output

    result = _invoke(cli_config, "approver", "queue", "2")
    assert workflow_id in result.output
    _invoke(cli_config, "application", "respond", workflow_id, "2", "REJECTED")
    result = _invoke(cli_config, "approver", "queue", "2")
    assert "No pending applications" in result.output

    result = _invoke(cli_config, "transactions", "--workflow-id", workflow_id)
    assert "SUBMISSION" in result.output
    assert "APPROVER_RESPONSE" in result.output

    result = _invoke(cli_config, "health")
    assert result.exit_code == 0
    assert json.loads(result.output)["status"] == "healthy"


def test_payload_must_be_json_object(cli_config):
    result = _invoke(cli_config, "callback", "approve", "[1, 2]")
    assert result.exit_code == 1
    assert "JSON object" in result.output
