import pytest

from vendorflow.config import ApproverConfig, TriggerConfig, VendorflowConfig
from vendorflow.persistence import EnvironmentDocumentStore, InMemoryWorkflowStorage
from vendorflow.service import VendorApprovalService
from vendorflow.triggers import InMemoryTrigger


@pytest.fixture
def config(tmp_path):
    return VendorflowConfig(
        base_url="https://vendors.test",
        approvers=[
            ApproverConfig(email="procurement@corp.test"),
            ApproverConfig(email="finance@corp.test"),
            ApproverConfig(email="compliance@corp.test"),
        ],
        trigger=TriggerConfig(
            backend="inmemory",
            environment_path=None,
            environment_dir=str(tmp_path / "envs"),
            timeout=5,
        ),
    )


@pytest.fixture
def form_data():
    return {
        "applicant_email": "owner@acme.test",
        "business_name": "Acme Supplies",
        "business_contact_number": "555-0100",
        "uploaded_files": [
            {
                "fileId": "a1b2c3",
                "originalName": "license.pdf",
                "publicUrl": "/uploads/20240101-a1b2c3-license.pdf",
                "size": 1024,
                "type": "application/pdf",
            },
            {
                "fileId": "d4e5f6",
                "originalName": "tax.pdf",
                "publicUrl": "/uploads/20240101-d4e5f6-tax.pdf",
                "size": 2048,
                "type": "application/pdf",
            },
        ],
    }


@pytest.fixture
def storage():
    return InMemoryWorkflowStorage()


@pytest.fixture
def trigger():
    return InMemoryTrigger(
        variables={
            "1. Get JWT Token": {"jwt_token": "token-1"},
            "2. Start Onboarding Workflow": {"external_workflow_id": "ext-123"},
        }
    )


@pytest.fixture
def service(config, storage, trigger):
    return VendorApprovalService(
        config=config,
        storage=storage,
        trigger=trigger,
        environments=EnvironmentDocumentStore(config.trigger.environment_dir),
    )
