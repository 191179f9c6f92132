import json

import pytest

from vendorflow.persistence import EnvironmentDocumentStore
from vendorflow.variables import VariableStore


@pytest.mark.asyncio
async def test_save_load_delete(tmp_path):
    documents = EnvironmentDocumentStore(tmp_path / "envs")
    store = VariableStore(name="Vendor Onboarding")
    store.set("business_name", "Acme")
    store.set("jwt_token", "abc", type="secret")

    await documents.save("wf_1", store)

    path = documents.path_for("wf_1")
    assert path.name == "dynamic-env-wf_1.json"
    doc = json.loads(path.read_text())
    assert doc["id"] == "wf_1"
    assert doc["_postman_variable_scope"] == "environment"
    assert [v["key"] for v in doc["values"]] == ["business_name", "jwt_token"]

    loaded = await documents.load("wf_1")
    assert loaded == store
    assert loaded.name == "Vendor Onboarding"

    await documents.delete("wf_1")
    assert not path.exists()
    assert await documents.load("wf_1") is None


@pytest.mark.asyncio
async def test_missing_documents_are_tolerated(tmp_path):
    documents = EnvironmentDocumentStore(tmp_path / "never-created")

    assert await documents.load("wf_missing") is None
    # cleanup of a document that never existed is a no-op
    await documents.delete("wf_missing")


@pytest.mark.asyncio
async def test_save_overwrites_previous_document(tmp_path):
    documents = EnvironmentDocumentStore(tmp_path)
    store = VariableStore()
    store.set("approver1_decision", "PENDING")
    await documents.save("wf_1", store)

    store.set("approver1_decision", "APPROVED")
    await documents.save("wf_1", store)

    loaded = await documents.load("wf_1")
    assert loaded.get("approver1_decision") == "APPROVED"
    assert not list(tmp_path.glob("*.tmp"))
