"""Tests for configuration loading."""

import pytest

from vendorflow.config import TriggerConfig, VendorflowConfig, load_config
from vendorflow.persistence import (
    InMemoryWorkflowStorage,
    JsonFileWorkflowStorage,
    SQLiteWorkflowStorage,
    get_storage,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "VENDORFLOW_CONFIG",
        "VENDORFLOW_DATABASE_URL",
        "DATABASE_URL",
        "VENDORFLOW_BASE_URL",
        "VENDORFLOW_TRIGGER",
    ):
        monkeypatch.delenv(name, raising=False)


def test_load_config_from_env(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
database_url: sqlite://data/test.db
base_url: https://vendors.example.com
approvers:
  - email: a@corp.test
  - email: b@corp.test
trigger:
  backend: inmemory
  timeout: 30
"""
    )
    monkeypatch.setenv("VENDORFLOW_CONFIG", str(config_path))

    config = load_config()
    assert config.database_url == "sqlite://data/test.db"
    assert config.approver_count == 2
    assert config.approvers[1].email == "b@corp.test"
    assert config.trigger.backend == "inmemory"
    assert config.trigger.timeout == 30
    assert config.trigger.start_steps[0] == "1. Get JWT Token"


def test_env_overrides_file(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("database_url: sqlite://data/test.db\n")
    monkeypatch.setenv("DATABASE_URL", "memory://")
    monkeypatch.setenv("VENDORFLOW_BASE_URL", "https://override.test")

    config = load_config(str(config_path))
    assert config.database_url == "memory://"
    assert config.base_url == "https://override.test"


def test_missing_file_gives_defaults(tmp_path):
    config = load_config(str(tmp_path / "absent.yaml"))
    assert config.database_url is None
    assert config.approver_count == 3
    assert config.trigger.timeout == 120


def test_approver_sequence_prepends_auth_once():
    trigger = TriggerConfig(approver_steps=["1. Get JWT Token", "4a. Submit Single Approver Response"])
    assert trigger.approver_sequence() == [
        "1. Get JWT Token",
        "4a. Submit Single Approver Response",
    ]


@pytest.mark.parametrize(
    "url, expected",
    [
        (None, InMemoryWorkflowStorage),
        ("memory://", InMemoryWorkflowStorage),
        ("sqlite://{tmp}/wf.db", SQLiteWorkflowStorage),
        ("file://{tmp}/data", JsonFileWorkflowStorage),
    ],
)
def test_get_storage_selects_backend(tmp_path, url, expected):
    config = VendorflowConfig(database_url=url.format(tmp=tmp_path) if url else None)
    assert isinstance(get_storage(config=config), expected)


def test_get_storage_rejects_unknown_scheme():
    with pytest.raises(ValueError):
        get_storage("mongodb://localhost", config=VendorflowConfig())
