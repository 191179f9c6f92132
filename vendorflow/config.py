from __future__ import annotations

import os
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, Field

from .constants import (
    APPROVER_RESPONSE_STEP,
    AUTH_STEP,
    CORRELATION_VARIABLE,
    DEFAULT_APPROVER_COUNT,
    DEFAULT_BASE_URL,
    DEFAULT_TRIGGER_TIMEOUT,
    START_STEPS,
)


class ApproverConfig(BaseModel):
    """Identity of one of the fixed approvers."""

    email: str = ""
    name: Optional[str] = None


class TriggerConfig(BaseModel):
    """Settings for the external trigger mechanism."""

    backend: Literal["http", "inmemory"] = "http"
    collection_path: str = "collections/vendor-collection.json"
    environment_path: Optional[str] = "collections/environment.json"
    environment_dir: str = "collections/environments"
    timeout: float = DEFAULT_TRIGGER_TIMEOUT
    auth_step: str = AUTH_STEP
    start_steps: List[str] = Field(default_factory=lambda: list(START_STEPS))
    approver_steps: List[str] = Field(
        default_factory=lambda: [APPROVER_RESPONSE_STEP]
    )
    correlation_variable: str = CORRELATION_VARIABLE

    def approver_sequence(self) -> List[str]:
        """Approver steps with a fresh authentication step in front."""
        steps = [s for s in self.approver_steps if s != self.auth_step]
        return [self.auth_step, *steps]


def _default_approvers() -> List[ApproverConfig]:
    return [ApproverConfig() for _ in range(DEFAULT_APPROVER_COUNT)]


class VendorflowConfig(BaseModel):
    """Top-level configuration model."""

    database_url: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    approvers: List[ApproverConfig] = Field(default_factory=_default_approvers)
    trigger: TriggerConfig = TriggerConfig()

    @property
    def approver_count(self) -> int:
        return len(self.approvers)


def load_config(path: Optional[str] = None) -> VendorflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to VENDORFLOW_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("VENDORFLOW_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = VendorflowConfig(**data)
    else:
        config = VendorflowConfig()

    env_db_url = os.getenv("VENDORFLOW_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    env_base_url = os.getenv("VENDORFLOW_BASE_URL")
    if env_base_url:
        config.base_url = env_base_url
    return config
