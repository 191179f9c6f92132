"""Shared constants for vendorflow."""

DEFAULT_APPROVER_COUNT = 3
DEFAULT_TRIGGER_TIMEOUT = 120.0
DEFAULT_BASE_URL = "http://localhost:10000"

AUTH_STEP = "1. Get JWT Token"
START_STEPS = [
    AUTH_STEP,
    "2. Start Onboarding Workflow",
    "3. Get Running Task IDs",
]
APPROVER_RESPONSE_STEP = "4a. Submit Single Approver Response"

CORRELATION_VARIABLE = "external_workflow_id"
ENVIRONMENT_FILE_PREFIX = "dynamic-env-"
WORKFLOW_ID_PREFIX = "wf_"
