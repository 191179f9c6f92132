"""vendorflow: Workflow correlation and state bridging for vendor approvals."""

from .config import VendorflowConfig, load_config
from .contracts import ApproverRecord, Decision, Variable, Workflow, WorkflowStatus
from .correlation import CallbackCorrelator
from .environment import EnvironmentSynthesizer
from .persistence import get_storage
from .service import VendorApprovalService, build_service
from .state import WorkflowStateMachine, current_step
from .triggers import get_trigger
from .variables import VariableStore

__version__ = "0.1.0"
__all__ = [
    "ApproverRecord",
    "CallbackCorrelator",
    "Decision",
    "EnvironmentSynthesizer",
    "Variable",
    "VariableStore",
    "VendorApprovalService",
    "VendorflowConfig",
    "Workflow",
    "WorkflowStateMachine",
    "WorkflowStatus",
    "build_service",
    "current_step",
    "get_storage",
    "get_trigger",
    "load_config",
]
