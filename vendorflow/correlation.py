"""Map inbound callbacks from the external engine to tracked workflows.

The remote engine does not reliably echo a stable foreign key, so matching is
an ordered chain of strategies where the first match wins. Once the engine
always reports its own workflow id the chain can be reduced to
``ExternalCorrelationIdStrategy`` alone by passing ``strategies``.
"""

from __future__ import annotations

import abc
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

from pydantic import BaseModel

from .constants import WORKFLOW_ID_PREFIX
from .contracts import Workflow, WorkflowStatus
from .exceptions import CorrelationMiss
from .persistence import WorkflowStorage

logger = logging.getLogger(__name__)

NESTED_KEYS = ("input", "output", "variables", "workflowInput")

LOCAL_ID_KEYS = ("workflow_id", "workflowId")
EMAIL_KEYS = ("applicant_email", "applicantEmail", "contact_email", "email")
EXTERNAL_ID_KEYS = (
    "correlation_id",
    "correlationId",
    "workflowInstanceId",
    "external_workflow_id",
    "workflow_id",
    "workflowId",
)
BUSINESS_NAME_KEYS = ("business_name", "businessName")


def payload_values(payload: Dict[str, Any], keys: Sequence[str]) -> List[str]:
    """Collect non-empty string values for ``keys``.

    The top level is searched first, then the nested objects the engine uses
    for workflow input and output.
    """
    scopes: List[Dict[str, Any]] = [payload]
    for nested in NESTED_KEYS:
        value = payload.get(nested)
        if isinstance(value, dict):
            scopes.append(value)

    found: List[str] = []
    for scope in scopes:
        for key in keys:
            value = scope.get(key)
            if isinstance(value, str) and value.strip() and value.strip() not in found:
                found.append(value.strip())
    return found


class CorrelationMatch(BaseModel):
    workflow: Workflow
    strategy: str


class CorrelationStrategy(metaclass=abc.ABCMeta):
    name: str = ""

    @abc.abstractmethod
    async def match(
        self, payload: Dict[str, Any], storage: WorkflowStorage
    ) -> Optional[Workflow]:
        raise NotImplementedError


class LocalWorkflowIdStrategy(CorrelationStrategy):
    """The callback echoes our own workflow identifier."""

    name = "workflow_id"

    async def match(self, payload, storage):
        for value in payload_values(payload, LOCAL_ID_KEYS):
            if not value.startswith(WORKFLOW_ID_PREFIX):
                continue
            workflow = await storage.get_workflow_by_id(value)
            if workflow is not None:
                return workflow
        return None


class ApplicantEmailStrategy(CorrelationStrategy):
    """Newest RUNNING workflow of the applicant, else their newest workflow.

    The fallback keeps duplicate callbacks for a finished workflow bound to it.
    """

    name = "applicant_email"

    async def match(self, payload, storage):
        emails = payload_values(payload, EMAIL_KEYS)
        if not emails:
            return None
        running = await storage.list_workflows(status=WorkflowStatus.RUNNING)
        for value in emails:
            for workflow in running:
                if workflow.applicant_email == value:
                    return workflow
        for value in emails:
            workflow = await storage.get_workflow_by_applicant_email(value)
            if workflow is not None:
                return workflow
        return None


class ExternalCorrelationIdStrategy(CorrelationStrategy):
    """Identifier stamped earlier from the trigger's reported variables."""

    name = "correlation_id"

    async def match(self, payload, storage):
        for value in payload_values(payload, EXTERNAL_ID_KEYS):
            workflow = await storage.get_workflow_by_correlation_id(value)
            if workflow is not None:
                return workflow
        return None


class BusinessNameStrategy(CorrelationStrategy):
    """Last resort: newest RUNNING workflow with the same business name."""

    name = "business_name"

    async def match(self, payload, storage):
        names = payload_values(payload, BUSINESS_NAME_KEYS)
        if not names:
            return None
        running = await storage.list_workflows(status=WorkflowStatus.RUNNING)
        for name in names:
            candidates = [wf for wf in running if wf.business_name == name]
            if candidates:
                return max(candidates, key=lambda wf: wf.created_at)
        return None


def default_strategies() -> List[CorrelationStrategy]:
    return [
        LocalWorkflowIdStrategy(),
        ApplicantEmailStrategy(),
        ExternalCorrelationIdStrategy(),
        BusinessNameStrategy(),
    ]


class CallbackCorrelator:
    """Resolve a loosely structured callback payload to one workflow."""

    def __init__(
        self,
        storage: WorkflowStorage,
        strategies: Optional[Iterable[CorrelationStrategy]] = None,
    ) -> None:
        self._storage = storage
        self.strategies = list(strategies) if strategies is not None else default_strategies()

    async def resolve(self, payload: Dict[str, Any]) -> Optional[CorrelationMatch]:
        if not isinstance(payload, dict):
            return None
        for strategy in self.strategies:
            workflow = await strategy.match(payload, self._storage)
            if workflow is not None:
                logger.info(
                    f"Callback correlated to {workflow.workflow_id} by {strategy.name}"
                )
                return CorrelationMatch(workflow=workflow, strategy=strategy.name)
        return None

    async def require(self, payload: Dict[str, Any]) -> CorrelationMatch:
        """Like ``resolve`` but raises ``CorrelationMiss`` when nothing matches."""
        match = await self.resolve(payload)
        if match is None:
            raise CorrelationMiss(payload if isinstance(payload, dict) else {})
        return match
