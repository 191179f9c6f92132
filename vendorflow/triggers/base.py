"""Base interface for the external trigger mechanism."""

from __future__ import annotations

import abc
import asyncio
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from pydantic import BaseModel, Field

from ..constants import DEFAULT_TRIGGER_TIMEOUT
from ..contracts import Variable, utcnow
from ..exceptions import TriggerError, TriggerTimeoutError
from ..variables import VariableStore

logger = logging.getLogger(__name__)


class StepExecution(BaseModel):
    """Outcome of one scripted request."""

    step: str
    request: str
    method: str = "GET"
    url: str = ""
    status_code: Optional[int] = None
    elapsed_ms: float = 0.0


class TriggerSummary(BaseModel):
    """Execution summary of one invocation."""

    collection: str = ""
    version: str = ""
    steps: List[str] = Field(default_factory=list)
    executions: List[StepExecution] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=utcnow)
    finished_at: Optional[datetime] = None


class ReportedEnvironment(BaseModel):
    """Variables present in the shared context after the last step."""

    values: List[Variable] = Field(default_factory=list)


class TriggerResult(BaseModel):
    summary: TriggerSummary
    environment: ReportedEnvironment = Field(default_factory=ReportedEnvironment)


class BaseTrigger(metaclass=abc.ABCMeta):
    """Abstract executor of scripted external request sequences."""

    def __init__(self, timeout: float = DEFAULT_TRIGGER_TIMEOUT) -> None:
        self.timeout = timeout

    async def invoke(self, steps: Sequence[str], store: VariableStore) -> TriggerResult:
        """Run ``steps`` in order against one context seeded from ``store``.

        The whole sequence is bounded by ``timeout``. ``store`` itself is never
        modified; the caller merges the reported environment back.

        Raises:
            TriggerTimeoutError: The sequence did not finish in time.
            TriggerExecutionError: A step failed. No variables are reported.
        """
        steps = list(steps)
        context = store.copy()
        try:
            summary = await asyncio.wait_for(
                self._run(steps, context), timeout=self.timeout
            )
        except TriggerError:
            raise
        except asyncio.TimeoutError as exc:
            raise TriggerTimeoutError(
                f"Trigger steps {steps} exceeded {self.timeout}s"
            ) from exc

        summary.finished_at = utcnow()
        logger.info(f"Trigger completed for step(s) {steps}")
        return TriggerResult(
            summary=summary,
            environment=ReportedEnvironment(values=list(context)),
        )

    @abc.abstractmethod
    async def _run(self, steps: List[str], context: VariableStore) -> TriggerSummary:
        """Execute ``steps``, writing produced variables into ``context``."""
        raise NotImplementedError
