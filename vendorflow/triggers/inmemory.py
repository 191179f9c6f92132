"""In-memory trigger for testing."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Tuple

from ..constants import DEFAULT_TRIGGER_TIMEOUT
from ..exceptions import TriggerExecutionError
from ..variables import VariableStore, to_variable_value
from .base import BaseTrigger, StepExecution, TriggerSummary


class InMemoryTrigger(BaseTrigger):
    """Scripted stand-in for the external engine.

    ``variables`` maps a step name to the variables that step writes into
    the shared context when it runs.
    """

    def __init__(
        self,
        variables: Optional[Dict[str, Dict[str, Any]]] = None,
        timeout: float = DEFAULT_TRIGGER_TIMEOUT,
        fail_on: Optional[str] = None,
        delay: float = 0.0,
    ) -> None:
        super().__init__(timeout=timeout)
        self.variables = variables or {}
        self.fail_on = fail_on
        self.delay = delay
        self.invocations: List[Tuple[List[str], Dict[str, str]]] = []

    async def _run(self, steps: List[str], context: VariableStore) -> TriggerSummary:
        self.invocations.append((list(steps), context.as_dict()))
        if self.delay:
            await asyncio.sleep(self.delay)

        summary = TriggerSummary(collection="inmemory", steps=steps)
        for step in steps:
            if step == self.fail_on:
                raise TriggerExecutionError(f"Step '{step}' failed", step=step)
            for key, value in self.variables.get(step, {}).items():
                context.set(key, to_variable_value(value))
            summary.executions.append(StepExecution(step=step, request=step, status_code=200))
        return summary
