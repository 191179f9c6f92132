"""HTTP trigger replaying a script collection with httpx."""

from __future__ import annotations

import json
import logging
import re
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

import httpx

from ..constants import DEFAULT_TRIGGER_TIMEOUT
from ..exceptions import TriggerExecutionError
from ..variables import VariableStore, to_variable_value
from .base import BaseTrigger, StepExecution, TriggerSummary
from .collection import ScriptCollection, ScriptItem

logger = logging.getLogger(__name__)

PLACEHOLDER = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")
BODY_CAPTURE = "$body"


def _dynamic_value(name: str) -> Optional[str]:
    if name == "$guid":
        return str(uuid.uuid4())
    if name == "$timestamp":
        return str(int(time.time()))
    if name == "$isoTimestamp":
        return datetime.now(timezone.utc).isoformat()
    return None


def resolve_placeholders(text: str, variables: Mapping[str, str]) -> str:
    """Replace ``{{name}}`` placeholders; unknown names are left intact."""

    def _sub(match: re.Match[str]) -> str:
        name = match.group(1)
        if name in variables:
            return variables[name]
        dynamic = _dynamic_value(name)
        return dynamic if dynamic is not None else match.group(0)

    return PLACEHOLDER.sub(_sub, text)


def extract_path(data: Any, path: str) -> Any:
    """Follow a dotted path (``data.items.0.id``) through JSON data."""
    current = data
    for part in path.split("."):
        if isinstance(current, dict):
            if part not in current:
                return None
            current = current[part]
        elif isinstance(current, list) and part.isdigit():
            index = int(part)
            if index >= len(current):
                return None
            current = current[index]
        else:
            return None
    return current


class HttpTrigger(BaseTrigger):
    """Executes collection requests in order against a shared context."""

    def __init__(
        self,
        collection: ScriptCollection,
        timeout: float = DEFAULT_TRIGGER_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(timeout=timeout)
        self.collection = collection
        self._transport = transport

    async def _run(self, steps: List[str], context: VariableStore) -> TriggerSummary:
        plan: List[Tuple[str, List[ScriptItem]]] = [
            (step, self.collection.select([step])) for step in steps
        ]
        summary = TriggerSummary(
            collection=self.collection.info.name,
            version=self.collection.info.version,
            steps=steps,
        )
        # per-request limits follow the sequence ceiling
        async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
            for step, items in plan:
                for item in items:
                    execution = await self._send(client, step, item, context)
                    summary.executions.append(execution)
        return summary

    async def _send(
        self,
        client: httpx.AsyncClient,
        step: str,
        item: ScriptItem,
        context: VariableStore,
    ) -> StepExecution:
        request = item.request
        variables = context.as_dict()
        method = request.method.upper()
        url = resolve_placeholders(request.raw_url, variables)
        headers = {
            h.key: resolve_placeholders(h.value, variables)
            for h in request.header
            if not h.disabled
        }
        content: Optional[str] = None
        data: Optional[Dict[str, str]] = None
        if request.body is not None:
            if request.body.mode == "urlencoded":
                data = {
                    kv.key: resolve_placeholders(kv.value, variables)
                    for kv in request.body.urlencoded
                    if not kv.disabled
                }
            elif request.body.raw:
                content = resolve_placeholders(request.body.raw, variables)

        started = time.perf_counter()
        try:
            response = await client.request(
                method, url, headers=headers, content=content, data=data
            )
        except httpx.HTTPError as exc:
            logger.error(f"Request '{item.name}' in step '{step}' failed: {exc}")
            raise TriggerExecutionError(
                f"Request '{item.name}' failed: {exc}", step=step
            ) from exc
        elapsed_ms = (time.perf_counter() - started) * 1000

        if response.status_code >= 400:
            logger.error(
                f"Request '{item.name}' in step '{step}' returned {response.status_code}"
            )
            raise TriggerExecutionError(
                f"Request '{item.name}' returned HTTP {response.status_code}",
                step=step,
            )

        if item.capture:
            self._capture(item, response, context)

        return StepExecution(
            step=step,
            request=item.name,
            method=method,
            url=url,
            status_code=response.status_code,
            elapsed_ms=elapsed_ms,
        )

    def _capture(
        self, item: ScriptItem, response: httpx.Response, context: VariableStore
    ) -> None:
        try:
            body: Any = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            body = None
        for key, path in item.capture.items():
            if path == BODY_CAPTURE:
                value: Any = response.text
            else:
                value = extract_path(body, path)
            if value is None:
                logger.debug(f"Capture '{key}' <- '{path}' found nothing in '{item.name}'")
                continue
            context.set(key, to_variable_value(value))
