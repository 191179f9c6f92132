"""Build and update the per-workflow variable environment."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import VendorflowConfig
from .contracts import Decision, Variable, uploaded_files
from .variables import VariableStore, to_variable_value

logger = logging.getLogger(__name__)

BUSINESS_FIELDS = ("business_contact_number", "address", "business_license_id")


def _reported_items(reported: Any) -> List[Any]:
    """Unwrap the reported variable list from a trigger result.

    Accepts a plain list, a mapping holding the list under ``values`` or an
    object exposing it as a ``values`` attribute.
    """
    if reported is None:
        return []
    if isinstance(reported, dict):
        reported = reported.get("values")
    elif not isinstance(reported, (list, tuple)):
        reported = getattr(reported, "values", None)
    if not reported or not isinstance(reported, (list, tuple)):
        return []
    return list(reported)


def _as_variable(item: Any) -> Optional[Variable]:
    if isinstance(item, Variable):
        return item.model_copy()
    if not isinstance(item, dict):
        return None
    key = item.get("key")
    if not key or "value" not in item or item["value"] is None:
        return None
    return Variable(
        key=str(key),
        value=to_variable_value(item["value"]),
        type=item.get("type") or "default",
        enabled=item.get("enabled", True),
    )


class EnvironmentSynthesizer:
    """Synthesizes and maintains the variable set fed to the trigger."""

    def __init__(self, config: VendorflowConfig) -> None:
        self._config = config

    def base_template(self) -> VariableStore:
        """Load the base environment document, or an empty store."""
        path = self._config.trigger.environment_path
        if not path or not Path(path).exists():
            return VariableStore()
        with open(path) as f:
            document = json.load(f)
        return VariableStore.from_document(document)

    def build_initial(
        self, form_data: Dict[str, Any], workflow_id: str, base_url: str
    ) -> VariableStore:
        store = self.base_template()
        store.name = f"vendorflow-{workflow_id}"

        store.set("contact_email", form_data.get("applicant_email") or "")
        store.set("business_name", form_data.get("business_name") or "")
        for field in BUSINESS_FIELDS:
            store.set(field, to_variable_value(form_data.get(field) or ""))

        for ordinal, approver in enumerate(self._config.approvers, start=1):
            store.set(f"approver{ordinal}_email", approver.email)

        store.set("workflow_id", workflow_id)

        for index, upload in enumerate(uploaded_files(form_data), start=1):
            store.set(f"document_url_{index}", f"{base_url}{upload.public_url}")

        logger.debug(f"Synthesized {len(store)} variables for {workflow_id}")
        return store

    def merge(self, store: VariableStore, reported: Any) -> VariableStore:
        """Overwrite-or-append reported variables into ``store``."""
        merged = 0
        for item in _reported_items(reported):
            variable = _as_variable(item)
            if variable is None:
                continue
            store.put(variable)
            merged += 1
        if merged:
            logger.debug(f"Merged {merged} reported variables into {store.name}")
        return store

    def append_decision(
        self,
        store: VariableStore,
        approver_id: int,
        decision: Decision | str,
        reason: Optional[str] = None,
    ) -> VariableStore:
        # The scripted steps read both the "current target" names and the
        # per-approver history names; keep them in sync.
        value = Decision(decision).value
        reason = reason or ""
        store.set("target_approver", str(approver_id))
        store.set("approver_decision", value)
        store.set("rejection_reason", reason)
        store.set(f"approver{approver_id}_decision", value)
        store.set(f"approver{approver_id}_reason", reason)
        return store

    def reported_value(self, reported: Any, key: str) -> Optional[str]:
        """Return the value of ``key`` in a reported variable list, if any."""
        found: Optional[str] = None
        for item in _reported_items(reported):
            variable = _as_variable(item)
            if variable is not None and variable.key == key and variable.value:
                found = variable.value
        return found
