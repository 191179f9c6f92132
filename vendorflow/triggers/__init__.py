"""Trigger factory and initialization."""

from __future__ import annotations

import os
from typing import Optional

from ..config import VendorflowConfig, load_config
from .base import BaseTrigger, ReportedEnvironment, TriggerResult, TriggerSummary
from .inmemory import InMemoryTrigger


def get_trigger(
    backend: Optional[str] = None, config: Optional[VendorflowConfig] = None
) -> BaseTrigger:
    """Factory function to get the configured trigger."""

    config = config or load_config()
    backend = (
        backend or os.getenv("VENDORFLOW_TRIGGER") or config.trigger.backend
    ).lower()

    if backend == "inmemory":
        return InMemoryTrigger(timeout=config.trigger.timeout)
    elif backend == "http":
        from .collection import ScriptCollection
        from .http import HttpTrigger

        collection = ScriptCollection.load(config.trigger.collection_path)
        return HttpTrigger(collection, timeout=config.trigger.timeout)
    else:
        raise ValueError(f"Unsupported trigger backend: {backend}")


__all__ = [
    "BaseTrigger",
    "InMemoryTrigger",
    "ReportedEnvironment",
    "TriggerResult",
    "TriggerSummary",
    "get_trigger",
]
