"""Persistence layer for vendorflow workflows."""

from __future__ import annotations

import os
from typing import Optional

from ..config import VendorflowConfig, load_config
from .environments import EnvironmentDocumentStore
from .inmemory import InMemoryWorkflowStorage
from .jsonfile import JsonFileWorkflowStorage
from .repository import WorkflowStorage
from .sqlite import SQLiteWorkflowStorage


def get_storage(
    database_url: Optional[str] = None, config: Optional[VendorflowConfig] = None
) -> WorkflowStorage:
    """Factory function to obtain a workflow storage backend.

    The backend is selected from ``database_url`` which can be provided
    explicitly, via environment variable ``VENDORFLOW_DATABASE_URL`` or
    ``DATABASE_URL``, or from loaded configuration. When no database is
    configured, an in-memory storage is returned.
    """

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("VENDORFLOW_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or config.database_url
    )

    if not database_url or database_url.startswith("memory://"):
        return InMemoryWorkflowStorage()
    if database_url.startswith("sqlite://"):
        return SQLiteWorkflowStorage(database_url.replace("sqlite://", "", 1))
    if database_url.startswith("file://"):
        return JsonFileWorkflowStorage(database_url.replace("file://", "", 1))
    if database_url.startswith("postgres://") or database_url.startswith(
        "postgresql://"
    ):
        from .postgres import PostgresWorkflowStorage

        return PostgresWorkflowStorage(database_url)
    raise ValueError(f"Unsupported database backend: {database_url}")


__all__ = [
    "EnvironmentDocumentStore",
    "InMemoryWorkflowStorage",
    "JsonFileWorkflowStorage",
    "SQLiteWorkflowStorage",
    "WorkflowStorage",
    "get_storage",
]
