"""PostgreSQL implementation of workflow storage."""

from __future__ import annotations

import json
from typing import Any

import asyncpg

from ..contracts import (
    ApproverRecord,
    FileRecord,
    TransactionLogEntry,
    Workflow,
    WorkflowStatus,
    utcnow,
)
from .repository import WorkflowStorage

WORKFLOW_COLUMNS = (
    "workflow_id, applicant_email, business_name, status, correlation_id, "
    "created_at, updated_at, form_data"
)


def _json(value: Any) -> Any:
    return json.loads(value) if isinstance(value, str) else value


class PostgresWorkflowStorage(WorkflowStorage):
    """Persist workflow state using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workflows (
                id SERIAL PRIMARY KEY,
                workflow_id TEXT UNIQUE NOT NULL,
                applicant_email TEXT NOT NULL,
                business_name TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'RUNNING',
                correlation_id TEXT,
                created_at TIMESTAMPTZ NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL,
                form_data JSONB
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS approver_actions (
                workflow_id TEXT NOT NULL,
                approver_id INTEGER NOT NULL,
                decision TEXT NOT NULL,
                reason TEXT,
                updated_at TIMESTAMPTZ NOT NULL,
                PRIMARY KEY (workflow_id, approver_id)
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS transactions (
                id SERIAL PRIMARY KEY,
                workflow_id TEXT NOT NULL,
                type TEXT NOT NULL,
                status TEXT NOT NULL,
                details TEXT,
                created_at TIMESTAMPTZ NOT NULL
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS files (
                id SERIAL PRIMARY KEY,
                workflow_id TEXT NOT NULL,
                file_id TEXT NOT NULL,
                original_name TEXT NOT NULL,
                filename TEXT NOT NULL,
                public_url TEXT NOT NULL,
                size BIGINT,
                mime_type TEXT,
                created_at TIMESTAMPTZ NOT NULL
            )
            """
        )

    @staticmethod
    def _to_workflow(row: asyncpg.Record) -> Workflow:
        return Workflow(
            workflow_id=row["workflow_id"],
            applicant_email=row["applicant_email"],
            business_name=row["business_name"],
            status=row["status"],
            correlation_id=row["correlation_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            form_data=_json(row["form_data"]) or {},
        )

    async def _fetch_workflow(self, where: str, *params: Any) -> Workflow | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                f"SELECT {WORKFLOW_COLUMNS} FROM workflows WHERE {where} "
                "ORDER BY created_at DESC, id DESC LIMIT 1",
                *params,
            )
        finally:
            await conn.close()
        return self._to_workflow(row) if row else None

    async def _execute(self, query: str, *params: Any) -> int:
        conn = await self._connect()
        try:
            status = await conn.execute(query, *params)
        finally:
            await conn.close()
        # asyncpg returns the command tag, e.g. "UPDATE 1"
        return int(status.split()[-1]) if status.split()[-1].isdigit() else 0

    # ------------------------------------------------------------------
    async def create_workflow(self, workflow: Workflow) -> None:
        await self._execute(
            f"INSERT INTO workflows ({WORKFLOW_COLUMNS}) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)",
            workflow.workflow_id,
            workflow.applicant_email,
            workflow.business_name,
            workflow.status.value,
            workflow.correlation_id,
            workflow.created_at,
            workflow.updated_at,
            json.dumps(workflow.form_data),
        )

    async def get_workflow_by_id(self, workflow_id: str) -> Workflow | None:
        return await self._fetch_workflow("workflow_id = $1", workflow_id)

    async def get_workflow_by_applicant_email(self, applicant_email: str) -> Workflow | None:
        return await self._fetch_workflow("applicant_email = $1", applicant_email)

    async def get_workflow_by_correlation_id(self, correlation_id: str) -> Workflow | None:
        return await self._fetch_workflow("correlation_id = $1", correlation_id)

    async def update_workflow_status(self, workflow_id: str, status: WorkflowStatus) -> bool:
        changed = await self._execute(
            "UPDATE workflows SET status = $1, updated_at = $2 WHERE workflow_id = $3",
            WorkflowStatus(status).value,
            utcnow(),
            workflow_id,
        )
        return changed > 0

    async def set_correlation_id(self, workflow_id: str, correlation_id: str) -> bool:
        changed = await self._execute(
            "UPDATE workflows SET correlation_id = $1, updated_at = $2 WHERE workflow_id = $3",
            correlation_id,
            utcnow(),
            workflow_id,
        )
        return changed > 0

    async def list_workflows(self, status: WorkflowStatus | None = None) -> list[Workflow]:
        conn = await self._connect()
        try:
            if status is None:
                rows = await conn.fetch(
                    f"SELECT {WORKFLOW_COLUMNS} FROM workflows ORDER BY created_at DESC, id DESC"
                )
            else:
                rows = await conn.fetch(
                    f"SELECT {WORKFLOW_COLUMNS} FROM workflows WHERE status = $1 "
                    "ORDER BY created_at DESC, id DESC",
                    WorkflowStatus(status).value,
                )
        finally:
            await conn.close()
        return [self._to_workflow(r) for r in rows]

    async def upsert_approver_action(self, record: ApproverRecord) -> None:
        await self._execute(
            """
            INSERT INTO approver_actions (workflow_id, approver_id, decision, reason, updated_at)
            VALUES ($1, $2, $3, $4, $5)
            ON CONFLICT (workflow_id, approver_id)
            DO UPDATE SET decision = EXCLUDED.decision,
                          reason = EXCLUDED.reason,
                          updated_at = EXCLUDED.updated_at
            """,
            record.workflow_id,
            record.approver_id,
            record.decision.value,
            record.reason,
            record.updated_at,
        )

    async def list_approver_actions(self, workflow_id: str) -> list[ApproverRecord]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                "SELECT workflow_id, approver_id, decision, reason, updated_at "
                "FROM approver_actions WHERE workflow_id = $1 ORDER BY approver_id",
                workflow_id,
            )
        finally:
            await conn.close()
        return [ApproverRecord(**dict(r)) for r in rows]

    async def append_transaction(self, entry: TransactionLogEntry) -> TransactionLogEntry:
        conn = await self._connect()
        try:
            row_id = await conn.fetchval(
                "INSERT INTO transactions (workflow_id, type, status, details, created_at) "
                "VALUES ($1, $2, $3, $4, $5) RETURNING id",
                entry.workflow_id,
                entry.type,
                entry.status,
                entry.details,
                entry.created_at,
            )
        finally:
            await conn.close()
        return entry.model_copy(update={"id": row_id})

    async def list_transactions(self, workflow_id: str | None = None) -> list[TransactionLogEntry]:
        query = "SELECT id, workflow_id, type, status, details, created_at FROM transactions"
        params: tuple[Any, ...] = ()
        if workflow_id is not None:
            query += " WHERE workflow_id = $1"
            params = (workflow_id,)
        query += " ORDER BY id DESC"
        conn = await self._connect()
        try:
            rows = await conn.fetch(query, *params)
        finally:
            await conn.close()
        return [
            TransactionLogEntry(**{**dict(r), "details": r["details"] or ""}) for r in rows
        ]

    async def create_file_record(self, record: FileRecord) -> None:
        await self._execute(
            """
            INSERT INTO files
            (workflow_id, file_id, original_name, filename, public_url, size, mime_type, created_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            """,
            record.workflow_id,
            record.file_id,
            record.original_name,
            record.filename,
            record.public_url,
            record.size,
            record.mime_type,
            record.created_at,
        )

    async def list_file_records(self, workflow_id: str) -> list[FileRecord]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                "SELECT workflow_id, file_id, original_name, filename, public_url, size, "
                "mime_type, created_at FROM files WHERE workflow_id = $1 ORDER BY id",
                workflow_id,
            )
        finally:
            await conn.close()
        return [FileRecord(**dict(r)) for r in rows]

    async def health(self) -> dict[str, Any]:
        conn = await self._connect()
        try:
            workflows = await conn.fetchval("SELECT COUNT(*) FROM workflows")
            transactions = await conn.fetchval("SELECT COUNT(*) FROM transactions")
        finally:
            await conn.close()
        return {
            "status": "healthy",
            "type": "postgres",
            "workflows": workflows,
            "transactions": transactions,
        }

    async def close(self) -> None:
        pass
