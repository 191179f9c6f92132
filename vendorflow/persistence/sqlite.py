"""SQLite implementation of workflow storage."""

from __future__ import annotations

import asyncio
import json
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any

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


class SQLiteWorkflowStorage(WorkflowStorage):
    """Persist workflow state using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        if self.db_path != ":memory:":
            self._conn.execute("PRAGMA journal_mode = WAL")
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflows (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                workflow_id TEXT UNIQUE NOT NULL,
                applicant_email TEXT NOT NULL,
                business_name TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'RUNNING',
                correlation_id TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                form_data TEXT
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS approver_actions (
                workflow_id TEXT NOT NULL,
                approver_id INTEGER NOT NULL,
                decision TEXT NOT NULL,
                reason TEXT,
                updated_at TEXT NOT NULL,
                PRIMARY KEY (workflow_id, approver_id)
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS transactions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                workflow_id TEXT NOT NULL,
                type TEXT NOT NULL,
                status TEXT NOT NULL,
                details TEXT,
                created_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS files (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                workflow_id TEXT NOT NULL,
                file_id TEXT NOT NULL,
                original_name TEXT NOT NULL,
                filename TEXT NOT NULL,
                public_url TEXT NOT NULL,
                size INTEGER,
                mime_type TEXT,
                created_at TEXT NOT NULL
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> int:
        cur = self._conn.cursor()
        cur.execute(query, params)
        self._conn.commit()
        return cur.rowcount

    def _insert(self, query: str, *params: Any) -> int:
        cur = self._conn.cursor()
        cur.execute(query, params)
        self._conn.commit()
        return cur.lastrowid

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchall()

    @staticmethod
    def _to_workflow(row: sqlite3.Row) -> Workflow:
        return Workflow(
            workflow_id=row["workflow_id"],
            applicant_email=row["applicant_email"],
            business_name=row["business_name"],
            status=row["status"],
            correlation_id=row["correlation_id"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            form_data=json.loads(row["form_data"]) if row["form_data"] else {},
        )

    async def _fetch_workflow(self, where: str, *params: Any) -> Workflow | None:
        row = await asyncio.to_thread(
            self._fetchone,
            f"SELECT {WORKFLOW_COLUMNS} FROM workflows WHERE {where} "
            "ORDER BY created_at DESC, id DESC LIMIT 1",
            *params,
        )
        return self._to_workflow(row) if row else None

    # ------------------------------------------------------------------
    # Storage API
    async def create_workflow(self, workflow: Workflow) -> None:
        await asyncio.to_thread(
            self._execute,
            f"INSERT INTO workflows ({WORKFLOW_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            workflow.workflow_id,
            workflow.applicant_email,
            workflow.business_name,
            workflow.status.value,
            workflow.correlation_id,
            workflow.created_at.isoformat(),
            workflow.updated_at.isoformat(),
            json.dumps(workflow.form_data),
        )

    async def get_workflow_by_id(self, workflow_id: str) -> Workflow | None:
        return await self._fetch_workflow("workflow_id = ?", workflow_id)

    async def get_workflow_by_applicant_email(self, applicant_email: str) -> Workflow | None:
        return await self._fetch_workflow("applicant_email = ?", applicant_email)

    async def get_workflow_by_correlation_id(self, correlation_id: str) -> Workflow | None:
        return await self._fetch_workflow("correlation_id = ?", correlation_id)

    async def update_workflow_status(self, workflow_id: str, status: WorkflowStatus) -> bool:
        changed = await asyncio.to_thread(
            self._execute,
            "UPDATE workflows SET status = ?, updated_at = ? WHERE workflow_id = ?",
            WorkflowStatus(status).value,
            utcnow().isoformat(),
            workflow_id,
        )
        return changed > 0

    async def set_correlation_id(self, workflow_id: str, correlation_id: str) -> bool:
        changed = await asyncio.to_thread(
            self._execute,
            "UPDATE workflows SET correlation_id = ?, updated_at = ? WHERE workflow_id = ?",
            correlation_id,
            utcnow().isoformat(),
            workflow_id,
        )
        return changed > 0

    async def list_workflows(self, status: WorkflowStatus | None = None) -> list[Workflow]:
        if status is None:
            rows = await asyncio.to_thread(
                self._fetchall,
                f"SELECT {WORKFLOW_COLUMNS} FROM workflows ORDER BY created_at DESC, id DESC",
            )
        else:
            rows = await asyncio.to_thread(
                self._fetchall,
                f"SELECT {WORKFLOW_COLUMNS} FROM workflows WHERE status = ? "
                "ORDER BY created_at DESC, id DESC",
                WorkflowStatus(status).value,
            )
        return [self._to_workflow(row) for row in rows]

    async def upsert_approver_action(self, record: ApproverRecord) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            INSERT OR REPLACE INTO approver_actions
            (workflow_id, approver_id, decision, reason, updated_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            record.workflow_id,
            record.approver_id,
            record.decision.value,
            record.reason,
            record.updated_at.isoformat(),
        )

    async def list_approver_actions(self, workflow_id: str) -> list[ApproverRecord]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT workflow_id, approver_id, decision, reason, updated_at "
            "FROM approver_actions WHERE workflow_id = ? ORDER BY approver_id",
            workflow_id,
        )
        return [
            ApproverRecord(
                workflow_id=r["workflow_id"],
                approver_id=r["approver_id"],
                decision=r["decision"],
                reason=r["reason"],
                updated_at=datetime.fromisoformat(r["updated_at"]),
            )
            for r in rows
        ]

    async def append_transaction(self, entry: TransactionLogEntry) -> TransactionLogEntry:
        row_id = await asyncio.to_thread(
            self._insert,
            "INSERT INTO transactions (workflow_id, type, status, details, created_at) "
            "VALUES (?, ?, ?, ?, ?)",
            entry.workflow_id,
            entry.type,
            entry.status,
            entry.details,
            entry.created_at.isoformat(),
        )
        return entry.model_copy(update={"id": row_id})

    async def list_transactions(self, workflow_id: str | None = None) -> list[TransactionLogEntry]:
        query = "SELECT id, workflow_id, type, status, details, created_at FROM transactions"
        params: tuple[Any, ...] = ()
        if workflow_id is not None:
            query += " WHERE workflow_id = ?"
            params = (workflow_id,)
        query += " ORDER BY id DESC"
        rows = await asyncio.to_thread(self._fetchall, query, *params)
        return [
            TransactionLogEntry(
                id=r["id"],
                workflow_id=r["workflow_id"],
                type=r["type"],
                status=r["status"],
                details=r["details"] or "",
                created_at=datetime.fromisoformat(r["created_at"]),
            )
            for r in rows
        ]

    async def create_file_record(self, record: FileRecord) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO files
            (workflow_id, file_id, original_name, filename, public_url, size, mime_type, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            record.workflow_id,
            record.file_id,
            record.original_name,
            record.filename,
            record.public_url,
            record.size,
            record.mime_type,
            record.created_at.isoformat(),
        )

    async def list_file_records(self, workflow_id: str) -> list[FileRecord]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT workflow_id, file_id, original_name, filename, public_url, size, "
            "mime_type, created_at FROM files WHERE workflow_id = ? ORDER BY id",
            workflow_id,
        )
        return [
            FileRecord(
                workflow_id=r["workflow_id"],
                file_id=r["file_id"],
                original_name=r["original_name"],
                filename=r["filename"],
                public_url=r["public_url"],
                size=r["size"],
                mime_type=r["mime_type"],
                created_at=datetime.fromisoformat(r["created_at"]),
            )
            for r in rows
        ]

    async def health(self) -> dict[str, Any]:
        workflows = await asyncio.to_thread(
            self._fetchone, "SELECT COUNT(*) AS count FROM workflows"
        )
        transactions = await asyncio.to_thread(
            self._fetchone, "SELECT COUNT(*) AS count FROM transactions"
        )
        return {
            "status": "healthy",
            "type": "sqlite",
            "database": self.db_path,
            "workflows": workflows["count"],
            "transactions": transactions["count"],
        }

    async def close(self) -> None:
        self._conn.close()
