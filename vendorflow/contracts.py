"""Core data contracts for the vendorflow approval workflow."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .constants import WORKFLOW_ID_PREFIX
from .exceptions import ValidationError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_workflow_id() -> str:
    """Generate an opaque local workflow identifier."""
    return f"{WORKFLOW_ID_PREFIX}{uuid.uuid4().hex[:12]}"


class WorkflowStatus(str, Enum):
    RUNNING = "RUNNING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    ERROR = "ERROR"

    @property
    def is_terminal(self) -> bool:
        return self is not WorkflowStatus.RUNNING


class Decision(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Workflow(BaseModel):
    """One applicant submission and its approval lifecycle."""

    workflow_id: str = Field(default_factory=new_workflow_id)
    applicant_email: str
    business_name: str
    status: WorkflowStatus = WorkflowStatus.RUNNING
    correlation_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    form_data: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


class ApproverRecord(BaseModel):
    """Decision of one approver ordinal on one workflow."""

    workflow_id: str
    approver_id: int
    decision: Decision = Decision.PENDING
    reason: Optional[str] = None
    updated_at: datetime = Field(default_factory=utcnow)


class Variable(BaseModel):
    """A single named string variable in a workflow's environment."""

    key: str
    value: str = ""
    type: str = "default"
    enabled: bool = True


class TransactionLogEntry(BaseModel):
    """Append-only audit record."""

    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    workflow_id: str
    type: str
    status: str
    details: str = ""
    created_at: datetime = Field(default_factory=utcnow)


class UploadedFile(BaseModel):
    """Reference to a file uploaded before submission."""

    model_config = ConfigDict(populate_by_name=True)

    file_id: str = Field(alias="fileId")
    original_name: str = Field(default="", alias="originalName")
    public_url: str = Field(alias="publicUrl")
    size: Optional[int] = None
    type: Optional[str] = None

    @property
    def filename(self) -> str:
        return self.public_url.rsplit("/", 1)[-1]


class FileRecord(BaseModel):
    """Persisted metadata for an uploaded file attached to a workflow."""

    workflow_id: str
    file_id: str
    original_name: str
    filename: str
    public_url: str
    size: Optional[int] = None
    mime_type: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


def uploaded_files(form_data: Dict[str, Any]) -> List[UploadedFile]:
    """Return the uploaded file references carried by a form, in upload order."""
    raw = form_data.get("uploaded_files") or form_data.get("uploadedFiles") or []
    if not isinstance(raw, list):
        raise ValidationError("uploaded_files must be a list of file references")
    try:
        return [UploadedFile.model_validate(item) for item in raw]
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid uploaded file reference: {exc}") from exc


class SubmissionReceipt(BaseModel):
    workflow_id: str
    message: str = "Application submitted successfully"


class Ack(BaseModel):
    success: bool = True
    message: str = ""


class WorkflowStatusView(BaseModel):
    """Read model returned by ``get_workflow_status``."""

    workflow_id: str
    status: WorkflowStatus
    current_step: str
    approver_statuses: Dict[str, Decision] = Field(default_factory=dict)
    business_name: str
    applicant_email: str
    created_at: datetime
    last_update: datetime


class ApplicationSummary(BaseModel):
    """Workflow listing row with its attached files."""

    workflow: Workflow
    file_count: int = 0
    file_urls: List[str] = Field(default_factory=list)
    file_names: List[str] = Field(default_factory=list)


class PendingApplication(BaseModel):
    """Entry of an approver's work queue."""

    workflow_id: str
    business_name: str
    applicant_email: str
    created_at: datetime
    approver_id: int
