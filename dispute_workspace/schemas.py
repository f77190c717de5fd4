"""
Pydantic Schemas for the Dispute Workspace
==========================================

Inputs are typed, already-normalized payloads. Update payloads remember which
fields the caller actually sent, so omitted fields are left untouched while an
explicit None clears a value.

Outputs are immutable value structs built from ORM rows. They serialize to the
camelCase shape the HTTP layer returns: view.model_dump(by_alias=True).
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, field_validator
from pydantic.alias_generators import to_camel

from .db.models import (
    CaseCategory, CaseStatus, CaseSeverity, TaskStatus, NoteType, NoteVisibility,
)


def _naive_utc(value):
    # Stored datetimes are naive UTC
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# =============================================================================
# INPUT PAYLOADS
# =============================================================================

class _Payload(BaseModel):
    """Accepts snake_case or camelCase keys; unknown keys are dropped."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        extra = "ignore"

    @field_validator("*", mode="after")
    @classmethod
    def _normalize_datetimes(cls, value):
        return _naive_utc(value)

    def changes(self) -> Dict[str, Any]:
        """Only the fields the caller supplied, keyed by column name."""
        return self.model_dump(exclude_unset=True)


class _CaseFields(_Payload):
    case_number: Optional[str] = None
    dispute_id: Optional[str] = None
    title: Optional[str] = None
    category: Optional[CaseCategory] = None
    status: Optional[CaseStatus] = None
    severity: Optional[CaseSeverity] = None
    summary: Optional[str] = None
    next_step: Optional[str] = None
    assigned_team: Optional[str] = None
    assigned_owner: Optional[str] = None
    resolution_notes: Optional[str] = None
    external_reference: Optional[str] = None
    amount_disputed: Optional[float] = None
    currency: Optional[str] = None
    opened_at: Optional[datetime] = None
    due_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    sla_due_at: Optional[datetime] = None
    requires_follow_up: Optional[bool] = None
    last_reviewed_at: Optional[datetime] = None


class CaseCreate(_CaseFields):
    """New dispute case; title is required at the domain layer"""


class CaseUpdate(_CaseFields):
    """Partial case update"""


class _TaskFields(_Payload):
    label: Optional[str] = None
    status: Optional[TaskStatus] = None
    due_at: Optional[datetime] = None
    assigned_to: Optional[str] = None
    instructions: Optional[str] = None
    completed_at: Optional[datetime] = None


class TaskCreate(_TaskFields):
    """New task; label is required at the domain layer"""


class TaskUpdate(_TaskFields):
    """Partial task update"""


class _NoteFields(_Payload):
    note_type: Optional[NoteType] = None
    visibility: Optional[NoteVisibility] = None
    body: Optional[str] = None
    next_steps: Optional[str] = None
    pinned: Optional[bool] = None
    author_id: Optional[str] = None


class NoteCreate(_NoteFields):
    """New note; body is required at the domain layer"""


class NoteUpdate(_NoteFields):
    """Partial note update"""


class _EvidenceFields(_Payload):
    label: Optional[str] = None
    file_url: Optional[str] = None
    file_type: Optional[str] = None
    thumbnail_url: Optional[str] = None
    notes: Optional[str] = None
    uploaded_by: Optional[str] = None


class EvidenceCreate(_EvidenceFields):
    """New evidence; label and file_url are required at the domain layer"""


class EvidenceUpdate(_EvidenceFields):
    """Partial evidence update"""


# =============================================================================
# OUTPUT VIEWS
# =============================================================================

class _View(BaseModel):
    class Config:
        frozen = True
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True
        use_enum_values = True


class PlatformDisputeView(_View):
    id: str
    status: str
    opened_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None


class DisputeTaskView(_View):
    id: str
    case_id: str
    label: str
    status: TaskStatus
    due_at: Optional[datetime] = None
    assigned_to: Optional[str] = None
    instructions: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DisputeNoteView(_View):
    id: str
    case_id: str
    author_id: Optional[str] = None
    note_type: NoteType
    visibility: NoteVisibility
    body: str
    next_steps: Optional[str] = None
    pinned: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DisputeEvidenceView(_View):
    id: str
    case_id: str
    uploaded_by: Optional[str] = None
    label: str
    file_url: str
    file_type: Optional[str] = None
    thumbnail_url: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DisputeCaseView(_View):
    id: str
    owner_id: str
    dispute_id: Optional[str] = None
    case_number: str
    title: str
    category: CaseCategory
    status: CaseStatus
    severity: CaseSeverity
    summary: Optional[str] = None
    next_step: Optional[str] = None
    assigned_team: Optional[str] = None
    assigned_owner: Optional[str] = None
    resolution_notes: Optional[str] = None
    external_reference: Optional[str] = None
    amount_disputed: Optional[float] = None
    currency: str
    opened_at: Optional[datetime] = None
    due_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    sla_due_at: Optional[datetime] = None
    requires_follow_up: bool = False
    last_reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    platform_dispute: Optional[PlatformDisputeView] = None
    tasks: Tuple[DisputeTaskView, ...] = ()
    notes: Tuple[DisputeNoteView, ...] = ()
    evidence: Tuple[DisputeEvidenceView, ...] = ()


class WorkspaceMetrics(_View):
    """Derived, never stored"""
    status_counts: Dict[str, int]
    requires_follow_up: int = 0
    overdue: int = 0
    active_tasks: int = 0
    total_disputed_amount: float = 0.0
    total_cases: int = 0


class Workspace(_View):
    cases: Tuple[DisputeCaseView, ...] = ()
    metrics: WorkspaceMetrics
