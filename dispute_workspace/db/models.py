"""
SQLAlchemy Models for Database
==============================

Schema for the dispute case workspace:
- Dispute cases owned by a responsible party (the serviceman)
- Child tasks, notes and evidence, deleted with their case
- Platform-level dispute records a case may link to

Supports both PostgreSQL and SQLite via SQLAlchemy.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, Text, Numeric, Boolean, DateTime, Enum, ForeignKey, Index
)
from sqlalchemy.orm import relationship, declarative_base

Base = declarative_base()


def generate_uuid():
    return str(uuid.uuid4())


def utcnow():
    """Naive UTC timestamp; all stored datetimes are naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _enum_column(enum_cls, **kwargs):
    # Persist enum values ("under_review"), not member names ("UNDER_REVIEW")
    return Column(
        Enum(enum_cls, values_callable=lambda members: [m.value for m in members],
             name=f"{enum_cls.__name__.lower()}_enum"),
        **kwargs
    )


# =============================================================================
# ENUMS
# =============================================================================

class CaseCategory(str, enum.Enum):
    """What the dispute is about"""
    BILLING = "billing"
    SERVICE_QUALITY = "service_quality"
    DAMAGE = "damage"
    TIMELINE = "timeline"
    COMPLIANCE = "compliance"
    OTHER = "other"


class CaseStatus(str, enum.Enum):
    """Dispute case lifecycle status"""
    DRAFT = "draft"
    OPEN = "open"
    UNDER_REVIEW = "under_review"
    AWAITING_CUSTOMER = "awaiting_customer"
    RESOLVED = "resolved"
    CLOSED = "closed"


class CaseSeverity(str, enum.Enum):
    """Dispute case severity"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class TaskStatus(str, enum.Enum):
    """Dispute task status"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class NoteType(str, enum.Enum):
    """Kind of note recorded against a case"""
    UPDATE = "update"
    CALL = "call"
    DECISION = "decision"
    ESCALATION = "escalation"
    REMINDER = "reminder"
    OTHER = "other"


class NoteVisibility(str, enum.Enum):
    """Audience a note is meant for"""
    CUSTOMER = "customer"
    INTERNAL = "internal"
    PROVIDER = "provider"
    FINANCE = "finance"
    COMPLIANCE = "compliance"


# =============================================================================
# PLATFORM DISPUTES
# =============================================================================

class PlatformDispute(Base):
    """Platform-level dispute record (owned by the marketplace, read-only here)"""
    __tablename__ = "platform_disputes"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    status = Column(String(32), nullable=False, default="open")
    opened_at = Column(DateTime, nullable=True)
    closed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)


# =============================================================================
# DISPUTE CASE MODELS
# =============================================================================

class DisputeCase(Base):
    """Dispute case in an owner's workspace"""
    __tablename__ = "dispute_cases"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    owner_id = Column(String(36), nullable=False)
    dispute_id = Column(String(36), ForeignKey("platform_disputes.id", ondelete="SET NULL"), nullable=True)
    case_number = Column(String(32), nullable=False)

    title = Column(Text, nullable=False)
    category = _enum_column(CaseCategory, default=CaseCategory.BILLING, nullable=False)
    status = _enum_column(CaseStatus, default=CaseStatus.DRAFT, nullable=False)
    severity = _enum_column(CaseSeverity, default=CaseSeverity.MEDIUM, nullable=False)

    summary = Column(Text, nullable=True)
    next_step = Column(Text, nullable=True)
    assigned_team = Column(Text, nullable=True)
    assigned_owner = Column(Text, nullable=True)
    resolution_notes = Column(Text, nullable=True)
    external_reference = Column(Text, nullable=True)

    amount_disputed = Column(Numeric(12, 2, asdecimal=False), nullable=True)
    currency = Column(String(12), nullable=False, default="GBP")

    opened_at = Column(DateTime, nullable=True)
    due_at = Column(DateTime, nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    sla_due_at = Column(DateTime, nullable=True)
    last_reviewed_at = Column(DateTime, nullable=True)
    requires_follow_up = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Case numbers are globally addressable, not per owner
    __table_args__ = (
        Index("ix_dispute_cases_owner", "owner_id"),
        Index("uq_dispute_cases_case_number", "case_number", unique=True),
        Index("ix_dispute_cases_status", "status"),
    )

    # Relationships
    platform_dispute = relationship("PlatformDispute")
    tasks = relationship(
        "DisputeTask", back_populates="case", cascade="all, delete-orphan",
        order_by=lambda: [DisputeTask.status, DisputeTask.due_at, DisputeTask.created_at],
    )
    notes = relationship(
        "DisputeNote", back_populates="case", cascade="all, delete-orphan",
        order_by=lambda: DisputeNote.created_at.desc(),
    )
    evidence = relationship(
        "DisputeEvidence", back_populates="case", cascade="all, delete-orphan",
        order_by=lambda: DisputeEvidence.created_at.desc(),
    )


class DisputeTask(Base):
    """Follow-up task on a dispute case"""
    __tablename__ = "dispute_tasks"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    case_id = Column(String(36), ForeignKey("dispute_cases.id", ondelete="CASCADE"), nullable=False)
    label = Column(Text, nullable=False)
    status = _enum_column(TaskStatus, default=TaskStatus.PENDING, nullable=False)
    due_at = Column(DateTime, nullable=True)
    assigned_to = Column(Text, nullable=True)
    instructions = Column(Text, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_dispute_tasks_case", "case_id"),
    )

    case = relationship("DisputeCase", back_populates="tasks")


class DisputeNote(Base):
    """Note recorded against a dispute case"""
    __tablename__ = "dispute_notes"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    case_id = Column(String(36), ForeignKey("dispute_cases.id", ondelete="CASCADE"), nullable=False)
    author_id = Column(String(36), nullable=True)
    note_type = _enum_column(NoteType, default=NoteType.UPDATE, nullable=False)
    visibility = _enum_column(NoteVisibility, default=NoteVisibility.INTERNAL, nullable=False)
    body = Column(Text, nullable=False)
    next_steps = Column(Text, nullable=True)
    pinned = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_dispute_notes_case", "case_id"),
        Index("ix_dispute_notes_author", "author_id"),
    )

    case = relationship("DisputeCase", back_populates="notes")


class DisputeEvidence(Base):
    """Evidence file attached to a dispute case"""
    __tablename__ = "dispute_evidence"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    case_id = Column(String(36), ForeignKey("dispute_cases.id", ondelete="CASCADE"), nullable=False)
    uploaded_by = Column(String(36), nullable=True)
    label = Column(Text, nullable=False)
    file_url = Column(Text, nullable=False)
    file_type = Column(Text, nullable=True)
    thumbnail_url = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_dispute_evidence_case", "case_id"),
        Index("ix_dispute_evidence_uploader", "uploaded_by"),
    )

    case = relationship("DisputeCase", back_populates="evidence")
