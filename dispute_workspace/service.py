"""
Dispute Workspace Service
=========================

Public entry points consumed by the request layer. Each call runs in exactly
one transaction and returns immutable views (or True for deletes); domain
errors from `errors` and SQLAlchemy errors propagate to the caller, which owns
status-code mapping and presentation.

Usage:
    service = DisputeWorkspaceService()
    case = service.create_case("owner-1", {"title": "Billing dispute", "amountDisputed": 250})
    workspace = service.load_workspace("owner-1")
"""

import logging
from datetime import datetime
from typing import Any, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel

from .allocator import CaseNumberAllocator
from .audit import AuditContext, AuditEmitter, AuditRecorder
from .aggregator import summarize
from .config import Settings, get_settings
from .db.gateway import PersistenceGateway
from .repository import DisputeCaseRepository
from .schemas import (
    CaseCreate, CaseUpdate, TaskCreate, TaskUpdate,
    NoteCreate, NoteUpdate, EvidenceCreate, EvidenceUpdate,
    DisputeCaseView, DisputeTaskView, DisputeNoteView, DisputeEvidenceView,
    Workspace,
)

logger = logging.getLogger(__name__)

P = TypeVar("P", bound=BaseModel)
Fields = Union[BaseModel, Mapping[str, Any], None]
AuditInput = Union[AuditContext, Mapping[str, Any], None]


def _coerce(fields: Fields, payload_cls: Type[P]) -> P:
    """Turn a mapping (or another payload model) into payload_cls, keeping 'was it sent' info."""
    if isinstance(fields, payload_cls):
        return fields
    if isinstance(fields, BaseModel):
        return payload_cls.model_validate(fields.model_dump(exclude_unset=True))
    return payload_cls.model_validate(dict(fields or {}))


class DisputeWorkspaceService:
    """
    Facade over the repository, allocator, aggregator and audit recorder.

    gateway: PersistenceGateway (defaults to the configured database)
    emitter: audit sink (defaults to LoggingAuditEmitter)
    """

    def __init__(
        self,
        gateway: Optional[PersistenceGateway] = None,
        emitter: Optional[AuditEmitter] = None,
        settings: Optional[Settings] = None,
        allocator: Optional[CaseNumberAllocator] = None,
    ):
        self.settings = settings or get_settings()
        self.gateway = gateway or PersistenceGateway()
        self.repository = DisputeCaseRepository(
            allocator=allocator or CaseNumberAllocator(self.settings),
            audit=AuditRecorder(emitter, resource=self.settings.audit_resource),
            settings=self.settings,
        )

    # Workspace

    def load_workspace(self, owner_id: str, now: Optional[datetime] = None) -> Workspace:
        """All of the owner's cases plus metrics computed from them."""
        with self.gateway.transaction() as tx:
            rows = self.repository.list_cases(tx, owner_id)
            cases = tuple(DisputeCaseView.model_validate(row) for row in rows)
        logger.debug(f"Loaded {len(cases)} dispute cases for owner {owner_id}")
        return Workspace(cases=cases, metrics=summarize(cases, now=now))

    def get_case(self, owner_id: str, case_id: str) -> DisputeCaseView:
        with self.gateway.transaction() as tx:
            return DisputeCaseView.model_validate(self.repository.find_case(tx, owner_id, case_id))

    # Cases

    def create_case(self, owner_id: str, fields: Fields, audit_context: AuditInput = None) -> DisputeCaseView:
        payload = _coerce(fields, CaseCreate)
        with self.gateway.transaction() as tx:
            case = self.repository.create_case(tx, owner_id, payload, audit_context)
            return DisputeCaseView.model_validate(case)

    def update_case(
        self, owner_id: str, case_id: str, fields: Fields, audit_context: AuditInput = None
    ) -> DisputeCaseView:
        payload = _coerce(fields, CaseUpdate)
        with self.gateway.transaction() as tx:
            case = self.repository.update_case(tx, owner_id, case_id, payload, audit_context)
            return DisputeCaseView.model_validate(case)

    def delete_case(self, owner_id: str, case_id: str, audit_context: AuditInput = None) -> bool:
        with self.gateway.transaction() as tx:
            return self.repository.delete_case(tx, owner_id, case_id, audit_context)

    # Tasks

    def create_task(
        self, owner_id: str, case_id: str, fields: Fields, audit_context: AuditInput = None
    ) -> DisputeTaskView:
        payload = _coerce(fields, TaskCreate)
        with self.gateway.transaction() as tx:
            task = self.repository.create_task(tx, owner_id, case_id, payload, audit_context)
            return DisputeTaskView.model_validate(task)

    def update_task(
        self, owner_id: str, case_id: str, task_id: str, fields: Fields, audit_context: AuditInput = None
    ) -> DisputeTaskView:
        payload = _coerce(fields, TaskUpdate)
        with self.gateway.transaction() as tx:
            task = self.repository.update_task(tx, owner_id, case_id, task_id, payload, audit_context)
            return DisputeTaskView.model_validate(task)

    def delete_task(self, owner_id: str, case_id: str, task_id: str, audit_context: AuditInput = None) -> bool:
        with self.gateway.transaction() as tx:
            return self.repository.delete_task(tx, owner_id, case_id, task_id, audit_context)

    # Notes

    def create_note(
        self, owner_id: str, case_id: str, fields: Fields, audit_context: AuditInput = None
    ) -> DisputeNoteView:
        payload = _coerce(fields, NoteCreate)
        with self.gateway.transaction() as tx:
            note = self.repository.create_note(tx, owner_id, case_id, payload, audit_context)
            return DisputeNoteView.model_validate(note)

    def update_note(
        self, owner_id: str, case_id: str, note_id: str, fields: Fields, audit_context: AuditInput = None
    ) -> DisputeNoteView:
        payload = _coerce(fields, NoteUpdate)
        with self.gateway.transaction() as tx:
            note = self.repository.update_note(tx, owner_id, case_id, note_id, payload, audit_context)
            return DisputeNoteView.model_validate(note)

    def delete_note(self, owner_id: str, case_id: str, note_id: str, audit_context: AuditInput = None) -> bool:
        with self.gateway.transaction() as tx:
            return self.repository.delete_note(tx, owner_id, case_id, note_id, audit_context)

    # Evidence

    def create_evidence(
        self, owner_id: str, case_id: str, fields: Fields, audit_context: AuditInput = None
    ) -> DisputeEvidenceView:
        payload = _coerce(fields, EvidenceCreate)
        with self.gateway.transaction() as tx:
            evidence = self.repository.create_evidence(tx, owner_id, case_id, payload, audit_context)
            return DisputeEvidenceView.model_validate(evidence)

    def update_evidence(
        self, owner_id: str, case_id: str, evidence_id: str, fields: Fields, audit_context: AuditInput = None
    ) -> DisputeEvidenceView:
        payload = _coerce(fields, EvidenceUpdate)
        with self.gateway.transaction() as tx:
            evidence = self.repository.update_evidence(tx, owner_id, case_id, evidence_id, payload, audit_context)
            return DisputeEvidenceView.model_validate(evidence)

    def delete_evidence(
        self, owner_id: str, case_id: str, evidence_id: str, audit_context: AuditInput = None
    ) -> bool:
        with self.gateway.transaction() as tx:
            return self.repository.delete_evidence(tx, owner_id, case_id, evidence_id, audit_context)
