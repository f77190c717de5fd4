"""
Dispute Case Repository
=======================

Lifecycle operations for dispute cases and their tasks, notes and evidence.

Every operation:
- takes the caller's Transaction (it never opens or commits one itself)
- is scoped to an owner; a case owned by someone else is reported exactly
  like a missing case
- applies only the fields the caller supplied on updates
- reports the mutation to the audit recorder before the transaction commits
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from .allocator import CaseNumberAllocator
from .audit import AuditContext, AuditRecorder
from .config import Settings, get_settings
from .db.gateway import LockMode, Transaction
from .db.models import (
    DisputeCase, DisputeTask, DisputeNote, DisputeEvidence,
    CaseCategory, CaseStatus, CaseSeverity, TaskStatus, NoteType, NoteVisibility,
)
from .errors import ConflictError, NotFoundError, ValidationError
from .schemas import (
    CaseCreate, CaseUpdate, TaskCreate, TaskUpdate,
    NoteCreate, NoteUpdate, EvidenceCreate, EvidenceUpdate,
)

logger = logging.getLogger(__name__)

# Relationships loaded with every workspace listing
CASE_INCLUDES = ("tasks", "notes", "evidence", "platform_dispute")

# Unique index declared on DisputeCase.__table_args__
CASE_NUMBER_INDEX = "uq_dispute_cases_case_number"


def _value(raw: Any) -> Any:
    return raw.value if isinstance(raw, Enum) else raw


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def _require_owner(owner_id: Optional[str]) -> None:
    if _is_blank(owner_id):
        raise ValidationError("owner_required", "An owner id is required")


def _require_case_id(case_id: Optional[str]) -> None:
    if _is_blank(case_id):
        raise ValidationError("case_id_required", "A dispute case id is required")


def _is_case_number_violation(error: IntegrityError) -> bool:
    orig = getattr(error, "orig", None)
    constraint = getattr(getattr(orig, "diag", None), "constraint_name", None)
    if constraint:
        return constraint == CASE_NUMBER_INDEX
    # SQLite reports the column ("UNIQUE constraint failed: dispute_cases.case_number")
    message = str(orig)
    return CASE_NUMBER_INDEX in message or "dispute_cases.case_number" in message


class DisputeCaseRepository:
    """Scoped CRUD over dispute cases and their child records."""

    def __init__(
        self,
        allocator: Optional[CaseNumberAllocator] = None,
        audit: Optional[AuditRecorder] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.allocator = allocator or CaseNumberAllocator(self.settings)
        self.audit = audit or AuditRecorder(resource=self.settings.audit_resource)

    # -------------------------------------------------------------------------
    # Cases
    # -------------------------------------------------------------------------

    def find_case(
        self,
        tx: Transaction,
        owner_id: str,
        case_id: str,
        lock: LockMode = LockMode.NONE,
    ) -> DisputeCase:
        """Load a case scoped to its owner or raise NotFoundError."""
        _require_owner(owner_id)
        _require_case_id(case_id)
        case = tx.find(DisputeCase, {"id": case_id, "owner_id": owner_id}, lock=lock)
        if case is None:
            raise NotFoundError("dispute_case_not_found", "Dispute case not found")
        return case

    def list_cases(self, tx: Transaction, owner_id: str) -> List[DisputeCase]:
        """All of an owner's cases, newest first, children eagerly loaded."""
        _require_owner(owner_id)
        return tx.find_all(
            DisputeCase,
            {"owner_id": owner_id},
            order=["-created_at"],
            include=CASE_INCLUDES,
        )

    def _case_defaults(self) -> Dict[str, Any]:
        return {
            "category": CaseCategory.BILLING,
            "status": CaseStatus.DRAFT,
            "severity": CaseSeverity.MEDIUM,
            "currency": self.settings.default_currency,
            "requires_follow_up": False,
        }

    def _write_case(self, tx: Transaction, write):
        # The unique index is the last line of defence behind the locking probe
        try:
            return write()
        except IntegrityError as e:
            if _is_case_number_violation(e):
                raise ConflictError("case_number_conflict", "Case number is already in use") from e
            raise

    def create_case(
        self,
        tx: Transaction,
        owner_id: str,
        payload: CaseCreate,
        audit_context: Optional[AuditContext] = None,
    ) -> DisputeCase:
        _require_owner(owner_id)
        if _is_blank(payload.title):
            raise ValidationError("title_required", "A dispute case title is required")

        case_number = self.allocator.resolve(tx, payload.case_number)

        fields = payload.changes()
        fields.pop("case_number", None)
        for name, default in self._case_defaults().items():
            if fields.get(name) is None:
                fields[name] = default
        fields["requires_follow_up"] = bool(fields["requires_follow_up"])
        fields.update(owner_id=owner_id, case_number=case_number)

        case = self._write_case(tx, lambda: tx.create(DisputeCase, fields))
        logger.info(f"Dispute case {case.case_number} created for owner {owner_id}")

        self.audit.record(owner_id, "dispute_case.created", audit_context, {
            "case_id": case.id,
            "case_number": case.case_number,
            "status": _value(case.status),
            "severity": _value(case.severity),
        })
        return case

    def update_case(
        self,
        tx: Transaction,
        owner_id: str,
        case_id: str,
        payload: CaseUpdate,
        audit_context: Optional[AuditContext] = None,
    ) -> DisputeCase:
        case = self.find_case(tx, owner_id, case_id, lock=LockMode.FOR_UPDATE)

        changes = payload.changes()
        if "title" in changes and _is_blank(changes["title"]):
            raise ValidationError("title_required", "A dispute case title is required")

        proposed = changes.pop("case_number", None)
        if not _is_blank(proposed) and proposed.strip() != case.case_number:
            changes["case_number"] = self.allocator.resolve(tx, proposed, exclude_id=case.id)

        # Clearing a non-nullable column restores its default
        for name, default in self._case_defaults().items():
            if name in changes and changes[name] is None:
                changes[name] = default

        case = self._write_case(tx, lambda: tx.update(DisputeCase, {"id": case.id}, changes))

        self.audit.record(owner_id, "dispute_case.updated", audit_context, {
            "case_id": case.id,
            "status": _value(case.status),
            "severity": _value(case.severity),
        })
        return case

    def delete_case(
        self,
        tx: Transaction,
        owner_id: str,
        case_id: str,
        audit_context: Optional[AuditContext] = None,
    ) -> bool:
        case = self.find_case(tx, owner_id, case_id, lock=LockMode.FOR_UPDATE)
        case_number = case.case_number
        tx.destroy(DisputeCase, {"id": case.id})
        logger.info(f"Dispute case {case_number} deleted for owner {owner_id}")

        self.audit.record(owner_id, "dispute_case.deleted", audit_context, {"case_id": case_id})
        return True

    # -------------------------------------------------------------------------
    # Child records
    # -------------------------------------------------------------------------

    def _update_child(
        self,
        tx: Transaction,
        model,
        case_id: str,
        child_id: str,
        changes: Dict[str, Any],
        not_found_code: str,
    ):
        row = tx.find(model, {"id": child_id, "case_id": case_id}, lock=LockMode.FOR_UPDATE)
        if row is None:
            raise NotFoundError(not_found_code)
        return tx.update(model, {"id": row.id}, changes)

    def _delete_child(self, tx: Transaction, model, case_id: str, child_id: str, not_found_code: str) -> None:
        if not tx.destroy(model, {"id": child_id, "case_id": case_id}):
            raise NotFoundError(not_found_code)

    # Tasks

    def create_task(
        self,
        tx: Transaction,
        owner_id: str,
        case_id: str,
        payload: TaskCreate,
        audit_context: Optional[AuditContext] = None,
    ) -> DisputeTask:
        self.find_case(tx, owner_id, case_id)
        if _is_blank(payload.label):
            raise ValidationError("label_required", "A task label is required")

        fields = payload.changes()
        fields["status"] = fields.get("status") or TaskStatus.PENDING
        fields["case_id"] = case_id
        task = tx.create(DisputeTask, fields)
        logger.debug(f"Task {task.id} added to dispute case {case_id}")

        self.audit.record(owner_id, "dispute_task.created", audit_context, {
            "case_id": case_id,
            "task_id": task.id,
            "status": _value(task.status),
        })
        return task

    def update_task(
        self,
        tx: Transaction,
        owner_id: str,
        case_id: str,
        task_id: str,
        payload: TaskUpdate,
        audit_context: Optional[AuditContext] = None,
    ) -> DisputeTask:
        self.find_case(tx, owner_id, case_id)
        changes = payload.changes()
        if "label" in changes and _is_blank(changes["label"]):
            raise ValidationError("label_required", "A task label is required")
        if "status" in changes and changes["status"] is None:
            changes["status"] = TaskStatus.PENDING

        task = self._update_child(tx, DisputeTask, case_id, task_id, changes, "dispute_task_not_found")

        self.audit.record(owner_id, "dispute_task.updated", audit_context, {
            "case_id": case_id,
            "task_id": task_id,
            "status": _value(task.status),
        })
        return task

    def delete_task(
        self,
        tx: Transaction,
        owner_id: str,
        case_id: str,
        task_id: str,
        audit_context: Optional[AuditContext] = None,
    ) -> bool:
        self.find_case(tx, owner_id, case_id)
        self._delete_child(tx, DisputeTask, case_id, task_id, "dispute_task_not_found")

        self.audit.record(owner_id, "dispute_task.deleted", audit_context, {
            "case_id": case_id,
            "task_id": task_id,
        })
        return True

    # Notes

    def create_note(
        self,
        tx: Transaction,
        owner_id: str,
        case_id: str,
        payload: NoteCreate,
        audit_context: Optional[AuditContext] = None,
    ) -> DisputeNote:
        self.find_case(tx, owner_id, case_id)
        if _is_blank(payload.body):
            raise ValidationError("body_required", "A note body is required")

        context = AuditContext.build(audit_context)
        fields = payload.changes()
        fields.update(
            case_id=case_id,
            author_id=payload.author_id or context.actor_id or owner_id,
            note_type=payload.note_type or NoteType.UPDATE,
            visibility=payload.visibility or NoteVisibility.INTERNAL,
            pinned=bool(payload.pinned),
        )
        note = tx.create(DisputeNote, fields)
        logger.debug(f"Note {note.id} added to dispute case {case_id}")

        self.audit.record(owner_id, "dispute_note.created", context, {
            "case_id": case_id,
            "note_id": note.id,
            "note_type": _value(note.note_type),
        })
        return note

    def update_note(
        self,
        tx: Transaction,
        owner_id: str,
        case_id: str,
        note_id: str,
        payload: NoteUpdate,
        audit_context: Optional[AuditContext] = None,
    ) -> DisputeNote:
        self.find_case(tx, owner_id, case_id)
        changes = payload.changes()
        if "body" in changes and _is_blank(changes["body"]):
            raise ValidationError("body_required", "A note body is required")
        for name, default in (("note_type", NoteType.UPDATE), ("visibility", NoteVisibility.INTERNAL)):
            if name in changes and changes[name] is None:
                changes[name] = default
        if "pinned" in changes:
            changes["pinned"] = bool(changes["pinned"])

        note = self._update_child(tx, DisputeNote, case_id, note_id, changes, "dispute_note_not_found")

        self.audit.record(owner_id, "dispute_note.updated", audit_context, {
            "case_id": case_id,
            "note_id": note_id,
            "note_type": _value(note.note_type),
        })
        return note

    def delete_note(
        self,
        tx: Transaction,
        owner_id: str,
        case_id: str,
        note_id: str,
        audit_context: Optional[AuditContext] = None,
    ) -> bool:
        self.find_case(tx, owner_id, case_id)
        self._delete_child(tx, DisputeNote, case_id, note_id, "dispute_note_not_found")

        self.audit.record(owner_id, "dispute_note.deleted", audit_context, {
            "case_id": case_id,
            "note_id": note_id,
        })
        return True

    # Evidence

    def create_evidence(
        self,
        tx: Transaction,
        owner_id: str,
        case_id: str,
        payload: EvidenceCreate,
        audit_context: Optional[AuditContext] = None,
    ) -> DisputeEvidence:
        self.find_case(tx, owner_id, case_id)
        if _is_blank(payload.label):
            raise ValidationError("label_required", "An evidence label is required")
        if _is_blank(payload.file_url):
            raise ValidationError("file_url_required", "An evidence file URL is required")

        context = AuditContext.build(audit_context)
        fields = payload.changes()
        fields.update(
            case_id=case_id,
            uploaded_by=payload.uploaded_by or context.actor_id or owner_id,
        )
        evidence = tx.create(DisputeEvidence, fields)
        logger.debug(f"Evidence {evidence.id} added to dispute case {case_id}")

        self.audit.record(owner_id, "dispute_evidence.created", context, {
            "case_id": case_id,
            "evidence_id": evidence.id,
        })
        return evidence

    def update_evidence(
        self,
        tx: Transaction,
        owner_id: str,
        case_id: str,
        evidence_id: str,
        payload: EvidenceUpdate,
        audit_context: Optional[AuditContext] = None,
    ) -> DisputeEvidence:
        self.find_case(tx, owner_id, case_id)
        changes = payload.changes()
        if "label" in changes and _is_blank(changes["label"]):
            raise ValidationError("label_required", "An evidence label is required")
        if "file_url" in changes and _is_blank(changes["file_url"]):
            raise ValidationError("file_url_required", "An evidence file URL is required")

        evidence = self._update_child(
            tx, DisputeEvidence, case_id, evidence_id, changes, "dispute_evidence_not_found"
        )

        self.audit.record(owner_id, "dispute_evidence.updated", audit_context, {
            "case_id": case_id,
            "evidence_id": evidence_id,
        })
        return evidence

    def delete_evidence(
        self,
        tx: Transaction,
        owner_id: str,
        case_id: str,
        evidence_id: str,
        audit_context: Optional[AuditContext] = None,
    ) -> bool:
        self.find_case(tx, owner_id, case_id)
        self._delete_child(tx, DisputeEvidence, case_id, evidence_id, "dispute_evidence_not_found")

        self.audit.record(owner_id, "dispute_evidence.deleted", audit_context, {
            "case_id": case_id,
            "evidence_id": evidence_id,
        })
        return True
