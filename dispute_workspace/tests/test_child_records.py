"""
Tests for Tasks, Notes and Evidence
===================================

Tests for:
- Defaults on create (task status, note type/visibility, pinned)
- Authorship and uploader fallbacks
- Required fields
- Child records are only reachable through their owning case
"""

import os
from pathlib import Path

import pytest

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from dispute_workspace.audit import MemoryAuditEmitter
from dispute_workspace.errors import NotFoundError, ValidationError


@pytest.fixture
def sqlalchemy_db(tmp_path):
    """Configure a fresh SQLAlchemy SQLite DB for tests."""
    from dispute_workspace.db.session import reset_engine, init_db

    old_db_url = os.environ.get("DATABASE_URL")
    db_path = tmp_path / "child_records.db"
    os.environ["DATABASE_URL"] = f"sqlite:///{db_path}"
    reset_engine()
    init_db()

    yield

    if old_db_url is not None:
        os.environ["DATABASE_URL"] = old_db_url
    else:
        os.environ.pop("DATABASE_URL", None)
    reset_engine()


@pytest.fixture
def emitter():
    return MemoryAuditEmitter()


@pytest.fixture
def service(sqlalchemy_db, emitter):
    from dispute_workspace.service import DisputeWorkspaceService
    return DisputeWorkspaceService(emitter=emitter)


@pytest.fixture
def case(service):
    return service.create_case("owner-1", {"title": "Missed appointment"})


class TestTasks:
    """Tests for case tasks"""

    def test_create_defaults_to_pending(self, service, case):
        task = service.create_task("owner-1", case.id, {"label": "Request photos"})

        assert task.status == "pending"
        assert task.case_id == case.id
        assert task.label == "Request photos"

    def test_create_requires_label(self, service, case):
        with pytest.raises(ValidationError) as exc_info:
            service.create_task("owner-1", case.id, {"label": "  "})
        assert exc_info.value.code == "label_required"

    def test_update_status(self, service, case):
        task = service.create_task("owner-1", case.id, {"label": "Request photos", "assignedTo": "ops"})

        updated = service.update_task("owner-1", case.id, task.id, {"status": "completed"})

        assert updated.status == "completed"
        assert updated.label == "Request photos"
        assert updated.assigned_to == "ops"

    def test_update_blank_label_rejected(self, service, case):
        task = service.create_task("owner-1", case.id, {"label": "Request photos"})
        with pytest.raises(ValidationError):
            service.update_task("owner-1", case.id, task.id, {"label": ""})

    def test_update_missing_task(self, service, case):
        with pytest.raises(NotFoundError) as exc_info:
            service.update_task("owner-1", case.id, "no-such-task", {"status": "completed"})
        assert exc_info.value.code == "dispute_task_not_found"

    def test_task_of_other_case_not_reachable(self, service, case):
        """A child id only resolves under the case it belongs to"""
        other = service.create_case("owner-1", {"title": "Second case"})
        task = service.create_task("owner-1", other.id, {"label": "Call customer"})

        with pytest.raises(NotFoundError):
            service.update_task("owner-1", case.id, task.id, {"status": "completed"})
        with pytest.raises(NotFoundError):
            service.delete_task("owner-1", case.id, task.id)

    def test_other_owner_gets_case_not_found(self, service, case):
        task = service.create_task("owner-1", case.id, {"label": "Call customer"})

        with pytest.raises(NotFoundError) as exc_info:
            service.update_task("owner-2", case.id, task.id, {"status": "completed"})
        assert exc_info.value.code == "dispute_case_not_found"

    def test_delete(self, service, case):
        task = service.create_task("owner-1", case.id, {"label": "Call customer"})

        assert service.delete_task("owner-1", case.id, task.id) is True
        assert service.get_case("owner-1", case.id).tasks == ()

    def test_delete_missing(self, service, case):
        with pytest.raises(NotFoundError):
            service.delete_task("owner-1", case.id, "no-such-task")


class TestNotes:
    """Tests for case notes"""

    def test_create_defaults(self, service, case):
        note = service.create_note("owner-1", case.id, {"body": "Customer called"})

        assert note.note_type == "update"
        assert note.visibility == "internal"
        assert note.pinned is False
        assert note.author_id == "owner-1"

    def test_author_from_audit_context(self, service, case):
        note = service.create_note("owner-1", case.id, {"body": "Escalated"}, {"actorId": "agent-3"})
        assert note.author_id == "agent-3"

    def test_explicit_author_wins(self, service, case):
        note = service.create_note(
            "owner-1", case.id, {"body": "Escalated", "authorId": "lead-1"}, {"actorId": "agent-3"}
        )
        assert note.author_id == "lead-1"

    def test_create_requires_body(self, service, case):
        with pytest.raises(ValidationError) as exc_info:
            service.create_note("owner-1", case.id, {"noteType": "call"})
        assert exc_info.value.code == "body_required"

    def test_update_pin_and_type(self, service, case):
        note = service.create_note("owner-1", case.id, {"body": "Refund agreed", "noteType": "decision"})

        updated = service.update_note("owner-1", case.id, note.id, {"pinned": True, "visibility": "customer"})

        assert updated.pinned is True
        assert updated.visibility == "customer"
        assert updated.note_type == "decision"
        assert updated.body == "Refund agreed"

    def test_clearing_type_restores_default(self, service, case):
        note = service.create_note("owner-1", case.id, {"body": "Refund agreed", "noteType": "decision"})
        updated = service.update_note("owner-1", case.id, note.id, {"noteType": None})
        assert updated.note_type == "update"

    def test_delete(self, service, case):
        note = service.create_note("owner-1", case.id, {"body": "Temporary"})

        assert service.delete_note("owner-1", case.id, note.id) is True
        with pytest.raises(NotFoundError) as exc_info:
            service.delete_note("owner-1", case.id, note.id)
        assert exc_info.value.code == "dispute_note_not_found"


class TestEvidence:
    """Tests for case evidence"""

    def test_create(self, service, case):
        evidence = service.create_evidence("owner-1", case.id, {
            "label": "Before photo",
            "fileUrl": "https://files.local/before.jpg",
            "fileType": "image/jpeg",
        })

        assert evidence.label == "Before photo"
        assert evidence.file_url == "https://files.local/before.jpg"
        assert evidence.uploaded_by == "owner-1"

    def test_uploader_from_audit_context(self, service, case):
        evidence = service.create_evidence(
            "owner-1", case.id,
            {"label": "Receipt", "fileUrl": "https://files.local/r.pdf"},
            {"actor_id": "agent-9"},
        )
        assert evidence.uploaded_by == "agent-9"

    def test_create_requires_label(self, service, case):
        with pytest.raises(ValidationError) as exc_info:
            service.create_evidence("owner-1", case.id, {"fileUrl": "https://files.local/r.pdf"})
        assert exc_info.value.code == "label_required"

    def test_create_requires_file_url(self, service, case):
        with pytest.raises(ValidationError) as exc_info:
            service.create_evidence("owner-1", case.id, {"label": "Receipt"})
        assert exc_info.value.code == "file_url_required"

    def test_update_notes(self, service, case):
        evidence = service.create_evidence("owner-1", case.id, {
            "label": "Receipt", "fileUrl": "https://files.local/r.pdf",
        })

        updated = service.update_evidence("owner-1", case.id, evidence.id, {"notes": "Matches invoice"})

        assert updated.notes == "Matches invoice"
        assert updated.file_url == "https://files.local/r.pdf"

    def test_update_blank_file_url_rejected(self, service, case):
        evidence = service.create_evidence("owner-1", case.id, {
            "label": "Receipt", "fileUrl": "https://files.local/r.pdf",
        })
        with pytest.raises(ValidationError):
            service.update_evidence("owner-1", case.id, evidence.id, {"fileUrl": " "})

    def test_delete(self, service, case):
        evidence = service.create_evidence("owner-1", case.id, {
            "label": "Receipt", "fileUrl": "https://files.local/r.pdf",
        })
        assert service.delete_evidence("owner-1", case.id, evidence.id) is True
        assert service.get_case("owner-1", case.id).evidence == ()

    def test_audit_actions(self, service, emitter, case):
        evidence = service.create_evidence("owner-1", case.id, {
            "label": "Receipt", "fileUrl": "https://files.local/r.pdf",
        })
        service.update_evidence("owner-1", case.id, evidence.id, {"label": "Receipt (signed)"})
        service.delete_evidence("owner-1", case.id, evidence.id)

        assert emitter.actions()[-3:] == [
            "dispute_evidence.created",
            "dispute_evidence.updated",
            "dispute_evidence.deleted",
        ]
        assert emitter.events[-1].metadata["evidence_id"] == evidence.id
