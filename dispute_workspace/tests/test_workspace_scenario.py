"""
End-to-end workspace scenario
=============================

One owner works a case from creation to closure; metrics are checked at
every step against a fixed evaluation instant.
"""

import os
import re
from datetime import timedelta
from pathlib import Path

import pytest

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from dispute_workspace.audit import MemoryAuditEmitter
from dispute_workspace.db.models import utcnow


@pytest.fixture
def sqlalchemy_db(tmp_path):
    """Configure a fresh SQLAlchemy SQLite DB for tests."""
    from dispute_workspace.db.session import reset_engine, init_db

    old_db_url = os.environ.get("DATABASE_URL")
    db_path = tmp_path / "scenario.db"
    os.environ["DATABASE_URL"] = f"sqlite:///{db_path}"
    reset_engine()
    init_db()

    yield

    if old_db_url is not None:
        os.environ["DATABASE_URL"] = old_db_url
    else:
        os.environ.pop("DATABASE_URL", None)
    reset_engine()


def test_case_lifecycle_metrics(sqlalchemy_db):
    from dispute_workspace.service import DisputeWorkspaceService

    service = DisputeWorkspaceService(emitter=MemoryAuditEmitter())
    now = utcnow()

    case = service.create_case("u1", {"title": "Billing dispute", "amountDisputed": 250})
    assert re.fullmatch(r"SD-[0-9A-F]{8}", case.case_number)
    assert case.status == "draft"

    service.create_task("u1", case.id, {"label": "Collect invoice"})
    metrics = service.load_workspace("u1", now=now).metrics
    assert metrics.active_tasks == 1
    assert metrics.total_cases == 1
    assert metrics.status_counts["draft"] == 1

    service.update_case("u1", case.id, {"dueAt": now - timedelta(days=1), "status": "open"})
    metrics = service.load_workspace("u1", now=now).metrics
    assert metrics.overdue == 1
    assert metrics.status_counts["open"] == 1
    assert metrics.status_counts["draft"] == 0

    service.update_case("u1", case.id, {"status": "closed"})
    metrics = service.load_workspace("u1", now=now).metrics
    assert metrics.overdue == 0
    assert metrics.status_counts["closed"] == 1
    assert metrics.total_disputed_amount == pytest.approx(250)

    # Another owner sees an empty workspace
    other = service.load_workspace("u2", now=now)
    assert other.cases == ()
    assert other.metrics.total_cases == 0
    assert other.metrics.total_disputed_amount == 0


def test_workspace_orders_newest_first(sqlalchemy_db):
    from dispute_workspace.service import DisputeWorkspaceService

    service = DisputeWorkspaceService(emitter=MemoryAuditEmitter())
    first = service.create_case("u1", {"title": "First"})
    second = service.create_case("u1", {"title": "Second"})
    service.update_case("u1", first.id, {"requiresFollowUp": True})

    workspace = service.load_workspace("u1")

    created = [case.created_at for case in workspace.cases]
    assert created == sorted(created, reverse=True)
    assert {case.id for case in workspace.cases} == {first.id, second.id}
    assert workspace.metrics.requires_follow_up == 1


def test_cancelled_task_keeps_case_active(sqlalchemy_db):
    """Only completed tasks stop a case counting towards active tasks"""
    from dispute_workspace.service import DisputeWorkspaceService

    service = DisputeWorkspaceService(emitter=MemoryAuditEmitter())
    case = service.create_case("u1", {"title": "Cancelled follow-up"})
    task = service.create_task("u1", case.id, {"label": "Book revisit", "status": "cancelled"})

    assert service.load_workspace("u1").metrics.active_tasks == 1

    service.update_task("u1", case.id, task.id, {"status": "completed"})
    assert service.load_workspace("u1").metrics.active_tasks == 0
