"""
Workspace Aggregator
====================

Folds an owner's already-loaded cases (tasks attached) into workspace
metrics. Pure: no I/O, no stored state. Overdue is judged against the
evaluation instant on every call, so there is never a stale "overdue" flag.
"""

import math
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from numbers import Real
from typing import Any, Dict, Iterable, Optional, Sequence

from .db.models import CaseStatus, TaskStatus
from .schemas import WorkspaceMetrics

CASE_STATUSES = tuple(status.value for status in CaseStatus)
TERMINAL_CASE_STATUSES = frozenset({CaseStatus.RESOLVED.value, CaseStatus.CLOSED.value})
TASK_STATUSES = frozenset(status.value for status in TaskStatus)


def _value(raw: Any) -> Any:
    return raw.value if isinstance(raw, Enum) else raw


def _as_utc(moment: datetime) -> datetime:
    # Naive datetimes are stored as UTC
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _finite_amount(raw: Any) -> Optional[float]:
    amount = 0 if raw is None else raw
    if isinstance(amount, bool) or not isinstance(amount, (Real, Decimal)):
        return None
    amount = float(amount)
    return amount if math.isfinite(amount) else None


def is_overdue(case: Any, now: datetime) -> bool:
    """Due date set, not terminal, and strictly before now."""
    due_at = getattr(case, "due_at", None)
    if not due_at:
        return False
    status = _value(getattr(case, "status", None)) or CaseStatus.DRAFT.value
    if status in TERMINAL_CASE_STATUSES:
        return False
    return _as_utc(due_at) < _as_utc(now)


def has_active_task(tasks: Optional[Iterable[Any]]) -> bool:
    """At least one task in a known status other than completed (cancelled still counts)."""
    for task in tasks or ():
        status = _value(getattr(task, "status", None))
        if status in TASK_STATUSES and status != TaskStatus.COMPLETED.value:
            return True
    return False


def summarize(cases: Sequence[Any], now: Optional[datetime] = None) -> WorkspaceMetrics:
    """
    Compute workspace metrics in one left-to-right pass.

    Unknown statuses are left out of the histogram but still counted in
    total_cases. Non-finite disputed amounts are skipped.
    """
    now = now or datetime.now(timezone.utc)

    status_counts: Dict[str, int] = {status: 0 for status in CASE_STATUSES}
    requires_follow_up = 0
    overdue = 0
    active_tasks = 0
    total_disputed_amount = 0.0

    for case in cases:
        status = _value(getattr(case, "status", None)) or CaseStatus.DRAFT.value
        if status in status_counts:
            status_counts[status] += 1

        if getattr(case, "requires_follow_up", False):
            requires_follow_up += 1

        amount = _finite_amount(getattr(case, "amount_disputed", None))
        if amount is not None:
            total_disputed_amount += amount

        if is_overdue(case, now):
            overdue += 1

        if has_active_task(getattr(case, "tasks", None)):
            active_tasks += 1

    return WorkspaceMetrics(
        status_counts=status_counts,
        requires_follow_up=requires_follow_up,
        overdue=overdue,
        active_tasks=active_tasks,
        total_disputed_amount=total_disputed_amount,
        total_cases=len(cases),
    )
