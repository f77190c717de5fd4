"""
Database Package - SQLAlchemy
=============================

Persistence layer for the dispute case workspace.
"""

from .models import (
    Base,
    PlatformDispute,
    DisputeCase, DisputeTask, DisputeNote, DisputeEvidence,
    CaseCategory, CaseStatus, CaseSeverity, TaskStatus, NoteType, NoteVisibility,
)
from .session import get_db_session, init_db, get_engine, reset_engine
from .gateway import LockMode, Transaction, PersistenceGateway

__all__ = [
    # Base
    "Base",
    # Records
    "PlatformDispute",
    "DisputeCase", "DisputeTask", "DisputeNote", "DisputeEvidence",
    # Enums
    "CaseCategory", "CaseStatus", "CaseSeverity", "TaskStatus", "NoteType", "NoteVisibility",
    # Session
    "get_db_session", "init_db", "get_engine", "reset_engine",
    # Gateway
    "LockMode", "Transaction", "PersistenceGateway",
]
