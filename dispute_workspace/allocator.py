"""
Case Number Allocator
=====================

Case numbers are short, human-shareable codes (e.g. "SD-1F3A9C0B") that are
unique across every owner's cases. Both the uniqueness probe and the case
write that follows must use the same transaction, so the locking read is
held until commit.
"""

import logging
import uuid
from typing import Callable, Optional

from .config import Settings, get_settings
from .db.gateway import LockMode, Transaction
from .db.models import DisputeCase
from .errors import AllocationExhaustedError, ConflictError
from .retry import attempt

logger = logging.getLogger(__name__)


class CaseNumberAllocator:
    """
    Resolves a case number inside the caller's transaction.

    candidate_source: optional callable returning a fresh candidate; defaults
    to prefix + leading hex digits of a UUID4, upper-cased.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        candidate_source: Optional[Callable[[], str]] = None,
    ):
        self.settings = settings or get_settings()
        self._candidate_source = candidate_source or self._random_candidate

    def _random_candidate(self) -> str:
        digits = uuid.uuid4().hex[: self.settings.case_number_length].upper()
        return f"{self.settings.case_number_prefix}{digits}"

    def _is_taken(self, tx: Transaction, case_number: str, exclude_id: Optional[str] = None) -> bool:
        exclude = {"id": exclude_id} if exclude_id else None
        existing = tx.find(
            DisputeCase,
            {"case_number": case_number},
            exclude=exclude,
            lock=LockMode.FOR_UPDATE,
        )
        return existing is not None

    def allocate(self, tx: Transaction) -> str:
        """Generate a fresh case number, probing each candidate under lock."""

        def probe(attempt_number: int) -> Optional[str]:
            candidate = self._candidate_source()
            if self._is_taken(tx, candidate):
                logger.debug(f"Case number candidate {candidate} taken (attempt {attempt_number})")
                return None
            return candidate

        result = attempt(probe, self.settings.case_number_max_attempts)
        if not result.succeeded:
            logger.error(
                f"Case number allocation exhausted after {result.attempts} attempts "
                f"(prefix {self.settings.case_number_prefix!r}, length {self.settings.case_number_length})"
            )
            raise AllocationExhaustedError("unable_to_generate_case_number")
        return result.value

    def resolve(self, tx: Transaction, proposed: Optional[str] = None, exclude_id: Optional[str] = None) -> str:
        """
        Return the case number to store.

        A non-blank proposal is trimmed and must be free (ignoring exclude_id,
        the case being updated); otherwise ConflictError. A missing or blank
        proposal falls back to allocate().
        """
        trimmed = proposed.strip() if proposed else ""
        if not trimmed:
            return self.allocate(tx)

        if self._is_taken(tx, trimmed, exclude_id=exclude_id):
            raise ConflictError("case_number_conflict", f"Case number {trimmed} is already in use")
        return trimmed
