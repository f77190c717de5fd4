"""
Domain error types.

Kept in a separate module so the repository, allocator and callers all import
the same exception classes. Anything raised by SQLAlchemy is not wrapped and
propagates to the caller untouched.
"""

from typing import Any, Dict, Optional


class DisputeWorkspaceError(Exception):
    """Base error carrying a machine-readable code and an HTTP-equivalent status."""

    status_code = 500

    def __init__(self, code: str, message: Optional[str] = None):
        self.code = code
        self.message = message or code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "status_code": self.status_code,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r})"


class ValidationError(DisputeWorkspaceError):
    """A required value is missing at the domain layer (e.g. no owner id)."""

    status_code = 400


class NotFoundError(DisputeWorkspaceError):
    """Record is absent or belongs to another owner; the two are indistinguishable."""

    status_code = 404


class ConflictError(DisputeWorkspaceError):
    """Explicitly proposed case number is already taken."""

    status_code = 409


class AllocationExhaustedError(DisputeWorkspaceError):
    """Random case number generation kept colliding."""

    status_code = 500
