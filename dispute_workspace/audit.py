"""
Audit Events
============

Every case/task/note/evidence mutation is reported to an audit sink. The sink
is best-effort: a failing emitter is logged and never aborts the transaction
that produced the event.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Union

from .config import get_settings

logger = logging.getLogger(__name__)

DEFAULT_ACTOR_ROLE = "serviceman"
DEFAULT_ACTOR_PERSONA = "serviceman"


@dataclass(frozen=True)
class AuditContext:
    """
    Caller-resolved actor context.

    Opaque to the workspace beyond being forwarded to the audit sink (and
    actor_id defaulting note authorship).
    """
    actor_id: Optional[str] = None
    actor_role: str = DEFAULT_ACTOR_ROLE
    actor_persona: str = DEFAULT_ACTOR_PERSONA
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    correlation_id: Optional[str] = None

    @classmethod
    def build(cls, value: Union["AuditContext", Mapping[str, Any], None] = None) -> "AuditContext":
        """Accept an AuditContext, a mapping (snake_case or camelCase keys) or None."""
        if isinstance(value, AuditContext):
            return value
        value = value or {}

        def pick(snake: str, camel: str):
            if value.get(snake) is not None:
                return value[snake]
            return value.get(camel)

        return cls(
            actor_id=pick("actor_id", "actorId"),
            actor_role=pick("actor_role", "actorRole") or DEFAULT_ACTOR_ROLE,
            actor_persona=pick("actor_persona", "actorPersona") or DEFAULT_ACTOR_PERSONA,
            ip_address=pick("ip_address", "ipAddress"),
            user_agent=pick("user_agent", "userAgent"),
            correlation_id=pick("correlation_id", "correlationId"),
        )


@dataclass(frozen=True)
class AuditEvent:
    """Single audit record handed to an emitter"""
    actor_id: Optional[str]
    actor_role: str
    actor_persona: str
    resource: str
    action: str
    decision: str = "allow"
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    correlation_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["occurred_at"] = self.occurred_at.isoformat()
        return payload


class AuditEmitter(ABC):
    """Audit sink interface"""

    @abstractmethod
    def emit(self, event: AuditEvent) -> None:
        """Deliver an event. May raise; callers isolate failures."""


class NullAuditEmitter(AuditEmitter):
    """Discards events"""

    def emit(self, event: AuditEvent) -> None:
        return None


class LoggingAuditEmitter(AuditEmitter):
    """Writes events as structured records on the audit logger"""

    def __init__(self, logger_name: str = "dispute_workspace.audit"):
        self._logger = logging.getLogger(logger_name)

    def emit(self, event: AuditEvent) -> None:
        self._logger.info("audit %s", event.action, extra={"audit": event.to_dict()})


class MemoryAuditEmitter(AuditEmitter):
    """Keeps events in memory (local development and tests)"""

    def __init__(self):
        self.events: List[AuditEvent] = []

    def emit(self, event: AuditEvent) -> None:
        self.events.append(event)

    def actions(self) -> List[str]:
        return [event.action for event in self.events]


class AuditRecorder:
    """Builds audit events for workspace mutations and hands them to the emitter."""

    def __init__(self, emitter: Optional[AuditEmitter] = None, resource: Optional[str] = None):
        self.emitter = emitter or LoggingAuditEmitter()
        self.resource = resource or get_settings().audit_resource

    def record(
        self,
        owner_id: str,
        action: str,
        context: Optional[AuditContext] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditEvent]:
        """
        Emit one event; returns it, or None if the emitter failed.

        actor_id falls back to the owner when the caller did not resolve one.
        """
        context = AuditContext.build(context)
        event = AuditEvent(
            actor_id=context.actor_id or owner_id,
            actor_role=context.actor_role,
            actor_persona=context.actor_persona,
            resource=self.resource,
            action=action,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
            correlation_id=context.correlation_id,
            metadata={"owner_id": owner_id, **(metadata or {})},
        )
        try:
            self.emitter.emit(event)
        except Exception as e:
            logger.warning(f"Audit emitter failed for {action}: {e}", exc_info=True)
            return None
        return event
