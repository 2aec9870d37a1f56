"""
AuditLog Entity

Immutable, append-only trail of every security decision.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import event
from sqlalchemy.orm import Session as OrmSession
from sqlmodel import JSON, Column, DateTime, Field, Index, SQLModel

from stoneguard.domain.base import utcnow

from .enums import AuditStatus, Role

USER_AGENT_MAX_LENGTH = 500
CLIENT_IP_MAX_LENGTH = 64
REQUEST_ID_MAX_LENGTH = 64


class AuditLogImmutableError(Exception):
    """Raised on any attempt to modify or delete a persisted audit entry"""


class AuditLog(SQLModel, table=True):
    """
    AuditLog entity - one security decision or state-changing business action.

    Business Rules:
    - Immutable (never updated or deleted); enforced by ORM events below
    - Written, never read back by the application
    - subject_id nullable for unauthenticated requests
    - user_agent truncated to 500 chars, request_payload has secrets redacted
    """

    __tablename__ = "audit_logs"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    timestamp: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False))

    subject_id: Optional[UUID] = Field(default=None, index=True)
    role: Role = Field(default=Role.GUEST)

    action: str = Field(max_length=100)
    status: AuditStatus

    resource_id: Optional[str] = Field(default=None, max_length=64)
    request_id: Optional[str] = Field(default=None, max_length=REQUEST_ID_MAX_LENGTH)
    reference_number: Optional[str] = Field(default=None, max_length=64)

    client_ip: Optional[str] = Field(default=None, max_length=CLIENT_IP_MAX_LENGTH)
    user_agent: Optional[str] = Field(default=None, max_length=USER_AGENT_MAX_LENGTH)
    request_payload: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    details: Optional[str] = None

    __table_args__ = (
        Index("idx_audit_subject_timestamp", "subject_id", "timestamp"),
        Index("idx_audit_action_timestamp", "action", "timestamp"),
        Index("idx_audit_reference_timestamp", "reference_number", "timestamp"),
    )


@event.listens_for(AuditLog, "before_update")
def _reject_audit_update(mapper, connection, target):
    raise AuditLogImmutableError("Audit logs are immutable and cannot be modified")


@event.listens_for(AuditLog, "before_delete")
def _reject_audit_delete(mapper, connection, target):
    raise AuditLogImmutableError("Audit logs are immutable and cannot be deleted")


@event.listens_for(OrmSession, "do_orm_execute")
def _reject_audit_bulk_mutation(orm_execute_state):
    if not (orm_execute_state.is_update or orm_execute_state.is_delete):
        return
    table = getattr(orm_execute_state.statement, "table", None)
    if table is not None and table.name == AuditLog.__tablename__:
        raise AuditLogImmutableError("Audit logs are immutable and cannot be modified or deleted")
