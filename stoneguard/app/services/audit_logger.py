"""
Audit Logger

Write-only sink for every security decision. Recording never raises: a
failing audit store degrades to the application log so that business
operations are not blocked by the audit trail.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional
from uuid import UUID

from stoneguard.app.services.unit_of_work import UnitOfWorkFactory
from stoneguard.domain.entities import AuditLog, AuditStatus, Role
from stoneguard.domain.entities.audit_log import USER_AGENT_MAX_LENGTH

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"
SECRET_FIELDS = frozenset(
    {"password", "passwordConfirmation", "password_confirmation"}
)


def redact_payload(payload: Any) -> Any:
    """Return a copy of payload with every secret field replaced, at any depth."""
    if isinstance(payload, dict):
        return {
            key: REDACTED if key in SECRET_FIELDS else redact_payload(value)
            for key, value in payload.items()
        }
    if isinstance(payload, (list, tuple)):
        return [redact_payload(item) for item in payload]
    return payload


def truncate_user_agent(user_agent: Optional[str]) -> Optional[str]:
    if user_agent is None:
        return None
    return user_agent[:USER_AGENT_MAX_LENGTH]


@dataclass(frozen=True)
class AuditContext:
    """Who did it and from where; shared by every entry of one request"""

    subject_id: Optional[UUID] = None
    role: Role = Role.GUEST
    client_ip: Optional[str] = None
    user_agent: Optional[str] = None
    request_id: Optional[str] = None

    def entry(
        self,
        action: str,
        status: AuditStatus,
        resource_id: Optional[Any] = None,
        reference_number: Optional[str] = None,
        request_payload: Optional[dict] = None,
        details: Optional[str] = None,
    ) -> AuditLog:
        """Build an audit row; secrets are redacted and the user-agent truncated."""
        return AuditLog(
            subject_id=self.subject_id,
            role=self.role,
            action=action,
            status=status,
            resource_id=str(resource_id) if resource_id is not None else None,
            request_id=self.request_id,
            reference_number=reference_number,
            client_ip=self.client_ip,
            user_agent=truncate_user_agent(self.user_agent),
            request_payload=redact_payload(request_payload) if request_payload else None,
            details=details,
        )


class AuditLogger:
    """
    Persists one immutable AuditLog row per call, in its own transaction.

    Failure semantics: fail-open. Persistence errors are logged at ERROR on
    this module's logger together with the entry that was lost.
    """

    def __init__(self, uow_factory: UnitOfWorkFactory):
        self.uow_factory = uow_factory

    async def record(
        self,
        action: str,
        status: AuditStatus,
        context: Optional[AuditContext] = None,
        resource_id: Optional[Any] = None,
        reference_number: Optional[str] = None,
        request_payload: Optional[dict] = None,
        details: Optional[str] = None,
    ) -> None:
        context = context or AuditContext()
        try:
            entry = context.entry(
                action,
                status,
                resource_id=resource_id,
                reference_number=reference_number,
                request_payload=request_payload,
                details=details,
            )
            uow = self.uow_factory()
            async with uow:
                await uow.audit_logs.create(entry)
                await uow.commit()
        except Exception as exc:
            logger.error(
                f"Audit write failed ({type(exc).__name__}: {exc}); "
                f"action={action} status={getattr(status, 'value', status)} "
                f"subject={context.subject_id} resource={resource_id} details={details}"
            )
