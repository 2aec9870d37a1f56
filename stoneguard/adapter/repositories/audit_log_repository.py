from sqlmodel.ext.asyncio.session import AsyncSession

from stoneguard.app.repositories.audit_log_repository import IAuditLogRepository
from stoneguard.domain.entities import AuditLog, AuditLogImmutableError


class AuditLogRepository(IAuditLogRepository):
    """AuditLog repository implementation using SQLModel (append-only)"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, audit_log: AuditLog) -> AuditLog:
        """Create a new audit entry (immutable)"""
        self.session.add(audit_log)
        await self.session.flush()
        await self.session.refresh(audit_log)
        return audit_log

    async def update(self, audit_log: AuditLog) -> AuditLog:
        raise AuditLogImmutableError("Audit logs are immutable and cannot be modified")

    async def delete(self, audit_log: AuditLog) -> None:
        raise AuditLogImmutableError("Audit logs are immutable and cannot be deleted")
