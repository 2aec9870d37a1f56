from abc import ABC, abstractmethod

from stoneguard.domain.entities import AuditLog


class IAuditLogRepository(ABC):
    """
    AuditLog repository interface - application layer

    Append-only: update and delete exist only to fail loudly.
    """

    @abstractmethod
    async def create(self, audit_log: AuditLog) -> AuditLog:
        """Append a new audit entry"""
        pass

    @abstractmethod
    async def update(self, audit_log: AuditLog) -> AuditLog:
        """Always raises AuditLogImmutableError"""
        pass

    @abstractmethod
    async def delete(self, audit_log: AuditLog) -> None:
        """Always raises AuditLogImmutableError"""
        pass
