from fastapi import Depends, Request, status

from stoneguard.api.guards.identity import Subject, get_current_subject
from stoneguard.api.guards.policy import deny
from stoneguard.app.services.audit_logger import AuditLogger
from stoneguard.depends import get_audit_logger
from stoneguard.domain.roles import Permission, has_permission
from stoneguard.libs.result import Error


def require_permission(*permissions: Permission):
    """Dependency allowing subjects whose role grants any of the permissions."""

    async def guard(
        request: Request,
        subject: Subject = Depends(get_current_subject),
        audit_logger: AuditLogger = Depends(get_audit_logger),
    ) -> Subject:
        if not any(has_permission(subject.role, permission) for permission in permissions):
            required = ", ".join(permission.value for permission in permissions)
            await deny(
                request,
                audit_logger,
                "AUTHORIZE_ROLES",
                Error("FORBIDDEN", "Access denied"),
                status.HTTP_403_FORBIDDEN,
                details=f"Required permission: {required}, role: {subject.role.value}",
            )
        return subject

    return guard
