import re
from typing import Optional, Sequence

from fastapi import Depends, Request, status

from config import ApplicationConfig
from stoneguard.api.guards.policy import deny
from stoneguard.api.utils.request_context import get_client_ip
from stoneguard.app.services.audit_logger import AuditLogger
from stoneguard.depends import get_audit_logger
from stoneguard.libs.result import Error


def ip_allowed(client_ip: Optional[str], allowlist: Sequence[str]) -> bool:
    """Exact entries, or entries where `*` stands for any run of characters."""
    if not client_ip:
        return False
    for entry in allowlist:
        if entry == client_ip:
            return True
        if "*" in entry:
            pattern = ".*".join(re.escape(part) for part in entry.split("*"))
            if re.fullmatch(pattern, client_ip):
                return True
    return False


async def require_allowed_ip(
    request: Request,
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> None:
    """Admin surface allowlist; an empty ADMIN_IP_ALLOWLIST disables the check."""
    allowlist = ApplicationConfig.ADMIN_IP_ALLOWLIST
    if not allowlist:
        return

    client_ip = get_client_ip(request)
    if not ip_allowed(client_ip, allowlist):
        await deny(
            request,
            audit_logger,
            "IP_WHITELIST_CHECK",
            Error("IP_NOT_ALLOWED", "Access denied from this IP address"),
            status.HTTP_403_FORBIDDEN,
            details=f"IP {client_ip} not in admin allowlist",
        )
