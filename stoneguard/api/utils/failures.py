from typing import NoReturn

from fastapi import Request

from stoneguard.api.error import ERROR_STATUS_CODES, ClientError, ServerError
from stoneguard.api.guards.policy import audit_status_for, describe
from stoneguard.api.utils.request_context import audit_context, get_resource_id
from stoneguard.app.services.audit_logger import AuditLogger
from stoneguard.libs.result import Error


async def raise_use_case_error(
    request: Request, audit_logger: AuditLogger, action: str, error: Error
) -> NoReturn:
    """Audit a failed use case and raise the matching HTTP error; unknown codes are 500."""
    status_code = ERROR_STATUS_CODES.get(error.code)
    if status_code is None:
        raise ServerError(error)
    await audit_logger.record(
        action,
        audit_status_for(status_code),
        context=audit_context(request),
        resource_id=get_resource_id(request),
        details=f"{error.code}: {describe(error)}",
    )
    raise ClientError(error, status_code=status_code)
