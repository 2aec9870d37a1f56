from fastapi import Depends, Request, status

from stoneguard.api.error import ERROR_STATUS_CODES
from stoneguard.api.guards.ownership import require_owned_order, require_owned_quotation
from stoneguard.api.guards.policy import Stage, deny, stage_failed
from stoneguard.app.services.audit_logger import AuditLogger
from stoneguard.app.services.ownership import ValidatedResource
from stoneguard.app.services.status_validator import StatusValidator
from stoneguard.depends import get_audit_logger, get_status_validator
from stoneguard.libs.result import Result


async def _deny_on_error(
    request: Request, audit_logger: AuditLogger, action: str, result: Result[None]
) -> None:
    if result.is_ok():
        return
    error = result.error
    await deny(
        request,
        audit_logger,
        action,
        error,
        ERROR_STATUS_CODES.get(error.code, status.HTTP_400_BAD_REQUEST),
    )


async def require_approvable_quotation(
    request: Request,
    resource: ValidatedResource = Depends(require_owned_quotation),
    validator: StatusValidator = Depends(get_status_validator),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> ValidatedResource:
    """Issued, unexpired, never approved, and unchanged on a fresh re-read."""
    try:
        result = await validator.validate_quotation_approval(resource)
    except Exception as exc:
        await stage_failed(Stage.status, exc, request, audit_logger)
        return resource

    await _deny_on_error(request, audit_logger, "QUOTATION_STATUS_VALIDATION", result)
    return resource


async def require_payable_order(
    request: Request,
    resource: ValidatedResource = Depends(require_owned_order),
    validator: StatusValidator = Depends(get_status_validator),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> ValidatedResource:
    try:
        result = validator.validate_payment_submission(resource)
    except Exception as exc:
        await stage_failed(Stage.status, exc, request, audit_logger)
        return resource

    await _deny_on_error(request, audit_logger, "PAYMENT_STATUS_VALIDATION", result)
    return resource
