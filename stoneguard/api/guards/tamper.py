from fastapi import Depends, Request, status

from stoneguard.api.guards.policy import Stage, deny, stage_failed
from stoneguard.api.utils.request_context import read_json_body
from stoneguard.app.services.audit_logger import AuditLogger
from stoneguard.depends import get_audit_logger
from stoneguard.domain.entities import AuditStatus
from stoneguard.libs.result import Error

PROTECTED_FIELDS = ("paymentStatus", "payment_status")


async def reject_payment_status_tampering(
    request: Request,
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> None:
    """Payment status is server-managed: any client-supplied value is rejected."""
    try:
        body = await read_json_body(request)
        tampered = any(
            (isinstance(body, dict) and field in body) or field in request.query_params
            for field in PROTECTED_FIELDS
        )
    except Exception as exc:
        await stage_failed(Stage.tamper, exc, request, audit_logger)
        return

    if tampered:
        await deny(
            request,
            audit_logger,
            "PAYMENT_STATUS_MANIPULATION_ATTEMPT",
            Error(
                "PAYMENT_STATUS_MANIPULATION",
                "Payment status cannot be set directly. Payment status is managed "
                "automatically by the system after admin approval.",
            ),
            status.HTTP_400_BAD_REQUEST,
            audit_status=AuditStatus.WARNING,
            details="Client attempted to set paymentStatus directly",
        )
