from typing import Optional

from fastapi import Depends, Request, status

from stoneguard.api.error import ERROR_STATUS_CODES
from stoneguard.api.guards.identity import Subject, get_current_subject
from stoneguard.api.guards.policy import Stage, deny, stage_failed
from stoneguard.app.services.audit_logger import AuditLogger
from stoneguard.app.services.ownership import (
    ORDER,
    QUOTATION,
    OwnershipValidator,
    ValidatedResource,
    parse_identifier,
)
from stoneguard.depends import get_audit_logger, get_ownership_validator
from stoneguard.domain.entities import Role
from stoneguard.libs.result import Error


def ownership_guard(kind: str, path_param: str, buyers_only: bool = False):
    """
    Dependency verifying the subject owns the resource named by path_param.

    With buyers_only, staff roles skip the owner match (their access was
    already decided by RBAC) but the id is still validated.
    """

    async def guard(
        request: Request,
        subject: Subject = Depends(get_current_subject),
        validator: OwnershipValidator = Depends(get_ownership_validator),
        audit_logger: AuditLogger = Depends(get_audit_logger),
    ) -> Optional[ValidatedResource]:
        resource_id = request.path_params.get(path_param)

        if buyers_only and subject.role != Role.BUYER:
            if parse_identifier(resource_id) is None:
                await deny(
                    request,
                    audit_logger,
                    "OWNERSHIP_CHECK",
                    Error("INVALID_ID", f"Invalid {kind} ID format"),
                    status.HTTP_400_BAD_REQUEST,
                )
            return None

        try:
            result = await validator.verify(kind, resource_id, subject.id)
        except Exception as exc:
            await stage_failed(Stage.ownership, exc, request, audit_logger)
            return None

        if result.is_err():
            error = result.error
            await deny(
                request,
                audit_logger,
                "OWNERSHIP_CHECK",
                error,
                ERROR_STATUS_CODES.get(error.code, status.HTTP_403_FORBIDDEN),
                details=f"{error.code}: {kind} {resource_id}",
            )

        request.state.validated_resource = result.value
        return result.value

    return guard


require_owned_quotation = ownership_guard(QUOTATION, "quote_id")
require_owned_order = ownership_guard(ORDER, "order_id")
require_visible_quotation = ownership_guard(QUOTATION, "quote_id", buyers_only=True)
require_visible_order = ownership_guard(ORDER, "order_id", buyers_only=True)
