from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, ConfigDict

from stoneguard.api.guards.anomaly import anomaly_guard
from stoneguard.api.guards.identity import Subject, get_current_subject
from stoneguard.api.guards.ownership import require_owned_quotation, require_visible_quotation
from stoneguard.api.guards.rate_limit import APPROVAL, rate_limit_guard
from stoneguard.api.guards.rbac import require_permission
from stoneguard.api.guards.reauth import require_approval_reauth
from stoneguard.api.guards.status import require_approvable_quotation
from stoneguard.api.guards.throttle import approval_throttle
from stoneguard.api.guards.waf import waf_protection
from stoneguard.api.utils.failures import raise_use_case_error
from stoneguard.api.utils.request_context import audit_context
from stoneguard.api.views.sanitizer import SanitizingRoute
from stoneguard.app.services.audit_logger import AuditLogger
from stoneguard.app.services.ownership import parse_identifier
from stoneguard.app.services.unit_of_work import UnitOfWork
from stoneguard.app.use_cases.quotations import (
    ApproveQuotationUseCase,
    GetQuotationUseCase,
    RejectQuotationUseCase,
)
from stoneguard.depends import get_audit_logger, get_unit_of_work
from stoneguard.domain.roles import Permission

router = APIRouter(prefix="/quotes", tags=["Quotations"], route_class=SanitizingRoute)


class QuotationDecisionRequest(BaseModel):
    """Body of approve/reject; passwordConfirmation and captchaToken are read by the guards"""

    model_config = ConfigDict(extra="allow")

    comment: Optional[str] = None


@router.put(
    "/{quote_id}/approve",
    status_code=status.HTTP_200_OK,
    dependencies=[
        Depends(waf_protection),
        Depends(get_current_subject),
        Depends(require_permission(Permission.approve_quotation)),
        Depends(approval_throttle),
        Depends(rate_limit_guard(APPROVAL)),
        Depends(require_owned_quotation),
        Depends(require_approvable_quotation),
        Depends(anomaly_guard("approve")),
        Depends(require_approval_reauth),
    ],
)
async def approve_quotation(
    quote_id: str,
    request: Request,
    body: Optional[QuotationDecisionRequest] = None,
    subject: Subject = Depends(get_current_subject),
    uow: UnitOfWork = Depends(get_unit_of_work),
    audit_logger: AuditLogger = Depends(get_audit_logger),
):
    """
    Approve an issued quotation and create its order.

    Raises:
        - 400: malformed id, quotation not issued, expired
        - 401: missing/invalid token, missing or wrong password confirmation
        - 403: not the owner, RBAC, WAF, CAPTCHA required/failed
        - 409: already approved or changed concurrently
        - 429: rate limit exceeded
        - 503: too many concurrent approvals
    """
    use_case = ApproveQuotationUseCase(uow)
    result = await use_case.execute(
        parse_identifier(quote_id),
        subject.id,
        audit_context(request),
        comment=body.comment if body else None,
    )
    if result.is_err():
        await raise_use_case_error(request, audit_logger, "QUOTATION_APPROVE", result.error)

    approval = result.value
    return {
        "message": "Quotation approved and order created",
        "quotation": approval.quotation.model_dump(mode="json"),
        "order": {
            "id": str(approval.order.id),
            "order_number": approval.order.order_number,
            "status": approval.order.status.value,
        },
    }


@router.put(
    "/{quote_id}/reject",
    status_code=status.HTTP_200_OK,
    dependencies=[
        Depends(waf_protection),
        Depends(get_current_subject),
        Depends(require_permission(Permission.reject_quotation)),
        Depends(require_owned_quotation),
    ],
)
async def reject_quotation(
    quote_id: str,
    request: Request,
    body: Optional[QuotationDecisionRequest] = None,
    subject: Subject = Depends(get_current_subject),
    uow: UnitOfWork = Depends(get_unit_of_work),
    audit_logger: AuditLogger = Depends(get_audit_logger),
):
    use_case = RejectQuotationUseCase(uow)
    result = await use_case.execute(
        parse_identifier(quote_id),
        subject.id,
        audit_context(request),
        comment=body.comment if body else None,
    )
    if result.is_err():
        await raise_use_case_error(request, audit_logger, "QUOTATION_REJECT", result.error)

    return {"message": "Quotation rejected", "quotation": result.value.model_dump(mode="json")}


@router.get(
    "/{quote_id}",
    status_code=status.HTTP_200_OK,
    dependencies=[
        Depends(get_current_subject),
        Depends(
            require_permission(Permission.view_own_quotations, Permission.view_all_quotations)
        ),
        Depends(require_visible_quotation),
    ],
)
async def get_quotation(
    quote_id: str,
    request: Request,
    subject: Subject = Depends(get_current_subject),
    uow: UnitOfWork = Depends(get_unit_of_work),
    audit_logger: AuditLogger = Depends(get_audit_logger),
):
    use_case = GetQuotationUseCase(uow)
    result = await use_case.execute(parse_identifier(quote_id), subject.id, subject.role)
    if result.is_err():
        await raise_use_case_error(request, audit_logger, "QUOTATION_VIEW", result.error)

    return {"quotation": result.value.model_dump(mode="json")}
