from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, ConfigDict, Field

from stoneguard.api.error import ClientError
from stoneguard.api.guards.anomaly import anomaly_guard, detect_payment_anomalies
from stoneguard.api.guards.identity import Subject, get_current_subject
from stoneguard.api.guards.ip_allowlist import require_allowed_ip
from stoneguard.api.guards.ownership import require_owned_order, require_visible_order
from stoneguard.api.guards.rate_limit import PAYMENT, rate_limit_guard
from stoneguard.api.guards.rbac import require_permission
from stoneguard.api.guards.reauth import require_payment_mfa
from stoneguard.api.guards.status import require_payable_order
from stoneguard.api.guards.tamper import reject_payment_status_tampering
from stoneguard.api.guards.throttle import payment_throttle
from stoneguard.api.guards.waf import waf_protection
from stoneguard.api.utils.failures import raise_use_case_error
from stoneguard.api.utils.request_context import audit_context
from stoneguard.api.views.sanitizer import SanitizingRoute
from stoneguard.app.services.audit_logger import AuditLogger
from stoneguard.app.services.ownership import parse_identifier
from stoneguard.app.services.unit_of_work import UnitOfWork
from stoneguard.app.use_cases.orders import (
    ApprovePaymentProofUseCase,
    GetOrderUseCase,
    RejectPaymentProofUseCase,
    SubmitPaymentProofUseCase,
    UpdateOrderStatusUseCase,
)
from stoneguard.depends import get_audit_logger, get_unit_of_work
from stoneguard.domain.roles import Permission
from stoneguard.libs.result import Error

router = APIRouter(prefix="/orders", tags=["Orders"], route_class=SanitizingRoute)


class PaymentProofRequest(BaseModel):
    """Payment proof submission; passwordConfirmation and captchaToken are read by the guards"""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    amount_paid: float = Field(alias="amountPaid", allow_inf_nan=False)
    proof_file: Optional[str] = Field(default=None, alias="proofFile", max_length=1024)
    notes: Optional[str] = Field(default=None, max_length=1000)


class PaymentReviewRequest(BaseModel):
    notes: Optional[str] = Field(default=None, max_length=1000)


class OrderStatusRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str
    courier_service: Optional[str] = Field(default=None, alias="courierService")
    tracking_number: Optional[str] = Field(default=None, alias="trackingNumber")
    courier_link: Optional[str] = Field(default=None, alias="courierLink")
    notes: Optional[str] = Field(default=None, max_length=1000)


def _payment_proof_payload(proof) -> dict:
    return {
        "id": str(proof.id),
        "amount_paid": proof.amount_paid,
        "status": proof.status.value,
        "uploaded_at": proof.uploaded_at.isoformat() if proof.uploaded_at else None,
    }


def _required_id(value: str, kind: str):
    parsed = parse_identifier(value)
    if parsed is None:
        raise ClientError(
            Error("INVALID_ID", f"Invalid {kind} ID format"), status_code=status.HTTP_400_BAD_REQUEST
        )
    return parsed


@router.post(
    "/payment/submit/{order_id}",
    status_code=status.HTTP_201_CREATED,
    dependencies=[
        Depends(waf_protection),
        Depends(get_current_subject),
        Depends(require_permission(Permission.submit_payment_proof)),
        Depends(reject_payment_status_tampering),
        Depends(rate_limit_guard(PAYMENT)),
        Depends(require_owned_order),
        Depends(require_payable_order),
        Depends(detect_payment_anomalies),
        Depends(anomaly_guard("payment")),
        Depends(require_payment_mfa),
        Depends(payment_throttle),
    ],
)
async def submit_payment_proof(
    order_id: str,
    body: PaymentProofRequest,
    request: Request,
    subject: Subject = Depends(get_current_subject),
    uow: UnitOfWork = Depends(get_unit_of_work),
    audit_logger: AuditLogger = Depends(get_audit_logger),
):
    """
    Submit a payment proof for admin review.

    Raises:
        - 400: malformed id or body, paymentStatus supplied, amount above balance,
          cancelled order
        - 401: missing/invalid token, missing or wrong password confirmation
        - 403: not the owner, RBAC, WAF, CAPTCHA required/failed
        - 409: order already fully paid
        - 429: rate limit exceeded
        - 503: too many concurrent submissions
    """
    use_case = SubmitPaymentProofUseCase(uow)
    result = await use_case.execute(
        parse_identifier(order_id),
        subject.id,
        body.amount_paid,
        audit_context(request),
        proof_file=body.proof_file,
        notes=body.notes,
    )
    if result.is_err():
        await raise_use_case_error(request, audit_logger, "PAYMENT_PROOF_SUBMIT", result.error)

    submission = result.value
    return {
        "message": "Payment proof submitted and awaiting review",
        "order": submission.order.model_dump(mode="json"),
        "payment_proof": _payment_proof_payload(submission.proof),
    }


@router.get(
    "/{order_id}",
    status_code=status.HTTP_200_OK,
    dependencies=[
        Depends(get_current_subject),
        Depends(require_permission(Permission.view_own_orders, Permission.manage_orders)),
        Depends(require_visible_order),
    ],
)
async def get_order(
    order_id: str,
    request: Request,
    subject: Subject = Depends(get_current_subject),
    uow: UnitOfWork = Depends(get_unit_of_work),
    audit_logger: AuditLogger = Depends(get_audit_logger),
):
    use_case = GetOrderUseCase(uow)
    result = await use_case.execute(parse_identifier(order_id), subject.id, subject.role)
    if result.is_err():
        await raise_use_case_error(request, audit_logger, "ORDER_VIEW", result.error)

    return {"order": result.value.model_dump(mode="json")}


@router.put(
    "/admin/{order_id}/payments/{proof_id}/approve",
    status_code=status.HTTP_200_OK,
    dependencies=[
        Depends(waf_protection),
        Depends(get_current_subject),
        Depends(require_permission(Permission.review_payments)),
        Depends(require_allowed_ip),
    ],
)
async def approve_payment_proof(
    order_id: str,
    proof_id: str,
    request: Request,
    body: Optional[PaymentReviewRequest] = None,
    subject: Subject = Depends(get_current_subject),
    uow: UnitOfWork = Depends(get_unit_of_work),
    audit_logger: AuditLogger = Depends(get_audit_logger),
):
    use_case = ApprovePaymentProofUseCase(uow)
    result = await use_case.execute(
        _required_id(order_id, "order"),
        _required_id(proof_id, "payment proof"),
        subject.id,
        audit_context(request),
        notes=body.notes if body else None,
    )
    if result.is_err():
        await raise_use_case_error(request, audit_logger, "PAYMENT_APPROVE", result.error)

    return {"message": "Payment approved", "order": result.value.model_dump(mode="json")}


@router.put(
    "/admin/{order_id}/payments/{proof_id}/reject",
    status_code=status.HTTP_200_OK,
    dependencies=[
        Depends(waf_protection),
        Depends(get_current_subject),
        Depends(require_permission(Permission.review_payments)),
        Depends(require_allowed_ip),
    ],
)
async def reject_payment_proof(
    order_id: str,
    proof_id: str,
    request: Request,
    body: Optional[PaymentReviewRequest] = None,
    subject: Subject = Depends(get_current_subject),
    uow: UnitOfWork = Depends(get_unit_of_work),
    audit_logger: AuditLogger = Depends(get_audit_logger),
):
    use_case = RejectPaymentProofUseCase(uow)
    result = await use_case.execute(
        _required_id(order_id, "order"),
        _required_id(proof_id, "payment proof"),
        subject.id,
        audit_context(request),
        notes=body.notes if body else None,
    )
    if result.is_err():
        await raise_use_case_error(request, audit_logger, "PAYMENT_REJECT", result.error)

    return {"message": "Payment rejected", "order": result.value.model_dump(mode="json")}


@router.put(
    "/admin/status/{order_id}",
    status_code=status.HTTP_200_OK,
    dependencies=[
        Depends(waf_protection),
        Depends(get_current_subject),
        Depends(require_permission(Permission.manage_orders)),
    ],
)
async def update_order_status(
    order_id: str,
    body: OrderStatusRequest,
    request: Request,
    uow: UnitOfWork = Depends(get_unit_of_work),
    audit_logger: AuditLogger = Depends(get_audit_logger),
):
    use_case = UpdateOrderStatusUseCase(uow)
    result = await use_case.execute(
        _required_id(order_id, "order"),
        body.status,
        audit_context(request),
        courier_service=body.courier_service,
        tracking_number=body.tracking_number,
        courier_link=body.courier_link,
        notes=body.notes,
    )
    if result.is_err():
        await raise_use_case_error(request, audit_logger, "ORDER_STATUS_UPDATE", result.error)

    order = result.value
    return {"message": f"Order status updated to {order.status.value}", "order": order.model_dump(mode="json")}
