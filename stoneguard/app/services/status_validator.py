"""
Status Validator

State-machine checks run by the guard pipeline before a handler mutates a
quotation or an order. Denials carry current/target states in their details.
"""

from datetime import datetime
from typing import Callable, Optional

from stoneguard.app.services.ownership import ValidatedResource
from stoneguard.app.services.unit_of_work import UnitOfWorkFactory
from stoneguard.domain.base import utcnow
from stoneguard.domain.entities import OrderStatus, PaymentStatus, QuotationStatus
from stoneguard.domain.state_machines import validate_quotation_transition
from stoneguard.libs.result import Error, Result, Return


def _already_decided(decision: Optional[dict]) -> bool:
    return bool(decision) and decision.get("decision") == QuotationStatus.approved.value


def check_quotation_approvable(resource: ValidatedResource, now: datetime) -> Result[None]:
    """Replay guard first, then the state machine, then the validity window."""
    current = QuotationStatus(resource.status)
    details = {"current_state": current.value, "target_state": QuotationStatus.approved.value}

    if (
        current == QuotationStatus.approved
        or resource.fields.get("order_number")
        or _already_decided(resource.fields.get("buyer_decision"))
    ):
        return Return.err(
            Error(
                "QUOTATION_ALREADY_PROCESSED",
                "This quotation has already been approved",
                details=details,
            )
        )

    transition = validate_quotation_transition(current, QuotationStatus.approved)
    if transition.is_err():
        return transition

    validity_end = resource.fields.get("validity_end")
    if validity_end is None:
        return Return.err(
            Error("QUOTATION_NO_VALIDITY", "Quotation has no validity period", details=details)
        )
    if validity_end < now:
        return Return.err(
            Error(
                "QUOTATION_EXPIRED",
                "This quotation has expired and can no longer be approved",
                details={**details, "validity_end": validity_end.isoformat()},
            )
        )
    return Return.ok(None)


def check_payment_submittable(resource: ValidatedResource) -> Result[None]:
    current = OrderStatus(resource.status)
    payment_status = PaymentStatus(resource.fields["payment_status"])
    details = {"current_state": payment_status.value, "order_status": current.value}

    if current == OrderStatus.cancelled:
        return Return.err(
            Error("ORDER_CANCELLED", "Cannot submit payment for a cancelled order", details=details)
        )
    if payment_status == PaymentStatus.fully_paid:
        return Return.err(
            Error("ORDER_ALREADY_PAID", "This order is already fully paid", details=details)
        )
    return Return.ok(None)


class StatusValidator:
    def __init__(
        self, uow_factory: UnitOfWorkFactory, clock: Callable[[], datetime] = utcnow
    ):
        self.uow_factory = uow_factory
        self.clock = clock

    async def validate_quotation_approval(self, resource: ValidatedResource) -> Result[None]:
        """
        Validate the snapshot, then re-read the row and compare.

        A fresh read that disagrees with the validated snapshot means another
        request got there first: QUOTATION_STATE_CHANGED (409).
        """
        result = check_quotation_approvable(resource, self.clock())
        if result.is_err():
            return result

        uow = self.uow_factory()
        async with uow:
            fresh = await uow.quotations.get_owned(resource.id, resource.owner_id)
            current_state = fresh.status.value if fresh else None
            changed = (
                fresh is None
                or current_state != resource.status
                or fresh.order_number != resource.fields.get("order_number")
                or _already_decided(fresh.buyer_decision)
            )

        if changed:
            return Return.err(
                Error(
                    "QUOTATION_STATE_CHANGED",
                    "This quotation has already been processed. Please refresh and try again.",
                    details={
                        "current_state": current_state,
                        "target_state": QuotationStatus.approved.value,
                    },
                )
            )
        return Return.ok(None)

    def validate_payment_submission(self, resource: ValidatedResource) -> Result[None]:
        return check_payment_submittable(resource)
