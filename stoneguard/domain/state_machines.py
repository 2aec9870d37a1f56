"""
Resource State Machines

Pure transition checks for quotations, order fulfillment and order payment.
Each check returns Return.ok(None) when the transition is allowed, or an
Error whose details carry the current and target states for the audit trail.
"""

from typing import Dict, FrozenSet

from stoneguard.libs.result import Error, Result, Return

from .entities.enums import OrderStatus, PaymentStatus, QuotationStatus

QUOTATION_TRANSITIONS: Dict[QuotationStatus, FrozenSet[QuotationStatus]] = {
    QuotationStatus.draft: frozenset(
        {QuotationStatus.submitted, QuotationStatus.adjustment_required}
    ),
    QuotationStatus.adjustment_required: frozenset(
        {QuotationStatus.submitted, QuotationStatus.issued}
    ),
    QuotationStatus.submitted: frozenset({QuotationStatus.issued}),
    QuotationStatus.issued: frozenset({QuotationStatus.approved, QuotationStatus.rejected}),
    QuotationStatus.approved: frozenset(),
    QuotationStatus.rejected: frozenset(),
}

ORDER_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.draft: frozenset({OrderStatus.confirmed, OrderStatus.cancelled}),
    OrderStatus.confirmed: frozenset({OrderStatus.dispatched, OrderStatus.cancelled}),
    OrderStatus.dispatched: frozenset({OrderStatus.delivered, OrderStatus.cancelled}),
    OrderStatus.delivered: frozenset(),
    OrderStatus.cancelled: frozenset(),
}

# Fulfillment steps that may only happen once the order is paid in full
PAID_ONLY_ORDER_STATES = frozenset(
    {OrderStatus.confirmed, OrderStatus.dispatched, OrderStatus.delivered}
)

PAYMENT_TRANSITIONS: Dict[PaymentStatus, FrozenSet[PaymentStatus]] = {
    PaymentStatus.pending: frozenset(
        {PaymentStatus.payment_in_progress, PaymentStatus.fully_paid}
    ),
    PaymentStatus.payment_in_progress: frozenset(
        {PaymentStatus.payment_in_progress, PaymentStatus.fully_paid}
    ),
    PaymentStatus.fully_paid: frozenset(),
}


def _denied(code: str, message: str, current: str, target: str) -> Result[None]:
    return Return.err(
        Error(code, message, details={"current_state": current, "target_state": target})
    )


def validate_quotation_transition(
    current: QuotationStatus, target: QuotationStatus
) -> Result[None]:
    if target in QUOTATION_TRANSITIONS.get(current, frozenset()):
        return Return.ok(None)
    if current in (QuotationStatus.approved, QuotationStatus.rejected):
        return _denied(
            "QUOTATION_ALREADY_PROCESSED",
            "This quotation has already been processed",
            current.value,
            target.value,
        )
    return _denied(
        "INVALID_QUOTATION_STATUS",
        f'Cannot move quotation from "{current.value}" to "{target.value}"',
        current.value,
        target.value,
    )


def validate_order_transition(
    current: OrderStatus, target: OrderStatus, payment_status: PaymentStatus
) -> Result[None]:
    if current == target:
        return _denied(
            "ORDER_ALREADY_IN_STATE",
            f'Order is already "{current.value}"',
            current.value,
            target.value,
        )
    if target not in ORDER_TRANSITIONS.get(current, frozenset()):
        return _denied(
            "INVALID_ORDER_TRANSITION",
            f'Cannot move order from "{current.value}" to "{target.value}"',
            current.value,
            target.value,
        )
    if target in PAID_ONLY_ORDER_STATES and payment_status != PaymentStatus.fully_paid:
        return _denied(
            "PAYMENT_NOT_COMPLETE",
            f'Order must be fully paid before it can be "{target.value}"',
            current.value,
            target.value,
        )
    return Return.ok(None)


def validate_payment_transition(
    current: PaymentStatus, target: PaymentStatus
) -> Result[None]:
    if target in PAYMENT_TRANSITIONS.get(current, frozenset()):
        return Return.ok(None)
    return _denied(
        "INVALID_PAYMENT_TRANSITION",
        f'Cannot move payment from "{current.value}" to "{target.value}"',
        current.value,
        target.value,
    )


def payment_status_for(total_paid: float, grand_total: float) -> PaymentStatus:
    """Payment status implied by the approved total against the order total."""
    if grand_total > 0 and total_paid >= grand_total:
        return PaymentStatus.fully_paid
    if total_paid > 0:
        return PaymentStatus.payment_in_progress
    return PaymentStatus.pending
