"""
Review Payment Proof Use Cases

Admin approval or rejection of a submitted payment proof. Approval is the
only path that moves an order's payment status.
"""

from typing import Optional
from uuid import UUID

from stoneguard.app.services.audit_logger import AuditContext
from stoneguard.app.services.unit_of_work import UnitOfWork
from stoneguard.domain.base import utcnow
from stoneguard.domain.entities import AuditStatus, Order, PaymentProofStatus
from stoneguard.domain.state_machines import payment_status_for, validate_payment_transition
from stoneguard.libs.result import Error, Result, Return

from .submit_payment_proof_use_case import AMOUNT_EPSILON


class ApprovePaymentProofUseCase:
    """
    Business Rules:
    - Only pending proofs can be reviewed (conditional write)
    - The order total is re-read and written optimistically: the update only
      lands if total_paid is unchanged since the read
    - Approved total may not exceed the order grand total
    - payment_status follows from total_paid (pending -> in progress -> fully paid)
    """

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def execute(
        self,
        order_id: UUID,
        proof_id: UUID,
        reviewer_id: UUID,
        audit: AuditContext,
        notes: Optional[str] = None,
    ) -> Result[Order]:
        async with self.uow:
            order = await self.uow.orders.get_by_id(order_id)
            if order is None:
                return Return.err(Error("NOT_FOUND", "Order not found"))

            proof = await self.uow.payment_proofs.get_for_order(proof_id, order_id)
            if proof is None:
                return Return.err(Error("NOT_FOUND", "Payment proof not found"))
            if proof.status != PaymentProofStatus.pending:
                return Return.err(
                    Error("PROOF_ALREADY_REVIEWED", "This payment proof has already been reviewed")
                )

            grand_total = order.grand_total
            expected_total_paid = order.total_paid
            total_paid = expected_total_paid + proof.amount_paid
            if total_paid > grand_total + AMOUNT_EPSILON:
                return Return.err(
                    Error(
                        "AMOUNT_EXCEEDS_BALANCE",
                        "Payment amount exceeds outstanding balance",
                        details={
                            "amount_paid": proof.amount_paid,
                            "outstanding_balance": order.outstanding_balance,
                        },
                    )
                )

            payment_status = payment_status_for(total_paid, grand_total)
            transition = validate_payment_transition(order.payment_status, payment_status)
            if transition.is_err():
                return transition

            reviewed = await self.uow.payment_proofs.mark_reviewed(
                proof.id, PaymentProofStatus.approved, reviewer_id, utcnow(), notes
            )
            if not reviewed:
                return Return.err(
                    Error("PROOF_ALREADY_REVIEWED", "This payment proof has already been reviewed")
                )

            applied = await self.uow.orders.apply_payment(
                order.id,
                expected_total_paid,
                total_paid,
                max(grand_total - total_paid, 0),
                payment_status,
            )
            if not applied:
                return Return.err(
                    Error(
                        "ORDER_STATE_CHANGED",
                        "The order was updated by another request. Please refresh and try again.",
                    )
                )

            await self.uow.audit_logs.create(
                audit.entry(
                    "PAYMENT_APPROVED",
                    AuditStatus.SUCCESS,
                    resource_id=order.id,
                    reference_number=order.order_number,
                    details=(
                        f"Proof {proof.id} approved for {proof.amount_paid:.2f}; "
                        f"payment status {payment_status.value}"
                    ),
                )
            )
            await self.uow.commit()

            return Return.ok(order)


class RejectPaymentProofUseCase:
    """
    Business Rules:
    - Only pending proofs can be reviewed (conditional write)
    - Order totals and payment status are untouched
    """

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def execute(
        self,
        order_id: UUID,
        proof_id: UUID,
        reviewer_id: UUID,
        audit: AuditContext,
        notes: Optional[str] = None,
    ) -> Result[Order]:
        async with self.uow:
            order = await self.uow.orders.get_by_id(order_id)
            if order is None:
                return Return.err(Error("NOT_FOUND", "Order not found"))

            proof = await self.uow.payment_proofs.get_for_order(proof_id, order_id)
            if proof is None:
                return Return.err(Error("NOT_FOUND", "Payment proof not found"))

            reviewed = await self.uow.payment_proofs.mark_reviewed(
                proof.id, PaymentProofStatus.rejected, reviewer_id, utcnow(), notes
            )
            if not reviewed:
                return Return.err(
                    Error("PROOF_ALREADY_REVIEWED", "This payment proof has already been reviewed")
                )

            await self.uow.audit_logs.create(
                audit.entry(
                    "PAYMENT_REJECTED",
                    AuditStatus.SUCCESS,
                    resource_id=order.id,
                    reference_number=order.order_number,
                    details=f"Proof {proof.id} rejected" + (f": {notes}" if notes else ""),
                )
            )
            await self.uow.commit()

            return Return.ok(order)
