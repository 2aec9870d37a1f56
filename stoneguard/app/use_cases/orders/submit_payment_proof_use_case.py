"""
Submit Payment Proof Use Case

Records a buyer's proof of payment for admin review. Never changes the
order's payment status: only an approved proof does that.
"""

import math
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from stoneguard.app.services.audit_logger import AuditContext
from stoneguard.app.services.ownership import project_order
from stoneguard.app.services.status_validator import check_payment_submittable
from stoneguard.app.services.unit_of_work import UnitOfWork
from stoneguard.domain.entities import AuditStatus, Order, PaymentProof
from stoneguard.libs.result import Error, Result, Return

# Tolerance for float money comparisons
AMOUNT_EPSILON = 0.005


@dataclass
class PaymentSubmission:
    order: Order
    proof: PaymentProof


class SubmitPaymentProofUseCase:
    """
    Business Rules:
    - Only the owning buyer can submit
    - Amount must be positive and not above the outstanding balance
    - Cancelled or fully paid orders accept no proofs
    - Nothing is written when any rule fails
    """

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def execute(
        self,
        order_id: UUID,
        buyer_id: UUID,
        amount_paid: float,
        audit: AuditContext,
        proof_file: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Result[PaymentSubmission]:
        if amount_paid is None or not math.isfinite(amount_paid) or amount_paid <= 0:
            return Return.err(Error("INVALID_AMOUNT", "Payment amount must be greater than zero"))

        async with self.uow:
            order = await self.uow.orders.get_owned(order_id, buyer_id)
            if order is None:
                return Return.err(Error("NOT_FOUND", "Order not found"))

            submittable = check_payment_submittable(project_order(order))
            if submittable.is_err():
                return submittable

            if amount_paid > order.outstanding_balance + AMOUNT_EPSILON:
                return Return.err(
                    Error(
                        "AMOUNT_EXCEEDS_BALANCE",
                        "Payment amount exceeds outstanding balance",
                        details={
                            "amount_paid": amount_paid,
                            "outstanding_balance": order.outstanding_balance,
                        },
                    )
                )

            proof = PaymentProof(
                order_id=order.id,
                buyer_id=buyer_id,
                amount_paid=amount_paid,
                proof_file=proof_file,
                notes=notes,
            )
            await self.uow.payment_proofs.create(proof)

            await self.uow.audit_logs.create(
                audit.entry(
                    "PAYMENT_PROOF_SUBMITTED",
                    AuditStatus.SUCCESS,
                    resource_id=order.id,
                    reference_number=order.order_number,
                    details=f"Payment proof {proof.id} for {amount_paid:.2f} awaiting review",
                )
            )
            await self.uow.commit()

            return Return.ok(PaymentSubmission(order=order, proof=proof))
