"""
Approve Quotation Use Case

Turns an issued, still valid quotation into a draft order.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from stoneguard.app.services.audit_logger import AuditContext
from stoneguard.app.services.ownership import project_quotation
from stoneguard.app.services.status_validator import check_quotation_approvable
from stoneguard.app.services.unit_of_work import UnitOfWork
from stoneguard.domain.base import utcnow
from stoneguard.domain.entities import (
    AuditStatus,
    Order,
    OrderStatus,
    PaymentStatus,
    Quotation,
    QuotationStatus,
)
from stoneguard.libs.result import Error, Result, Return


@dataclass
class ApprovalResult:
    quotation: Quotation
    order: Order


def generate_order_number(now: datetime) -> str:
    return f"ORD-{now:%Y%m%d}-{secrets.token_hex(3).upper()}"


def order_items_from(quotation: Quotation) -> list:
    items = []
    for item in quotation.items or []:
        quantity = item.get("requested_quantity", 0)
        unit_price = item.get("final_unit_price", item.get("price_snapshot", 0)) or 0
        items.append(
            {
                "stone_id": item.get("stone_id"),
                "stone_name": item.get("stone_name"),
                "price_unit": item.get("price_unit"),
                "unit_price": unit_price,
                "quantity": quantity,
                "total_price": unit_price * quantity,
            }
        )
    return items


class ApproveQuotationUseCase:
    """
    Use case for a buyer approving their quotation.

    Business Rules:
    - Only the owning buyer can approve
    - Authoritative state is re-read inside the writing transaction
    - The status write is conditional (status=issued AND no order yet):
      losing a race is QUOTATION_STATE_CHANGED and creates nothing
    - Exactly one order per quotation: draft, payment pending,
      outstanding balance = quotation grand total
    - Audit entry written in the same transaction as the approval
    """

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def execute(
        self,
        quotation_id: UUID,
        buyer_id: UUID,
        audit: AuditContext,
        comment: Optional[str] = None,
    ) -> Result[ApprovalResult]:
        async with self.uow:
            quotation = await self.uow.quotations.get_owned(quotation_id, buyer_id)
            if quotation is None:
                return Return.err(Error("NOT_FOUND", "Quotation not found"))

            now = utcnow()
            approvable = check_quotation_approvable(project_quotation(quotation), now)
            if approvable.is_err():
                return approvable

            order_number = generate_order_number(now)
            decision = {
                "decision": QuotationStatus.approved.value,
                "comment": comment,
                "decided_at": now.isoformat(),
            }
            approved = await self.uow.quotations.mark_approved(
                quotation_id, buyer_id, order_number, decision
            )
            if not approved:
                return Return.err(
                    Error(
                        "QUOTATION_STATE_CHANGED",
                        "This quotation has already been processed. Please refresh and try again.",
                    )
                )

            grand_total = quotation.grand_total
            order = Order(
                order_number=order_number,
                quotation_id=quotation.id,
                buyer_id=buyer_id,
                status=OrderStatus.draft,
                payment_status=PaymentStatus.pending,
                items=order_items_from(quotation),
                financials=dict(quotation.financials or {}),
                total_paid=0,
                outstanding_balance=grand_total,
                timeline=[
                    {
                        "status": OrderStatus.draft.value,
                        "timestamp": now.isoformat(),
                        "notes": f"Order created from quotation {quotation.reference_number}",
                    }
                ],
            )
            await self.uow.orders.create(order)

            await self.uow.audit_logs.create(
                audit.entry(
                    "QUOTATION_APPROVED",
                    AuditStatus.SUCCESS,
                    resource_id=quotation.id,
                    reference_number=quotation.reference_number,
                    details=f"Order {order_number} created for {grand_total:.2f}",
                )
            )

            await self.uow.commit()

            return Return.ok(ApprovalResult(quotation=quotation, order=order))
