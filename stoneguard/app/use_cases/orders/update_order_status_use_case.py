"""
Update Order Status Use Case

Admin fulfillment transitions. Confirming an order is the single point
where stock leaves inventory.
"""

from typing import Optional
from uuid import UUID

from stoneguard.app.services.audit_logger import AuditContext
from stoneguard.app.services.unit_of_work import UnitOfWork
from stoneguard.domain.base import utcnow
from stoneguard.domain.entities import AuditStatus, Order, OrderStatus
from stoneguard.domain.state_machines import validate_order_transition
from stoneguard.libs.result import Error, Result, Return


class UpdateOrderStatusUseCase:
    """
    Business Rules:
    - Transitions follow the order state machine; paid-only states need fully_paid
    - dispatched requires courier service and tracking number
    - The status write is conditional on the status that was validated, so
      two concurrent confirmations cannot both succeed
    - Stock is decremented only on draft -> confirmed, each line atomically
      (stock_quantity >= quantity); a short line aborts the whole transition
    """

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def execute(
        self,
        order_id: UUID,
        target_status: str,
        audit: AuditContext,
        courier_service: Optional[str] = None,
        tracking_number: Optional[str] = None,
        courier_link: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Result[Order]:
        try:
            target = OrderStatus(target_status)
        except ValueError:
            valid = ", ".join(status.value for status in OrderStatus)
            return Return.err(
                Error("INVALID_STATUS", f"Invalid status. Must be one of: {valid}")
            )

        async with self.uow:
            order = await self.uow.orders.get_by_id(order_id)
            if order is None:
                return Return.err(Error("NOT_FOUND", "Order not found"))

            current = order.status
            transition = validate_order_transition(current, target, order.payment_status)
            if transition.is_err():
                return transition

            now = utcnow()
            courier_tracking = None
            if target == OrderStatus.dispatched:
                if not courier_service or not tracking_number:
                    return Return.err(
                        Error(
                            "COURIER_DETAILS_REQUIRED",
                            "Courier service and tracking number are required for dispatched status",
                        )
                    )
                courier_tracking = {
                    "courier_service": courier_service,
                    "tracking_number": tracking_number,
                    "courier_link": courier_link or "",
                    "dispatched_at": now.isoformat(),
                }

            timeline = list(order.timeline or []) + [
                {
                    "status": target.value,
                    "timestamp": now.isoformat(),
                    "notes": notes or f"Order status updated to {target.value}",
                }
            ]

            moved = await self.uow.orders.transition_status(
                order.id, current, target, timeline, courier_tracking
            )
            if not moved:
                return Return.err(
                    Error(
                        "ORDER_STATE_CHANGED",
                        "The order was updated by another request. Please refresh and try again.",
                        details={"current_state": current.value, "target_state": target.value},
                    )
                )

            if current == OrderStatus.draft and target == OrderStatus.confirmed:
                for item in order.items or []:
                    stone_id = item.get("stone_id")
                    quantity = item.get("quantity", 0)
                    if not stone_id or quantity <= 0:
                        continue
                    deducted = await self.uow.stones.decrement_stock(UUID(str(stone_id)), quantity)
                    if not deducted:
                        return Return.err(
                            Error(
                                "INSUFFICIENT_STOCK",
                                f"Insufficient stock for {item.get('stone_name') or stone_id}",
                                details={"current_state": current.value, "target_state": target.value},
                            )
                        )

            await self.uow.audit_logs.create(
                audit.entry(
                    "ORDER_STATUS_UPDATED",
                    AuditStatus.SUCCESS,
                    resource_id=order.id,
                    reference_number=order.order_number,
                    details=f"{current.value} -> {target.value}",
                )
            )
            await self.uow.commit()

            return Return.ok(order)
