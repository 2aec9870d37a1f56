from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import func
from sqlmodel import select, update
from sqlmodel.ext.asyncio.session import AsyncSession

from stoneguard.app.repositories.order_repository import IOrderRepository
from stoneguard.domain.base import utcnow
from stoneguard.domain.entities import Order, OrderStatus, PaymentStatus


class OrderRepository(IOrderRepository):
    """Order repository implementation using SQLModel"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, order_id: UUID) -> Optional[Order]:
        """Get order by ID"""
        stmt = select(Order).where(Order.id == order_id)
        result = await self.session.exec(stmt)
        return result.one_or_none()

    async def get_owned(self, order_id: UUID, buyer_id: UUID) -> Optional[Order]:
        """Get order by ID and owner in a single query"""
        stmt = select(Order).where(Order.id == order_id, Order.buyer_id == buyer_id)
        result = await self.session.exec(stmt)
        return result.one_or_none()

    async def create(self, order: Order) -> Order:
        """Create a new order"""
        self.session.add(order)
        await self.session.flush()
        await self.session.refresh(order)
        return order

    async def transition_status(
        self,
        order_id: UUID,
        expected: OrderStatus,
        target: OrderStatus,
        timeline: list,
        courier_tracking: Optional[dict] = None,
    ) -> bool:
        """Move the order from expected to target status if it is still expected"""
        values = {"status": target, "timeline": timeline, "updated_at": utcnow()}
        if courier_tracking is not None:
            values["courier_tracking"] = courier_tracking

        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.status == expected)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.exec(stmt)
        await self.session.flush()
        if result.rowcount == 0:
            return False
        await self._reload(order_id)
        return True

    async def apply_payment(
        self,
        order_id: UUID,
        expected_total_paid: float,
        total_paid: float,
        outstanding_balance: float,
        payment_status: PaymentStatus,
    ) -> bool:
        """Record an approved payment if total_paid is unchanged since it was read"""
        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.total_paid == expected_total_paid)
            .values(
                total_paid=total_paid,
                outstanding_balance=outstanding_balance,
                payment_status=payment_status,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.exec(stmt)
        await self.session.flush()
        if result.rowcount == 0:
            return False
        await self._reload(order_id)
        return True

    async def summarize(self) -> Dict[str, Any]:
        """Aggregate order counts and revenue for the admin dashboard"""
        by_status = await self.session.exec(
            select(Order.status, func.count()).group_by(Order.status)
        )
        by_payment_status = await self.session.exec(
            select(Order.payment_status, func.count()).group_by(Order.payment_status)
        )
        totals = await self.session.exec(
            select(
                func.count(),
                func.coalesce(func.sum(Order.total_paid), 0),
                func.coalesce(func.sum(Order.outstanding_balance), 0),
            ).select_from(Order)
        )
        total_orders, revenue_collected, outstanding_total = totals.one()

        return {
            "total_orders": total_orders,
            "orders_by_status": {
                OrderStatus(status).value: count for status, count in by_status.all()
            },
            "orders_by_payment_status": {
                PaymentStatus(status).value: count for status, count in by_payment_status.all()
            },
            "revenue_collected": float(revenue_collected),
            "outstanding_total": float(outstanding_total),
        }

    async def _reload(self, order_id: UUID) -> None:
        # Refresh any instance already in the session with the written values
        stmt = (
            select(Order)
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        await self.session.exec(stmt)
