from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
from uuid import UUID

from stoneguard.domain.entities import Order, OrderStatus, PaymentStatus


class IOrderRepository(ABC):
    """Order repository interface - application layer"""

    @abstractmethod
    async def get_by_id(self, order_id: UUID) -> Optional[Order]:
        """Get order by ID"""
        pass

    @abstractmethod
    async def get_owned(self, order_id: UUID, buyer_id: UUID) -> Optional[Order]:
        """Get order by ID and owner in a single query"""
        pass

    @abstractmethod
    async def create(self, order: Order) -> Order:
        """Create a new order"""
        pass

    @abstractmethod
    async def transition_status(
        self,
        order_id: UUID,
        expected: OrderStatus,
        target: OrderStatus,
        timeline: list,
        courier_tracking: Optional[dict] = None,
    ) -> bool:
        """
        Conditionally move the order from expected to target status.

        Returns False when another request changed the status first.
        """
        pass

    @abstractmethod
    async def apply_payment(
        self,
        order_id: UUID,
        expected_total_paid: float,
        total_paid: float,
        outstanding_balance: float,
        payment_status: PaymentStatus,
    ) -> bool:
        """
        Optimistically record an approved payment.

        The write only lands if total_paid still equals expected_total_paid.
        """
        pass

    @abstractmethod
    async def summarize(self) -> Dict[str, Any]:
        """Aggregate order counts and revenue for the admin dashboard"""
        pass
