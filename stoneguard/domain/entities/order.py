"""
Order Entity

Sales order created from an approved quotation.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import JSON, Column, DateTime, Field, Index, SQLModel

from stoneguard.domain.base import utcnow

from .enums import OrderStatus, PaymentStatus


class Order(SQLModel, table=True):
    """
    Order entity - fulfillment and payment state for an approved quotation.

    Business Rules:
    - payment_status changes only through admin-approved payment proofs
    - confirmed/dispatched/delivered require payment_status=fully_paid
    - Stock is decremented exactly once, on the draft -> confirmed transition
    - outstanding_balance = grand_total - total_paid
    """

    __tablename__ = "orders"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    order_number: str = Field(unique=True, max_length=64)
    quotation_id: UUID = Field(foreign_key="quotations.id", nullable=False)
    buyer_id: UUID = Field(foreign_key="users.id", nullable=False, index=True)

    status: OrderStatus = Field(default=OrderStatus.draft)
    payment_status: PaymentStatus = Field(default=PaymentStatus.pending)

    # [{"stone_id", "stone_name", "unit_price", "price_unit", "quantity", "total_price"}]
    items: list = Field(default_factory=list, sa_column=Column(JSON))
    financials: dict = Field(default_factory=dict, sa_column=Column(JSON))

    total_paid: float = Field(default=0)
    outstanding_balance: float = Field(default=0)

    # {"courier_service", "tracking_number", "courier_link", "dispatched_at"}
    courier_tracking: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    # [{"status", "timestamp", "notes"}]
    timeline: list = Field(default_factory=list, sa_column=Column(JSON))
    internal_notes: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime))

    __table_args__ = (Index("idx_order_buyer_status", "buyer_id", "status"),)

    @property
    def grand_total(self) -> float:
        return float((self.financials or {}).get("grand_total", 0) or 0)
