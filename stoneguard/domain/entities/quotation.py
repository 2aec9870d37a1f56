"""
Quotation Entity

A priced offer issued to a buyer, approvable once while valid.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import JSON, Column, DateTime, Field, Index, SQLModel

from stoneguard.domain.base import utcnow

from .enums import QuotationStatus


class Quotation(SQLModel, table=True):
    """
    Quotation entity - an offer from the sales team to a buyer.

    Business Rules:
    - Only the owning buyer may approve or reject it
    - Approval is valid only from status=issued and before validity_end
    - order_number is set exactly once, when approval creates the order
    - admin_notes and total_estimated_cost are internal and never shown to buyers
    """

    __tablename__ = "quotations"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    reference_number: str = Field(unique=True, max_length=64)
    quotation_request_id: Optional[str] = Field(default=None, max_length=64)

    buyer_id: UUID = Field(foreign_key="users.id", nullable=False, index=True)
    status: QuotationStatus = Field(default=QuotationStatus.draft)

    # [{"stone_id", "stone_name", "price_unit", "requested_quantity",
    #   "final_unit_price", "price_snapshot"}]
    items: list = Field(default_factory=list, sa_column=Column(JSON))
    # {"subtotal", "tax_percentage", "tax_amount", "shipping_cost",
    #  "discount_amount", "grand_total"}
    financials: dict = Field(default_factory=dict, sa_column=Column(JSON))

    notes: Optional[str] = None
    admin_notes: Optional[str] = None
    total_estimated_cost: float = Field(default=0)

    validity_start: Optional[datetime] = Field(default=None, sa_column=Column(DateTime))
    validity_end: Optional[datetime] = Field(default=None, sa_column=Column(DateTime))

    order_number: Optional[str] = Field(default=None, max_length=64)
    # {"decision": "approved" | "rejected", "comment", "decided_at"}
    buyer_decision: Optional[dict] = Field(default=None, sa_column=Column(JSON))

    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime))

    __table_args__ = (Index("idx_quotation_buyer_status", "buyer_id", "status"),)

    @property
    def grand_total(self) -> float:
        return float((self.financials or {}).get("grand_total", 0) or 0)
