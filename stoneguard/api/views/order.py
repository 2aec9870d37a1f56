"""
Order projections per role. Buyers never receive internal notes, the
source quotation id or the buyer id.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class OrderItemView(BaseModel):
    model_config = ConfigDict(extra="ignore")

    stone_id: Optional[str] = None
    stone_name: Optional[str] = None
    price_unit: Optional[str] = None
    unit_price: Optional[float] = None
    quantity: Optional[float] = None
    total_price: Optional[float] = None


class OrderBuyerView(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    order_number: Optional[str] = None
    status: Optional[str] = None
    payment_status: Optional[str] = None
    items: List[OrderItemView] = []
    financials: Optional[dict] = None
    total_paid: Optional[float] = None
    outstanding_balance: Optional[float] = None
    courier_tracking: Optional[dict] = None
    timeline: List[dict] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrderAdminView(OrderBuyerView):
    quotation_id: Optional[str] = None
    buyer_id: Optional[str] = None
    internal_notes: Optional[str] = None
