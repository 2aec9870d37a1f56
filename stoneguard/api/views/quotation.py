"""
Quotation projections per role. Buyers never receive internal cost basis,
admin notes, the originating request id, the buyer id or price snapshots.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict


class QuotationItemBuyerView(BaseModel):
    model_config = ConfigDict(extra="ignore")

    stone_id: Optional[str] = None
    stone_name: Optional[str] = None
    price_unit: Optional[str] = None
    requested_quantity: Optional[float] = None
    final_unit_price: Optional[float] = None


class QuotationItemAdminView(QuotationItemBuyerView):
    price_snapshot: Optional[Any] = None


class QuotationBuyerView(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    reference_number: Optional[str] = None
    status: Optional[str] = None
    items: List[QuotationItemBuyerView] = []
    financials: Optional[dict] = None
    notes: Optional[str] = None
    validity_start: Optional[datetime] = None
    validity_end: Optional[datetime] = None
    order_number: Optional[str] = None
    buyer_decision: Optional[dict] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class QuotationAdminView(QuotationBuyerView):
    items: List[QuotationItemAdminView] = []
    quotation_request_id: Optional[str] = None
    buyer_id: Optional[str] = None
    admin_notes: Optional[str] = None
    total_estimated_cost: Optional[float] = None
