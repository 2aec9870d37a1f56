"""
PaymentProof Entity

A buyer-submitted proof of payment awaiting admin review.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import Column, DateTime, Field, Index, SQLModel

from stoneguard.domain.base import utcnow

from .enums import PaymentProofStatus


class PaymentProof(SQLModel, table=True):
    __tablename__ = "payment_proofs"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    order_id: UUID = Field(foreign_key="orders.id", nullable=False, index=True)
    buyer_id: UUID = Field(foreign_key="users.id", nullable=False, index=True)

    amount_paid: float
    proof_file: Optional[str] = Field(default=None, max_length=1024)
    status: PaymentProofStatus = Field(default=PaymentProofStatus.pending)
    notes: Optional[str] = None

    uploaded_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime))
    reviewed_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime))
    reviewed_by: Optional[UUID] = Field(default=None)

    __table_args__ = (Index("idx_payment_proof_buyer_uploaded", "buyer_id", "uploaded_at"),)
