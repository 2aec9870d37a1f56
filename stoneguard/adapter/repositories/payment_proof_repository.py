from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlmodel import select, update
from sqlmodel.ext.asyncio.session import AsyncSession

from stoneguard.app.repositories.payment_proof_repository import IPaymentProofRepository
from stoneguard.domain.entities import PaymentProof, PaymentProofStatus


class PaymentProofRepository(IPaymentProofRepository):
    """PaymentProof repository implementation using SQLModel"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, proof: PaymentProof) -> PaymentProof:
        """Create a new payment proof"""
        self.session.add(proof)
        await self.session.flush()
        await self.session.refresh(proof)
        return proof

    async def get_for_order(self, proof_id: UUID, order_id: UUID) -> Optional[PaymentProof]:
        """Get a payment proof belonging to an order"""
        stmt = select(PaymentProof).where(
            PaymentProof.id == proof_id, PaymentProof.order_id == order_id
        )
        result = await self.session.exec(stmt)
        return result.one_or_none()

    async def mark_reviewed(
        self,
        proof_id: UUID,
        status: PaymentProofStatus,
        reviewer_id: UUID,
        reviewed_at: datetime,
        notes: Optional[str] = None,
    ) -> bool:
        """Move a pending proof to approved or rejected"""
        values = {"status": status, "reviewed_by": reviewer_id, "reviewed_at": reviewed_at}
        if notes is not None:
            values["notes"] = notes

        stmt = (
            update(PaymentProof)
            .where(
                PaymentProof.id == proof_id,
                PaymentProof.status == PaymentProofStatus.pending,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.exec(stmt)
        await self.session.flush()
        return result.rowcount > 0

    async def count_submitted_since(self, buyer_id: UUID, since: datetime) -> int:
        """Count pending or approved proofs a buyer uploaded since a point in time"""
        stmt = select(func.count()).where(
            PaymentProof.buyer_id == buyer_id,
            PaymentProof.uploaded_at >= since,
            PaymentProof.status.in_([PaymentProofStatus.pending, PaymentProofStatus.approved]),
        )
        result = await self.session.exec(stmt)
        return result.one()

    async def get_approved_amounts(self, buyer_id: UUID) -> List[float]:
        """Amounts of every approved proof for a buyer"""
        stmt = select(PaymentProof.amount_paid).where(
            PaymentProof.buyer_id == buyer_id,
            PaymentProof.status == PaymentProofStatus.approved,
        )
        result = await self.session.exec(stmt)
        return [float(amount) for amount in result.all()]
