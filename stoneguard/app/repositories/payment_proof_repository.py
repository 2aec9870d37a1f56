from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from stoneguard.domain.entities import PaymentProof, PaymentProofStatus


class IPaymentProofRepository(ABC):
    """PaymentProof repository interface - application layer"""

    @abstractmethod
    async def create(self, proof: PaymentProof) -> PaymentProof:
        """Create a new payment proof"""
        pass

    @abstractmethod
    async def get_for_order(self, proof_id: UUID, order_id: UUID) -> Optional[PaymentProof]:
        """Get a payment proof belonging to an order"""
        pass

    @abstractmethod
    async def mark_reviewed(
        self,
        proof_id: UUID,
        status: PaymentProofStatus,
        reviewer_id: UUID,
        reviewed_at: datetime,
        notes: Optional[str] = None,
    ) -> bool:
        """
        Conditionally move a pending proof to approved or rejected.

        Returns False when the proof was already reviewed.
        """
        pass

    @abstractmethod
    async def count_submitted_since(self, buyer_id: UUID, since: datetime) -> int:
        """Count pending or approved proofs a buyer uploaded since a point in time"""
        pass

    @abstractmethod
    async def get_approved_amounts(self, buyer_id: UUID) -> List[float]:
        """Amounts of every approved proof for a buyer"""
        pass
