from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from stoneguard.domain.entities import Quotation


class IQuotationRepository(ABC):
    """Quotation repository interface - application layer"""

    @abstractmethod
    async def get_by_id(self, quotation_id: UUID) -> Optional[Quotation]:
        """Get quotation by ID"""
        pass

    @abstractmethod
    async def get_owned(self, quotation_id: UUID, buyer_id: UUID) -> Optional[Quotation]:
        """Get quotation by ID and owner in a single query"""
        pass

    @abstractmethod
    async def create(self, quotation: Quotation) -> Quotation:
        """Create a new quotation"""
        pass

    @abstractmethod
    async def mark_approved(
        self, quotation_id: UUID, buyer_id: UUID, order_number: str, decision: dict
    ) -> bool:
        """
        Conditionally move an issued, not yet converted quotation to approved.

        Returns False when the row no longer matches (already processed).
        """
        pass

    @abstractmethod
    async def mark_rejected(self, quotation_id: UUID, buyer_id: UUID, decision: dict) -> bool:
        """Conditionally move an issued quotation to rejected"""
        pass
