from typing import Optional
from uuid import UUID

from sqlmodel import select, update
from sqlmodel.ext.asyncio.session import AsyncSession

from stoneguard.app.repositories.quotation_repository import IQuotationRepository
from stoneguard.domain.base import utcnow
from stoneguard.domain.entities import Quotation, QuotationStatus


class QuotationRepository(IQuotationRepository):
    """Quotation repository implementation using SQLModel"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, quotation_id: UUID) -> Optional[Quotation]:
        """Get quotation by ID"""
        stmt = select(Quotation).where(Quotation.id == quotation_id)
        result = await self.session.exec(stmt)
        return result.one_or_none()

    async def get_owned(self, quotation_id: UUID, buyer_id: UUID) -> Optional[Quotation]:
        """Get quotation by ID and owner in a single query"""
        stmt = select(Quotation).where(
            Quotation.id == quotation_id, Quotation.buyer_id == buyer_id
        )
        result = await self.session.exec(stmt)
        return result.one_or_none()

    async def create(self, quotation: Quotation) -> Quotation:
        """Create a new quotation"""
        self.session.add(quotation)
        await self.session.flush()
        await self.session.refresh(quotation)
        return quotation

    async def mark_approved(
        self, quotation_id: UUID, buyer_id: UUID, order_number: str, decision: dict
    ) -> bool:
        """Move an issued, not yet converted quotation to approved"""
        stmt = (
            update(Quotation)
            .where(
                Quotation.id == quotation_id,
                Quotation.buyer_id == buyer_id,
                Quotation.status == QuotationStatus.issued,
                Quotation.order_number.is_(None),
            )
            .values(
                status=QuotationStatus.approved,
                order_number=order_number,
                buyer_decision=decision,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.exec(stmt)
        await self.session.flush()
        if result.rowcount == 0:
            return False
        await self._reload(quotation_id)
        return True

    async def mark_rejected(self, quotation_id: UUID, buyer_id: UUID, decision: dict) -> bool:
        """Move an issued quotation to rejected"""
        stmt = (
            update(Quotation)
            .where(
                Quotation.id == quotation_id,
                Quotation.buyer_id == buyer_id,
                Quotation.status == QuotationStatus.issued,
            )
            .values(
                status=QuotationStatus.rejected,
                buyer_decision=decision,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.exec(stmt)
        await self.session.flush()
        if result.rowcount == 0:
            return False
        await self._reload(quotation_id)
        return True

    async def _reload(self, quotation_id: UUID) -> None:
        # Refresh any instance already in the session with the written values
        stmt = (
            select(Quotation)
            .where(Quotation.id == quotation_id)
            .execution_options(populate_existing=True)
        )
        await self.session.exec(stmt)
