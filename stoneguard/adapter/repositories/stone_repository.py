from typing import Optional
from uuid import UUID

from sqlmodel import select, update
from sqlmodel.ext.asyncio.session import AsyncSession

from stoneguard.app.repositories.stone_repository import IStoneRepository
from stoneguard.domain.entities import Stone


class StoneRepository(IStoneRepository):
    """Stone repository implementation using SQLModel"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, stone_id: UUID) -> Optional[Stone]:
        """Get stone by ID"""
        stmt = select(Stone).where(Stone.id == stone_id)
        result = await self.session.exec(stmt)
        return result.one_or_none()

    async def create(self, stone: Stone) -> Stone:
        """Create a new stone"""
        self.session.add(stone)
        await self.session.flush()
        await self.session.refresh(stone)
        return stone

    async def decrement_stock(self, stone_id: UUID, quantity: int) -> bool:
        """Atomically take quantity out of stock; False if not enough is left"""
        stmt = (
            update(Stone)
            .where(Stone.id == stone_id, Stone.stock_quantity >= quantity)
            .values(stock_quantity=Stone.stock_quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.exec(stmt)
        await self.session.flush()
        return result.rowcount > 0
