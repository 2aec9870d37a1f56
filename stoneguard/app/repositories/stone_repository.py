from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from stoneguard.domain.entities import Stone


class IStoneRepository(ABC):
    """Stone repository interface - application layer"""

    @abstractmethod
    async def get_by_id(self, stone_id: UUID) -> Optional[Stone]:
        """Get stone by ID"""
        pass

    @abstractmethod
    async def create(self, stone: Stone) -> Stone:
        """Create a new stone"""
        pass

    @abstractmethod
    async def decrement_stock(self, stone_id: UUID, quantity: int) -> bool:
        """
        Atomically subtract quantity from stock.

        Returns False (and changes nothing) when the stone is missing or
        holds less than quantity.
        """
        pass
