from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from stoneguard.domain.entities import SessionActivity


class ISessionActivityRepository(ABC):
    """SessionActivity repository interface - application layer"""

    @abstractmethod
    async def ensure(self, subject_id: UUID) -> None:
        """Create an empty activity row for the subject if none exists"""
        pass

    @abstractmethod
    async def get_by_subject(self, subject_id: UUID) -> Optional[SessionActivity]:
        """Get the activity row for a subject"""
        pass

    @abstractmethod
    async def record_sighting(
        self,
        activity_id: UUID,
        read_last_activity: Optional[datetime],
        values: Dict[str, Any],
    ) -> bool:
        """
        Write values to the row only if its last_activity still equals
        read_last_activity. Returns False when another request wrote first.
        """
        pass
