from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from sqlmodel import select, update
from sqlmodel.ext.asyncio.session import AsyncSession

from stoneguard.app.repositories.session_activity_repository import (
    ISessionActivityRepository,
)
from stoneguard.domain.entities import SessionActivity

from ._upsert import insert_ignore


class SessionActivityRepository(ISessionActivityRepository):
    """SessionActivity repository implementation using SQLModel"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def ensure(self, subject_id: UUID) -> None:
        await insert_ignore(
            self.session,
            SessionActivity,
            {
                "id": uuid4(),
                "subject_id": subject_id,
                "last_ip_address": "",
                "last_user_agent": "",
                "known_ips": [],
            },
            ("subject_id",),
        )

    async def get_by_subject(self, subject_id: UUID) -> Optional[SessionActivity]:
        stmt = (
            select(SessionActivity)
            .where(SessionActivity.subject_id == subject_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.exec(stmt)
        return result.one_or_none()

    async def record_sighting(
        self,
        activity_id: UUID,
        read_last_activity: Optional[datetime],
        values: Dict[str, Any],
    ) -> bool:
        if read_last_activity is None:
            unchanged = SessionActivity.last_activity.is_(None)
        else:
            unchanged = SessionActivity.last_activity == read_last_activity
        stmt = (
            update(SessionActivity)
            .where(SessionActivity.id == activity_id, unchanged)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.exec(stmt)
        await self.session.flush()
        return result.rowcount > 0
