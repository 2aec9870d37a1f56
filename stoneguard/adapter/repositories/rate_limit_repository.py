from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import and_, case, or_
from sqlmodel import select, update
from sqlmodel.ext.asyncio.session import AsyncSession

from stoneguard.app.repositories.rate_limit_repository import IRateLimitRepository
from stoneguard.domain.entities import IdentifierType, RateLimitTracking

from ._upsert import insert_ignore


def _identity(identifier: str, identifier_type: IdentifierType, endpoint: str):
    return and_(
        RateLimitTracking.identifier == identifier,
        RateLimitTracking.identifier_type == identifier_type,
        RateLimitTracking.endpoint == endpoint,
    )


class RateLimitRepository(IRateLimitRepository):
    """
    RateLimitTracking repository implementation using SQLModel

    Counters are computed in SQL (CASE expressions) so concurrent requests
    never read-modify-write the same row.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def ensure(
        self, identifier: str, identifier_type: IdentifierType, endpoint: str, now: datetime
    ) -> None:
        await insert_ignore(
            self.session,
            RateLimitTracking,
            {
                "id": uuid4(),
                "identifier": identifier,
                "identifier_type": identifier_type,
                "endpoint": endpoint,
                "request_count": 0,
                "captcha_attempts": 0,
                "captcha_required": False,
                "window_start": now,
                "last_request": now,
            },
            ("identifier", "identifier_type", "endpoint"),
        )

    async def get(
        self, identifier: str, identifier_type: IdentifierType, endpoint: str
    ) -> Optional[RateLimitTracking]:
        stmt = (
            select(RateLimitTracking)
            .where(_identity(identifier, identifier_type, endpoint))
            .execution_options(populate_existing=True)
        )
        result = await self.session.exec(stmt)
        return result.one_or_none()

    async def register_request(
        self,
        identifier: str,
        identifier_type: IdentifierType,
        endpoint: str,
        now: datetime,
        window_cutoff: datetime,
        idle_cutoff: datetime,
    ) -> Optional[RateLimitTracking]:
        idle = RateLimitTracking.last_request < idle_cutoff
        restart = or_(
            RateLimitTracking.window_start < window_cutoff,
            and_(
                RateLimitTracking.blocked_until.is_not(None),
                RateLimitTracking.blocked_until <= now,
            ),
            idle,
        )
        stmt = (
            update(RateLimitTracking)
            .where(_identity(identifier, identifier_type, endpoint))
            .values(
                request_count=case(
                    (restart, 1), else_=RateLimitTracking.request_count + 1
                ),
                window_start=case((restart, now), else_=RateLimitTracking.window_start),
                blocked_until=case((restart, None), else_=RateLimitTracking.blocked_until),
                captcha_required=case(
                    (idle, False), else_=RateLimitTracking.captcha_required
                ),
                captcha_attempts=case(
                    (idle, 0), else_=RateLimitTracking.captcha_attempts
                ),
                last_request=now,
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.exec(stmt)
        await self.session.flush()
        return await self.get(identifier, identifier_type, endpoint)

    async def block(
        self,
        identifier: str,
        identifier_type: IdentifierType,
        endpoint: str,
        blocked_until: datetime,
    ) -> None:
        stmt = (
            update(RateLimitTracking)
            .where(_identity(identifier, identifier_type, endpoint))
            .values(blocked_until=blocked_until)
            .execution_options(synchronize_session=False)
        )
        await self.session.exec(stmt)
        await self.session.flush()

    async def require_captcha(
        self, identifier: str, identifier_type: IdentifierType, endpoint: str
    ) -> None:
        stmt = (
            update(RateLimitTracking)
            .where(_identity(identifier, identifier_type, endpoint))
            .values(captcha_required=True)
            .execution_options(synchronize_session=False)
        )
        await self.session.exec(stmt)
        await self.session.flush()

    async def record_captcha_failure(
        self, identifier: str, identifier_type: IdentifierType, endpoint: str
    ) -> None:
        stmt = (
            update(RateLimitTracking)
            .where(_identity(identifier, identifier_type, endpoint))
            .values(captcha_attempts=RateLimitTracking.captcha_attempts + 1)
            .execution_options(synchronize_session=False)
        )
        await self.session.exec(stmt)
        await self.session.flush()

    async def reset_after_captcha(
        self, identifier: str, identifier_type: IdentifierType, endpoint: str, now: datetime
    ) -> None:
        stmt = (
            update(RateLimitTracking)
            .where(_identity(identifier, identifier_type, endpoint))
            .values(
                request_count=0,
                captcha_attempts=0,
                captcha_required=False,
                window_start=now,
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.exec(stmt)
        await self.session.flush()

    async def has_excessive_captcha_failures(
        self,
        identifier: str,
        identifier_type: IdentifierType,
        min_attempts: int,
        active_since: datetime,
    ) -> bool:
        stmt = (
            select(RateLimitTracking.id)
            .where(
                RateLimitTracking.identifier == identifier,
                RateLimitTracking.identifier_type == identifier_type,
                RateLimitTracking.captcha_attempts >= min_attempts,
                RateLimitTracking.last_request >= active_since,
            )
            .limit(1)
        )
        result = await self.session.exec(stmt)
        return result.first() is not None
