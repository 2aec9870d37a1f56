from typing import Callable, Optional

from sqlmodel.ext.asyncio.session import AsyncSession

from stoneguard.adapter.repositories.audit_log_repository import AuditLogRepository
from stoneguard.adapter.repositories.order_repository import OrderRepository
from stoneguard.adapter.repositories.payment_proof_repository import PaymentProofRepository
from stoneguard.adapter.repositories.quotation_repository import QuotationRepository
from stoneguard.adapter.repositories.rate_limit_repository import RateLimitRepository
from stoneguard.adapter.repositories.session_activity_repository import (
    SessionActivityRepository,
)
from stoneguard.adapter.repositories.stone_repository import StoneRepository
from stoneguard.adapter.repositories.user_repository import UserRepository
from stoneguard.app.services.unit_of_work import UnitOfWork, UnitOfWorkFactory

SessionFactory = Callable[[], AsyncSession]


class SqlAlchemyUnitOfWork(UnitOfWork):
    """
    SQLAlchemy implementation of UnitOfWork pattern

    Either wraps a caller-owned session, or opens (and closes) its own
    session from session_factory for the duration of the `async with`.
    """

    def __init__(
        self,
        session: Optional[AsyncSession] = None,
        session_factory: Optional[SessionFactory] = None,
    ):
        if session is None and session_factory is None:
            raise ValueError("SqlAlchemyUnitOfWork needs a session or a session_factory")
        self.session = session
        self._session_factory = session_factory
        self._owns_session = False

    async def __aenter__(self):
        if self._session_factory is not None and self.session is None:
            self.session = self._session_factory()
            self._owns_session = True

        # Initialize all repositories with the session
        self.users = UserRepository(self.session)
        self.stones = StoneRepository(self.session)
        self.quotations = QuotationRepository(self.session)
        self.orders = OrderRepository(self.session)
        self.payment_proofs = PaymentProofRepository(self.session)
        self.audit_logs = AuditLogRepository(self.session)
        self.rate_limits = RateLimitRepository(self.session)
        self.session_activity = SessionActivityRepository(self.session)
        return self

    async def __aexit__(self, *args):
        try:
            # Rows loaded in the block stay readable once it exits
            self.session.expunge_all()
            if self.session.in_transaction():
                await self.rollback()
        finally:
            if self._owns_session:
                await self.session.close()
                self.session = None
                self._owns_session = False

    async def commit(self):
        await self.session.commit()

    async def rollback(self):
        await self.session.rollback()


def unit_of_work_factory(session_factory: SessionFactory) -> UnitOfWorkFactory:
    """Factory of independently committed units of work, one session each."""

    def build() -> UnitOfWork:
        return SqlAlchemyUnitOfWork(session_factory=session_factory)

    return build
