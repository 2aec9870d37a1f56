from abc import ABC, abstractmethod
from typing import Callable

from stoneguard.app.repositories.audit_log_repository import IAuditLogRepository
from stoneguard.app.repositories.order_repository import IOrderRepository
from stoneguard.app.repositories.payment_proof_repository import IPaymentProofRepository
from stoneguard.app.repositories.quotation_repository import IQuotationRepository
from stoneguard.app.repositories.rate_limit_repository import IRateLimitRepository
from stoneguard.app.repositories.session_activity_repository import (
    ISessionActivityRepository,
)
from stoneguard.app.repositories.stone_repository import IStoneRepository
from stoneguard.app.repositories.user_repository import IUserRepository


class UnitOfWork(ABC):
    """Abstract UnitOfWork - defines repository access and transaction management"""

    # Repository properties (initialized in __aenter__)
    users: IUserRepository
    stones: IStoneRepository
    quotations: IQuotationRepository
    orders: IOrderRepository
    payment_proofs: IPaymentProofRepository
    audit_logs: IAuditLogRepository
    rate_limits: IRateLimitRepository
    session_activity: ISessionActivityRepository

    @abstractmethod
    async def __aenter__(self):
        pass

    @abstractmethod
    async def __aexit__(self, *args):
        pass

    @abstractmethod
    async def commit(self):
        pass

    @abstractmethod
    async def rollback(self):
        pass


# Builds a fresh, independently committed unit of work. Guard stages and the
# audit logger use one per operation so their writes survive a later denial.
UnitOfWorkFactory = Callable[[], UnitOfWork]
