from uuid import UUID

from stoneguard.app.services.unit_of_work import UnitOfWork
from stoneguard.domain.entities import Order, Role
from stoneguard.libs.result import Error, Result, Return


class GetOrderUseCase:
    """Buyers load only their own orders; staff load any order."""

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def execute(self, order_id: UUID, subject_id: UUID, role: Role) -> Result[Order]:
        async with self.uow:
            if role == Role.BUYER:
                order = await self.uow.orders.get_owned(order_id, subject_id)
            else:
                order = await self.uow.orders.get_by_id(order_id)

            if order is None:
                return Return.err(Error("NOT_FOUND", "Order not found"))
            return Return.ok(order)
