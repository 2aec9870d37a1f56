from uuid import UUID

from stoneguard.app.services.unit_of_work import UnitOfWork
from stoneguard.domain.entities import Quotation, Role
from stoneguard.libs.result import Error, Result, Return


class GetQuotationUseCase:
    """
    Business Rules:
    - Buyers only ever load their own quotations (id AND owner in one query)
    - Staff with view_all_quotations load any quotation
    """

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def execute(self, quotation_id: UUID, subject_id: UUID, role: Role) -> Result[Quotation]:
        async with self.uow:
            if role == Role.BUYER:
                quotation = await self.uow.quotations.get_owned(quotation_id, subject_id)
            else:
                quotation = await self.uow.quotations.get_by_id(quotation_id)

            if quotation is None:
                return Return.err(Error("NOT_FOUND", "Quotation not found"))
            return Return.ok(quotation)
