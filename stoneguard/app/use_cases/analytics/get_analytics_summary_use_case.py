from typing import Any, Dict

from stoneguard.app.services.unit_of_work import UnitOfWork
from stoneguard.libs.result import Result, Return


class GetAnalyticsSummaryUseCase:
    """Order counts by status and payment status, revenue and outstanding totals."""

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def execute(self) -> Result[Dict[str, Any]]:
        async with self.uow:
            summary = await self.uow.orders.summarize()
            return Return.ok(summary)
