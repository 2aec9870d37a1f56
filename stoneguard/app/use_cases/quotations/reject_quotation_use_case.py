"""
Reject Quotation Use Case
"""

from typing import Optional
from uuid import UUID

from stoneguard.app.services.audit_logger import AuditContext
from stoneguard.app.services.unit_of_work import UnitOfWork
from stoneguard.domain.base import utcnow
from stoneguard.domain.entities import AuditStatus, Quotation, QuotationStatus
from stoneguard.domain.state_machines import validate_quotation_transition
from stoneguard.libs.result import Error, Result, Return


class RejectQuotationUseCase:
    """
    Use case for a buyer declining their quotation.

    Business Rules:
    - Only the owning buyer can reject
    - Only issued quotations can be rejected
    - Conditional write; a concurrent approval wins and this returns QUOTATION_STATE_CHANGED
    """

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def execute(
        self,
        quotation_id: UUID,
        buyer_id: UUID,
        audit: AuditContext,
        comment: Optional[str] = None,
    ) -> Result[Quotation]:
        async with self.uow:
            quotation = await self.uow.quotations.get_owned(quotation_id, buyer_id)
            if quotation is None:
                return Return.err(Error("NOT_FOUND", "Quotation not found"))

            transition = validate_quotation_transition(
                quotation.status, QuotationStatus.rejected
            )
            if transition.is_err():
                return transition

            decision = {
                "decision": QuotationStatus.rejected.value,
                "comment": comment,
                "decided_at": utcnow().isoformat(),
            }
            rejected = await self.uow.quotations.mark_rejected(quotation_id, buyer_id, decision)
            if not rejected:
                return Return.err(
                    Error(
                        "QUOTATION_STATE_CHANGED",
                        "This quotation has already been processed. Please refresh and try again.",
                    )
                )

            await self.uow.audit_logs.create(
                audit.entry(
                    "QUOTATION_REJECTED",
                    AuditStatus.SUCCESS,
                    resource_id=quotation.id,
                    reference_number=quotation.reference_number,
                )
            )
            await self.uow.commit()

            return Return.ok(quotation)
