"""
Ownership Validator

Fetches a resource by id AND owner in one query and hands later stages a
minimal projection of it, so the status check and the handler do not have
to re-read it.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union
from uuid import UUID

from stoneguard.app.services.unit_of_work import UnitOfWorkFactory
from stoneguard.domain.entities import Order, Quotation
from stoneguard.libs.result import Error, Result, Return

QUOTATION = "quotation"
ORDER = "order"


@dataclass(frozen=True)
class ValidatedResource:
    kind: str
    id: UUID
    owner_id: UUID
    status: str
    reference_number: Optional[str] = None
    fields: Dict[str, Any] = field(default_factory=dict)


def parse_identifier(value: Union[str, UUID, None]) -> Optional[UUID]:
    """Normalize a raw or already-parsed identifier; None if malformed."""
    if isinstance(value, UUID):
        return value
    if value is None:
        return None
    try:
        return UUID(str(value).strip())
    except (ValueError, AttributeError, TypeError):
        return None


def project_quotation(quotation: Quotation) -> ValidatedResource:
    return ValidatedResource(
        kind=QUOTATION,
        id=quotation.id,
        owner_id=quotation.buyer_id,
        status=quotation.status.value,
        reference_number=quotation.reference_number,
        fields={
            "validity_end": quotation.validity_end,
            "order_number": quotation.order_number,
            "buyer_decision": quotation.buyer_decision,
            "grand_total": quotation.grand_total,
        },
    )


def project_order(order: Order) -> ValidatedResource:
    return ValidatedResource(
        kind=ORDER,
        id=order.id,
        owner_id=order.buyer_id,
        status=order.status.value,
        reference_number=order.order_number,
        fields={
            "payment_status": order.payment_status.value,
            "total_paid": order.total_paid,
            "outstanding_balance": order.outstanding_balance,
            "grand_total": order.grand_total,
        },
    )


class OwnershipValidator:
    """
    Business Rules:
    - Malformed ids are INVALID_ID (400) and never reach the store
    - Missing and not-owned resources are indistinguishable: UNAUTHORIZED (403)
    """

    def __init__(self, uow_factory: UnitOfWorkFactory):
        self.uow_factory = uow_factory

    async def verify(
        self, kind: str, resource_id: Union[str, UUID], subject_id: Union[str, UUID]
    ) -> Result[ValidatedResource]:
        parsed_id = parse_identifier(resource_id)
        if parsed_id is None:
            return Return.err(Error("INVALID_ID", f"Invalid {kind} ID format"))

        owner_id = parse_identifier(subject_id)
        if owner_id is None:
            return Return.err(Error("UNAUTHORIZED", "Unauthorized"))

        uow = self.uow_factory()
        async with uow:
            if kind == QUOTATION:
                quotation = await uow.quotations.get_owned(parsed_id, owner_id)
                resource = project_quotation(quotation) if quotation else None
            elif kind == ORDER:
                order = await uow.orders.get_owned(parsed_id, owner_id)
                resource = project_order(order) if order else None
            else:
                raise ValueError(f"Unknown resource kind: {kind}")

        if resource is None:
            return Return.err(
                Error("UNAUTHORIZED", f"Unauthorized: you do not have access to this {kind}")
            )
        return Return.ok(resource)
