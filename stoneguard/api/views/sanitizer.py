"""
Response Sanitizer

A route class that re-projects quotation and order payloads for the
resolved role just before the response leaves, whatever the handler
returned. Staff roles get the full view, everyone else the buyer view.
"""

import json
import logging
from typing import Any, Callable, Dict, List, Tuple, Type

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from pydantic import BaseModel

from stoneguard.api.error import ServerError
from stoneguard.api.utils.request_context import audit_context
from stoneguard.api.views.order import OrderAdminView, OrderBuyerView
from stoneguard.api.views.quotation import QuotationAdminView, QuotationBuyerView
from stoneguard.domain.entities import AuditStatus, Role
from stoneguard.libs.result import Error

logger = logging.getLogger(__name__)

STAFF_ROLES = frozenset({Role.ADMIN, Role.SALES_REP})

# payload key -> (resource name, staff view, buyer view)
PROJECTIONS: Dict[str, Tuple[str, Type[BaseModel], Type[BaseModel]]] = {
    "quotation": ("QUOTATION", QuotationAdminView, QuotationBuyerView),
    "quotations": ("QUOTATION", QuotationAdminView, QuotationBuyerView),
    "order": ("ORDER", OrderAdminView, OrderBuyerView),
    "orders": ("ORDER", OrderAdminView, OrderBuyerView),
}


def project(record: Any, view: Type[BaseModel]) -> Any:
    if not isinstance(record, dict):
        return record
    return view.model_validate(record).model_dump(mode="json", exclude_unset=True)


def sanitize_payload(payload: Any, role: Role) -> Tuple[Any, List[Tuple[str, str]]]:
    """Return the role projection of payload and the (resource, id) pairs it exposes."""
    if not isinstance(payload, dict):
        return payload, []

    accessed = []
    sanitized = dict(payload)
    for key, (resource, staff_view, buyer_view) in PROJECTIONS.items():
        if key not in sanitized:
            continue
        view = staff_view if role in STAFF_ROLES else buyer_view
        value = sanitized[key]
        records = value if isinstance(value, list) else [value]
        projected = [project(record, view) for record in records]
        sanitized[key] = projected if isinstance(value, list) else projected[0]
        accessed.extend(
            (resource, str(record.get("id")))
            for record in records
            if isinstance(record, dict) and record.get("id")
        )
    return sanitized, accessed


class SanitizingRoute(APIRoute):
    def get_route_handler(self) -> Callable:
        original_route_handler = super().get_route_handler()

        async def sanitizing_route_handler(request: Request) -> Response:
            response = await original_route_handler(request)
            if not 200 <= response.status_code < 300:
                return response
            if "application/json" not in response.headers.get("content-type", ""):
                return response

            subject = getattr(request.state, "subject", None)
            role = subject.role if subject is not None else Role.GUEST
            try:
                payload = json.loads(response.body)
                sanitized, accessed = sanitize_payload(payload, role)
            except Exception as exc:
                logger.error(f"Response sanitization failed: {type(exc).__name__}: {exc}")
                raise ServerError(Error("SANITIZER_FAILURE", str(exc)))

            audit_logger = getattr(request.state, "audit_logger", None)
            if audit_logger is not None:
                for resource, resource_id in accessed:
                    await audit_logger.record(
                        f"DATA_ACCESS_{resource}",
                        AuditStatus.SUCCESS,
                        context=audit_context(request),
                        resource_id=resource_id,
                        details=f"Served {role.value} view",
                    )

            headers = {
                key: value
                for key, value in response.headers.items()
                if key.lower() not in ("content-length", "content-type")
            }
            return JSONResponse(
                content=sanitized,
                status_code=response.status_code,
                headers=headers,
                background=response.background,
            )

        return sanitizing_route_handler
