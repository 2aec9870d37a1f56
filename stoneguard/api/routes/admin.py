from fastapi import APIRouter, Depends, Request, status

from stoneguard.api.guards.anomaly import anomaly_guard
from stoneguard.api.guards.identity import get_current_subject
from stoneguard.api.guards.ip_allowlist import require_allowed_ip
from stoneguard.api.guards.rbac import require_permission
from stoneguard.api.guards.throttle import analytics_queue_slot
from stoneguard.api.utils.failures import raise_use_case_error
from stoneguard.app.services.audit_logger import AuditLogger
from stoneguard.app.services.unit_of_work import UnitOfWork
from stoneguard.app.use_cases.analytics import GetAnalyticsSummaryUseCase
from stoneguard.depends import get_audit_logger, get_unit_of_work
from stoneguard.domain.roles import Permission

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get(
    "/analytics/summary",
    status_code=status.HTTP_200_OK,
    dependencies=[
        Depends(get_current_subject),
        Depends(require_permission(Permission.view_analytics)),
        Depends(require_allowed_ip),
        Depends(anomaly_guard("analytics")),
        Depends(analytics_queue_slot),
    ],
)
async def get_analytics_summary(
    request: Request,
    uow: UnitOfWork = Depends(get_unit_of_work),
    audit_logger: AuditLogger = Depends(get_audit_logger),
):
    use_case = GetAnalyticsSummaryUseCase(uow)
    result = await use_case.execute()
    if result.is_err():
        await raise_use_case_error(request, audit_logger, "ANALYTICS_VIEW", result.error)

    return {"summary": result.value}
