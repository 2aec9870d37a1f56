"""
Concurrency stages backed by the per-process SecurityContext.

Slots are released in `finally`, so success, error and client abort all
free the slot exactly once.
"""

from fastapi import Depends, Request, status

from stoneguard.api.guards.identity import Subject, get_current_subject
from stoneguard.api.guards.policy import Stage, deny, stage_failed
from stoneguard.app.services.audit_logger import AuditLogger
from stoneguard.app.services.concurrency import ConcurrencyLimiter, QueueTimeoutError
from stoneguard.app.services.security_context import SecurityContext
from stoneguard.depends import get_audit_logger, get_security_context
from stoneguard.libs.result import Error


def _route_key(request: Request) -> str:
    route = request.scope.get("route")
    return f"{request.method} {getattr(route, 'path', request.url.path)}"


def concurrency_guard(limiter_name: str):
    """Reject with 503 when the endpoint already has max_concurrent requests in flight."""

    async def guard(
        request: Request,
        security: SecurityContext = Depends(get_security_context),
        audit_logger: AuditLogger = Depends(get_audit_logger),
    ):
        key = _route_key(request)
        try:
            limiter: ConcurrencyLimiter = getattr(security, limiter_name)
            slot = limiter.try_acquire(key)
        except Exception as exc:
            await stage_failed(Stage.throttle, exc, request, audit_logger)
            yield None
            return

        if slot is None:
            retry_after = limiter.retry_after_seconds
            await deny(
                request,
                audit_logger,
                "CONCURRENCY_LIMIT",
                Error("SERVICE_BUSY", "Server is busy processing requests. Please try again shortly."),
                status.HTTP_503_SERVICE_UNAVAILABLE,
                extra={"retryAfter": retry_after, "serviceUnavailable": True},
                headers={"Retry-After": str(retry_after)},
                details=f"{key}: {limiter.active(key)} active",
            )

        try:
            yield slot
        finally:
            slot.release()

    return guard


async def analytics_queue_slot(
    request: Request,
    subject: Subject = Depends(get_current_subject),
    security: SecurityContext = Depends(get_security_context),
    audit_logger: AuditLogger = Depends(get_audit_logger),
):
    """Serialize heavy analytics per admin; waiting too long is a 504."""
    key = f"{_route_key(request)}:{subject.id}"
    try:
        async with security.analytics_queue.slot(key):
            yield
    except QueueTimeoutError as exc:
        await deny(
            request,
            audit_logger,
            "REQUEST_QUEUE_TIMEOUT",
            Error("QUEUE_TIMEOUT", "Request timed out waiting in queue. Please try again."),
            status.HTTP_504_GATEWAY_TIMEOUT,
            extra={"retryAfter": int(exc.timeout_seconds)},
            details=str(exc),
        )


approval_throttle = concurrency_guard("approval_throttle")
payment_throttle = concurrency_guard("payment_throttle")
