"""
Guard stage failure policy.

Every stage catches its own unexpected exceptions and hands them to
`stage_failed`, which audits the failure as ERROR and then applies the
stage's policy from STAGE_POLICIES: FAIL_OPEN lets the request continue,
FAIL_CLOSED answers a generic 500.
"""

import logging
from enum import Enum
from typing import Any, Dict, NoReturn, Optional

from fastapi import Request, status

from stoneguard.api.error import ClientError, ServerError
from stoneguard.api.utils.request_context import audit_context, get_resource_id
from stoneguard.app.services.audit_logger import AuditLogger
from stoneguard.domain.entities import AuditStatus
from stoneguard.libs.result import Error

logger = logging.getLogger(__name__)


class FailurePolicy(str, Enum):
    FAIL_OPEN = "FAIL_OPEN"
    FAIL_CLOSED = "FAIL_CLOSED"


class Stage(str, Enum):
    waf = "waf"
    identity = "identity"
    rbac = "rbac"
    ip_allowlist = "ip_allowlist"
    throttle = "throttle"
    rate_limit = "rate_limit"
    captcha = "captcha"
    tamper = "tamper"
    ownership = "ownership"
    status = "status"
    anomaly = "anomaly"
    reauth = "reauth"
    sanitizer = "sanitizer"


STAGE_POLICIES: Dict[Stage, FailurePolicy] = {
    # Advisory or defense-in-depth: availability wins, the gap is audited
    Stage.waf: FailurePolicy.FAIL_OPEN,
    Stage.throttle: FailurePolicy.FAIL_OPEN,
    Stage.rate_limit: FailurePolicy.FAIL_OPEN,
    Stage.anomaly: FailurePolicy.FAIL_OPEN,
    # Security boundaries: never partial access
    Stage.identity: FailurePolicy.FAIL_CLOSED,
    Stage.rbac: FailurePolicy.FAIL_CLOSED,
    Stage.ip_allowlist: FailurePolicy.FAIL_CLOSED,
    Stage.captcha: FailurePolicy.FAIL_CLOSED,
    Stage.tamper: FailurePolicy.FAIL_CLOSED,
    Stage.ownership: FailurePolicy.FAIL_CLOSED,
    Stage.status: FailurePolicy.FAIL_CLOSED,
    Stage.reauth: FailurePolicy.FAIL_CLOSED,
    Stage.sanitizer: FailurePolicy.FAIL_CLOSED,
}


async def stage_failed(
    stage: Stage, exc: Exception, request: Request, audit_logger: AuditLogger
) -> None:
    """Audit an unexpected stage exception, then fail open (return) or closed (raise)."""
    policy = STAGE_POLICIES[stage]
    logger.error(f"{stage.value} stage failed ({policy.value}): {type(exc).__name__}: {exc}")
    await audit_logger.record(
        f"{stage.value.upper()}_ERROR",
        AuditStatus.ERROR,
        context=audit_context(request),
        resource_id=get_resource_id(request),
        details=f"{policy.value}: {type(exc).__name__}",
    )
    if policy is FailurePolicy.FAIL_CLOSED:
        raise ServerError(Error(f"{stage.value.upper()}_FAILURE", str(exc)))


def audit_status_for(status_code: int) -> AuditStatus:
    if status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN):
        return AuditStatus.FAILED_AUTH
    if status_code in (status.HTTP_400_BAD_REQUEST, status.HTTP_404_NOT_FOUND):
        return AuditStatus.FAILED_VALIDATION
    return AuditStatus.FAILED_BUSINESS_RULE


def describe(error: Error) -> str:
    if not error.details:
        return error.message
    facts = ", ".join(f"{key}={value}" for key, value in error.details.items())
    return f"{error.message} ({facts})"


async def deny(
    request: Request,
    audit_logger: AuditLogger,
    action: str,
    error: Error,
    status_code: int,
    audit_status: Optional[AuditStatus] = None,
    extra: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    details: Optional[str] = None,
) -> NoReturn:
    """Audit a denial and answer it."""
    await audit_logger.record(
        action,
        audit_status or audit_status_for(status_code),
        context=audit_context(request),
        resource_id=get_resource_id(request),
        details=details or describe(error),
    )
    raise ClientError(error, status_code=status_code, extra=extra, headers=headers)
