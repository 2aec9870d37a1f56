from fastapi import Depends, Request, status

from config import ApplicationConfig
from stoneguard.api.guards.policy import Stage, deny, stage_failed
from stoneguard.api.utils.request_context import get_client_ip, get_user_agent, read_json_body
from stoneguard.app.services.audit_logger import AuditLogger
from stoneguard.app.services.rate_limiter import RateLimiter
from stoneguard.app.services.security_context import SecurityContext
from stoneguard.depends import get_audit_logger, get_rate_limiter, get_security_context
from stoneguard.domain.entities import AuditStatus, IdentifierType
from stoneguard.libs.result import Error


async def waf_protection(
    request: Request,
    security: SecurityContext = Depends(get_security_context),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> None:
    """
    Block requests carrying attack signatures, or from an IP that failed too
    many CAPTCHA challenges. Audits the matched categories, never the payload.
    """
    client_ip = get_client_ip(request)
    try:
        query_values = []
        for key, value in request.query_params.multi_items():
            if key == "captchaToken":
                continue
            query_values.extend((key, value))

        categories = security.waf.inspect(
            request.url.path,
            query_values,
            get_user_agent(request),
            await read_json_body(request),
        )
        captcha_abuse = client_ip is not None and await rate_limiter.has_excessive_captcha_failures(
            client_ip, IdentifierType.ip, ApplicationConfig.WAF_MAX_CAPTCHA_FAILURES
        )
    except Exception as exc:
        await stage_failed(Stage.waf, exc, request, audit_logger)
        return

    if categories:
        await deny(
            request,
            audit_logger,
            "WAF_BLOCK",
            Error("REQUEST_BLOCKED", "Request blocked"),
            status.HTTP_403_FORBIDDEN,
            audit_status=AuditStatus.FAILED_VALIDATION,
            details=f"Matched: {', '.join(categories)}",
        )
    if captcha_abuse:
        await deny(
            request,
            audit_logger,
            "WAF_BLOCK",
            Error("REQUEST_BLOCKED", "Too many failed verification attempts. Please try again later."),
            status.HTTP_403_FORBIDDEN,
            audit_status=AuditStatus.FAILED_VALIDATION,
            details=f"Excessive CAPTCHA failures from {client_ip}",
        )
