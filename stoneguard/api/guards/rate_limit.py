"""
Rate limit + CAPTCHA challenge stage.

The subject and the client IP are tracked independently; either being
blocked denies the request. Only the subject's count escalates to CAPTCHA.
"""

from typing import Optional, Tuple

from fastapi import Depends, Request, status

from config import ApplicationConfig
from stoneguard.api.guards.identity import Subject, get_current_subject
from stoneguard.api.guards.policy import Stage, deny, stage_failed
from stoneguard.api.utils.request_context import audit_context, get_client_ip, read_body_field
from stoneguard.app.services.audit_logger import AuditLogger
from stoneguard.app.services.captcha import CaptchaVerifier
from stoneguard.app.services.rate_limiter import (
    RateLimitDecision,
    RateLimiter,
    RateLimitPolicy,
)
from stoneguard.depends import get_audit_logger, get_captcha_verifier, get_rate_limiter
from stoneguard.domain.entities import AuditStatus, IdentifierType
from stoneguard.libs.result import Error

APPROVAL = "quote_approval"
PAYMENT = "payment_submission"


def policies_for(purpose: str) -> Tuple[RateLimitPolicy, RateLimitPolicy]:
    """(user policy, ip policy) for a guarded purpose, read from configuration."""
    config = ApplicationConfig
    if purpose == APPROVAL:
        window = config.APPROVAL_WINDOW_SECONDS
        return (
            RateLimitPolicy(purpose, window, config.APPROVAL_MAX_PER_USER, config.APPROVAL_CAPTCHA_THRESHOLD),
            RateLimitPolicy(purpose, window, config.APPROVAL_MAX_PER_IP),
        )
    if purpose == PAYMENT:
        window = config.PAYMENT_WINDOW_SECONDS
        return (
            RateLimitPolicy(purpose, window, config.PAYMENT_MAX_PER_USER, config.PAYMENT_CAPTCHA_THRESHOLD),
            RateLimitPolicy(purpose, window, config.PAYMENT_MAX_PER_IP),
        )
    raise ValueError(f"Unknown rate limit purpose: {purpose}")


def _retry_headers(seconds: int) -> dict:
    return {"Retry-After": str(seconds)}


def rate_limit_guard(purpose: str):
    async def guard(
        request: Request,
        subject: Subject = Depends(get_current_subject),
        rate_limiter: RateLimiter = Depends(get_rate_limiter),
        captcha_verifier: CaptchaVerifier = Depends(get_captcha_verifier),
        audit_logger: AuditLogger = Depends(get_audit_logger),
    ) -> None:
        user_policy, ip_policy = policies_for(purpose)
        client_ip = get_client_ip(request)

        try:
            decisions = [await rate_limiter.check(str(subject.id), IdentifierType.user, user_policy)]
            if client_ip:
                decisions.append(
                    await rate_limiter.check(client_ip, IdentifierType.ip, ip_policy)
                )
        except Exception as exc:
            await stage_failed(Stage.rate_limit, exc, request, audit_logger)
            return

        for decision in decisions:
            if not decision.allowed:
                retry_after = decision.retry_after_seconds
                await deny(
                    request,
                    audit_logger,
                    "RATE_LIMIT_EXCEEDED",
                    Error("RATE_LIMIT_EXCEEDED", "Too many requests. Please try again later."),
                    status.HTTP_429_TOO_MANY_REQUESTS,
                    extra={"retryAfter": retry_after},
                    headers=_retry_headers(retry_after),
                    details=f"{purpose}: {decision.request_count} requests, retry after {retry_after}s",
                )

        if decisions[0].requires_captcha:
            await _captcha_challenge(
                request,
                subject,
                client_ip,
                user_policy,
                ip_policy,
                decisions[0],
                rate_limiter,
                captcha_verifier,
                audit_logger,
            )

    return guard


async def _captcha_challenge(
    request: Request,
    subject: Subject,
    client_ip: Optional[str],
    user_policy: RateLimitPolicy,
    ip_policy: RateLimitPolicy,
    decision: RateLimitDecision,
    rate_limiter: RateLimiter,
    captcha_verifier: CaptchaVerifier,
    audit_logger: AuditLogger,
) -> None:
    token = await read_body_field(request, "captchaToken") or request.headers.get("x-captcha-token")
    if not token:
        await deny(
            request,
            audit_logger,
            "CAPTCHA_REQUIRED",
            Error("CAPTCHA_REQUIRED", "Please complete the CAPTCHA verification to continue."),
            status.HTTP_403_FORBIDDEN,
            audit_status=AuditStatus.FAILED_VALIDATION,
            extra={"requiresCaptcha": True},
            details=f"{user_policy.endpoint}: {decision.request_count} requests in window",
        )

    try:
        valid = await captcha_verifier.verify(str(token), client_ip)
        if not valid:
            await rate_limiter.record_captcha_failure(str(subject.id), IdentifierType.user, user_policy)
            if client_ip:
                await rate_limiter.record_captcha_failure(client_ip, IdentifierType.ip, ip_policy)
    except Exception as exc:
        await stage_failed(Stage.captcha, exc, request, audit_logger)
        return

    if not valid:
        await deny(
            request,
            audit_logger,
            "CAPTCHA_FAILED",
            Error("CAPTCHA_FAILED", "CAPTCHA verification failed. Please try again."),
            status.HTTP_403_FORBIDDEN,
            audit_status=AuditStatus.FAILED_VALIDATION,
            extra={"requiresCaptcha": True, "captchaFailed": True},
        )

    try:
        await rate_limiter.clear_captcha(str(subject.id), IdentifierType.user, user_policy)
    except Exception as exc:
        await stage_failed(Stage.rate_limit, exc, request, audit_logger)
        return

    await audit_logger.record(
        "CAPTCHA_VERIFIED",
        AuditStatus.SUCCESS,
        context=audit_context(request),
        details=f"{user_policy.endpoint}: counters reset",
    )
