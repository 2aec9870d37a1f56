from fastapi import Depends, Request, status

from stoneguard.api.guards.identity import Subject, get_current_subject
from stoneguard.api.guards.policy import Stage, deny, stage_failed
from stoneguard.api.utils.request_context import audit_context, get_resource_id, read_body_field
from stoneguard.app.services.audit_logger import AuditLogger
from stoneguard.app.services.reauth import ReauthVerifier
from stoneguard.depends import get_audit_logger, get_reauth_verifier
from stoneguard.domain.entities import AuditStatus
from stoneguard.libs.result import Error

REQUIRES_REAUTH = "requiresReauth"
REQUIRES_MFA = "requiresMFA"


def reauth_guard(flag: str, action: str):
    """
    Require passwordConfirmation before a consequential mutation.

    flag is the body flag telling the client what to prompt for
    (requiresReauth for approvals, requiresMFA for payments).
    """

    async def guard(
        request: Request,
        subject: Subject = Depends(get_current_subject),
        verifier: ReauthVerifier = Depends(get_reauth_verifier),
        audit_logger: AuditLogger = Depends(get_audit_logger),
    ) -> None:
        try:
            confirmation = await read_body_field(request, "passwordConfirmation")
            result = await verifier.verify(subject.id, confirmation)
        except Exception as exc:
            await stage_failed(Stage.reauth, exc, request, audit_logger)
            return

        if result.is_err():
            error = result.error
            if error.code == "REAUTH_REQUIRED":
                await deny(
                    request,
                    audit_logger,
                    f"{action}_REQUIRED",
                    error,
                    status.HTTP_401_UNAUTHORIZED,
                    extra={flag: True},
                )
            await deny(
                request,
                audit_logger,
                f"{action}_FAILED",
                Error("REAUTH_FAILED", "Authentication failed"),
                status.HTTP_401_UNAUTHORIZED,
                details="Password confirmation rejected",
            )

        await audit_logger.record(
            f"{action}_SUCCESS",
            AuditStatus.SUCCESS,
            context=audit_context(request),
            resource_id=get_resource_id(request),
        )

    return guard


require_approval_reauth = reauth_guard(REQUIRES_REAUTH, "REAUTH")
require_payment_mfa = reauth_guard(REQUIRES_MFA, "PAYMENT_MFA")
