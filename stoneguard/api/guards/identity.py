"""
Identity & role resolution. Fails closed: no token, a bad token or a
missing signing secret never yield a subject.
"""

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from fastapi import Depends, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from stoneguard.api.guards.policy import Stage, deny, stage_failed
from stoneguard.api.utils.jwt import verify_jwt
from stoneguard.app.services.audit_logger import AuditLogger
from stoneguard.app.services.ownership import parse_identifier
from stoneguard.depends import get_audit_logger
from stoneguard.domain.entities import Role
from stoneguard.domain.roles import normalize_role
from stoneguard.libs.result import Error

bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Subject:
    id: UUID
    role: Role
    raw_role: Optional[str] = None


async def get_current_subject(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> Subject:
    if credentials is None or not credentials.credentials:
        await deny(
            request,
            audit_logger,
            "AUTH_TOKEN_VERIFY",
            Error("UNAUTHORIZED", "No token provided"),
            status.HTTP_401_UNAUTHORIZED,
        )

    payload = None
    try:
        payload = verify_jwt(credentials.credentials)
    except Exception as exc:
        await stage_failed(Stage.identity, exc, request, audit_logger)

    subject_id = parse_identifier(payload.get("user_id")) if payload else None
    if subject_id is None:
        await deny(
            request,
            audit_logger,
            "AUTH_TOKEN_VERIFY",
            Error("UNAUTHORIZED", "Invalid or expired token"),
            status.HTTP_401_UNAUTHORIZED,
        )

    raw_role = payload.get("role")
    subject = Subject(id=subject_id, role=normalize_role(raw_role), raw_role=raw_role)
    request.state.subject = subject
    return subject
