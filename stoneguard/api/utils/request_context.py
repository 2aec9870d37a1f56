"""
Per-request facts shared by the guard stages: client address, user-agent,
request id, the decoded JSON body and the audit context.
"""

from typing import Any, Optional
from uuid import uuid4

from fastapi import Request

from config import ApplicationConfig
from stoneguard.app.services.audit_logger import AuditContext
from stoneguard.domain.entities import Role
from stoneguard.domain.entities.audit_log import CLIENT_IP_MAX_LENGTH, REQUEST_ID_MAX_LENGTH

_NO_BODY = object()


def _forwarded_ip(request: Request) -> Optional[str]:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()
    return None


def get_client_ip(request: Request) -> Optional[str]:
    """
    The connecting peer's address. Forwarding headers are honoured only
    when that peer is one of TRUSTED_PROXIES.
    """
    peer = request.client.host if request.client is not None else None
    client_ip = peer
    if peer is not None and peer in ApplicationConfig.TRUSTED_PROXIES:
        client_ip = _forwarded_ip(request) or peer
    if client_ip is None:
        return None
    return client_ip[:CLIENT_IP_MAX_LENGTH]


def get_user_agent(request: Request) -> str:
    return request.headers.get("user-agent", "")


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id is None:
        request_id = (request.headers.get("x-request-id") or uuid4().hex)[:REQUEST_ID_MAX_LENGTH]
        request.state.request_id = request_id
    return request_id


async def read_json_body(request: Request) -> Any:
    """Decoded JSON body, or None when absent or not JSON. Cached per request."""
    cached = getattr(request.state, "json_body", _NO_BODY)
    if cached is not _NO_BODY:
        return cached
    body = None
    if request.method not in ("GET", "HEAD", "OPTIONS"):
        try:
            raw = await request.body()
            if raw:
                body = await request.json()
        except ValueError:
            body = None
    request.state.json_body = body
    return body


async def read_body_field(request: Request, name: str) -> Any:
    """A top-level body field. GET requests read it from the query string."""
    if request.method in ("GET", "HEAD"):
        return request.query_params.get(name)
    body = await read_json_body(request)
    if isinstance(body, dict):
        return body.get(name)
    return None


def get_resource_id(request: Request) -> Optional[str]:
    for key in ("quote_id", "order_id", "proof_id"):
        if key in request.path_params:
            return request.path_params[key]
    return None


def audit_context(request: Request) -> AuditContext:
    subject = getattr(request.state, "subject", None)
    return AuditContext(
        subject_id=subject.id if subject is not None else None,
        role=subject.role if subject is not None else Role.GUEST,
        client_ip=get_client_ip(request),
        user_agent=get_user_agent(request),
        request_id=get_request_id(request),
    )
