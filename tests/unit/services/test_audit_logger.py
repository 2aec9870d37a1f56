from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from stoneguard.app.services.audit_logger import (
    REDACTED,
    AuditContext,
    AuditLogger,
    redact_payload,
)
from stoneguard.domain.entities import AuditStatus, Role


def test_redact_payload_at_any_depth():
    payload = {
        "password": "a",
        "comment": "ok",
        "nested": {"passwordConfirmation": "b", "items": [{"password_confirmation": "c"}]},
    }

    redacted = redact_payload(payload)

    assert redacted["password"] == REDACTED
    assert redacted["comment"] == "ok"
    assert redacted["nested"]["passwordConfirmation"] == REDACTED
    assert redacted["nested"]["items"][0]["password_confirmation"] == REDACTED
    assert payload["password"] == "a"


def test_entry_truncates_user_agent_and_redacts():
    context = AuditContext(subject_id=uuid4(), role=Role.BUYER, user_agent="A" * 900)

    entry = context.entry(
        "QUOTATION_APPROVED",
        AuditStatus.SUCCESS,
        resource_id=uuid4(),
        request_payload={"passwordConfirmation": "secret"},
    )

    assert len(entry.user_agent) == 500
    assert entry.request_payload == {"passwordConfirmation": REDACTED}
    assert isinstance(entry.resource_id, str)
    assert entry.role == Role.BUYER


@pytest.mark.asyncio
async def test_record_commits_entry(mock_uow, uow_factory):
    logger = AuditLogger(uow_factory)

    await logger.record("AUTH_TOKEN_VERIFY", AuditStatus.FAILED_AUTH, details="No token provided")

    entry = mock_uow.audit_logs.create.call_args[0][0]
    assert entry.action == "AUTH_TOKEN_VERIFY"
    assert entry.status == AuditStatus.FAILED_AUTH
    assert entry.role == Role.GUEST
    assert entry.subject_id is None
    mock_uow.commit.assert_called_once()


@pytest.mark.asyncio
async def test_record_never_raises(mock_uow, uow_factory, caplog):
    mock_uow.audit_logs.create = AsyncMock(side_effect=RuntimeError("database is down"))
    logger = AuditLogger(uow_factory)

    await logger.record("WAF_BLOCK", AuditStatus.FAILED_VALIDATION, details="Matched: XSS")

    assert "Audit write failed" in caplog.text
    assert "WAF_BLOCK" in caplog.text
    mock_uow.commit.assert_not_called()
