from unittest.mock import AsyncMock, MagicMock

import pytest

from stoneguard.app.services.audit_logger import AuditContext
from stoneguard.domain.entities import Role
from tests.fixtures.clock import FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_uow():
    uow = MagicMock()
    uow.__aenter__ = AsyncMock(return_value=uow)
    uow.__aexit__ = AsyncMock(return_value=False)  # Must return False to not suppress exceptions
    uow.commit = AsyncMock()
    uow.rollback = AsyncMock()

    uow.users = MagicMock()
    uow.users.get_by_id = AsyncMock()

    uow.stones = MagicMock()
    uow.stones.decrement_stock = AsyncMock(return_value=True)

    uow.quotations = MagicMock()
    uow.quotations.get_owned = AsyncMock()
    uow.quotations.get_by_id = AsyncMock()
    uow.quotations.mark_approved = AsyncMock(return_value=True)
    uow.quotations.mark_rejected = AsyncMock(return_value=True)

    uow.orders = MagicMock()
    uow.orders.get_owned = AsyncMock()
    uow.orders.get_by_id = AsyncMock()
    uow.orders.create = AsyncMock(side_effect=lambda order: order)
    uow.orders.transition_status = AsyncMock(return_value=True)
    uow.orders.apply_payment = AsyncMock(return_value=True)

    uow.payment_proofs = MagicMock()
    uow.payment_proofs.create = AsyncMock(side_effect=lambda proof: proof)
    uow.payment_proofs.get_for_order = AsyncMock()
    uow.payment_proofs.mark_reviewed = AsyncMock(return_value=True)
    uow.payment_proofs.count_submitted_since = AsyncMock(return_value=0)
    uow.payment_proofs.get_approved_amounts = AsyncMock(return_value=[])

    uow.audit_logs = MagicMock()
    uow.audit_logs.create = AsyncMock(side_effect=lambda entry: entry)

    uow.session_activity = MagicMock()
    uow.session_activity.ensure = AsyncMock()
    uow.session_activity.get_by_subject = AsyncMock()
    uow.session_activity.record_sighting = AsyncMock(return_value=True)

    return uow


@pytest.fixture
def uow_factory(mock_uow):
    return lambda: mock_uow


@pytest.fixture
def audit():
    return AuditContext(role=Role.BUYER, client_ip="203.0.113.7", user_agent="Mozilla/5.0")
