import pytest
from httpx import AsyncClient

from config import ApplicationConfig
from stoneguard.domain.entities import (
    Order,
    OrderStatus,
    PaymentProof,
    PaymentProofStatus,
    PaymentStatus,
    Stone,
)
from tests.integration.seed import (
    PASSWORD,
    audit_entries,
    auth_headers,
    create_order,
    create_stone,
    create_user,
    reload,
)


def _set_status(client: AsyncClient, admin, order_id, status, **body):
    return client.put(
        f"/orders/admin/status/{order_id}",
        json={"status": status, **body},
        headers=auth_headers(admin),
    )


@pytest.mark.asyncio
async def test_confirm_deducts_stock_exactly_once(client: AsyncClient, db_session, session_factory):
    admin = await create_user(db_session, role="admin")
    buyer = await create_user(db_session)
    stone = await create_stone(db_session, stock_quantity=500)
    order = await create_order(db_session, buyer, stone, total_paid=4000, quantity=100)

    first = await _set_status(client, admin, order.id, "confirmed")
    second = await _set_status(client, admin, order.id, "confirmed")

    assert first.status_code == 200
    assert first.json()["order"]["status"] == "confirmed"
    assert first.json()["order"]["internal_notes"] == "Priority customer"
    assert second.status_code == 409
    assert second.json()["error"]["code"] == "ORDER_ALREADY_IN_STATE"
    assert (await reload(session_factory, Stone, stone.id)).stock_quantity == 400
    assert len(await audit_entries(session_factory, "ORDER_STATUS_UPDATED")) == 1


@pytest.mark.asyncio
async def test_confirm_with_insufficient_stock(client: AsyncClient, db_session, session_factory):
    admin = await create_user(db_session, role="admin")
    buyer = await create_user(db_session)
    stone = await create_stone(db_session, stock_quantity=50)
    order = await create_order(db_session, buyer, stone, total_paid=4000, quantity=100)

    response = await _set_status(client, admin, order.id, "confirmed")

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "INSUFFICIENT_STOCK"
    assert (await reload(session_factory, Order, order.id)).status == OrderStatus.draft
    assert (await reload(session_factory, Stone, stone.id)).stock_quantity == 50


@pytest.mark.asyncio
async def test_confirm_unpaid_order(client: AsyncClient, db_session):
    admin = await create_user(db_session, role="admin")
    buyer = await create_user(db_session)
    order = await create_order(db_session, buyer, total_paid=1000)

    response = await _set_status(client, admin, order.id, "confirmed")

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "PAYMENT_NOT_COMPLETE"


@pytest.mark.asyncio
async def test_dispatch_needs_courier_details(client: AsyncClient, db_session, session_factory):
    admin = await create_user(db_session, role="admin")
    buyer = await create_user(db_session)
    order = await create_order(
        db_session, buyer, total_paid=4000, status=OrderStatus.confirmed
    )

    missing = await _set_status(client, admin, order.id, "dispatched")
    dispatched = await _set_status(
        client, admin, order.id, "dispatched", courierService="DHL", trackingNumber="JD014600"
    )

    assert missing.status_code == 400
    assert missing.json()["error"]["code"] == "COURIER_DETAILS_REQUIRED"
    assert dispatched.status_code == 200
    stored = await reload(session_factory, Order, order.id)
    assert stored.courier_tracking["tracking_number"] == "JD014600"
    assert stored.timeline[-1]["status"] == "dispatched"


@pytest.mark.asyncio
async def test_unknown_status(client: AsyncClient, db_session):
    admin = await create_user(db_session, role="admin")
    buyer = await create_user(db_session)
    order = await create_order(db_session, buyer)

    response = await _set_status(client, admin, order.id, "shipped")

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_STATUS"


@pytest.mark.asyncio
async def test_buyer_cannot_update_status(client: AsyncClient, db_session):
    buyer = await create_user(db_session)
    order = await create_order(db_session, buyer, total_paid=4000)

    response = await _set_status(client, buyer, order.id, "confirmed")

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "FORBIDDEN"


@pytest.mark.asyncio
async def test_submitted_then_approved_payment_marks_order_paid(
    client: AsyncClient, db_session, session_factory
):
    """Only an admin-approved proof moves the payment status"""
    admin = await create_user(db_session, role="admin")
    buyer = await create_user(db_session)
    order = await create_order(db_session, buyer)

    submitted = await client.post(
        f"/orders/payment/submit/{order.id}",
        json={"amountPaid": 4000, "passwordConfirmation": PASSWORD},
        headers=auth_headers(buyer),
    )
    proof_id = submitted.json()["payment_proof"]["id"]
    approved = await client.put(
        f"/orders/admin/{order.id}/payments/{proof_id}/approve",
        json={"notes": "Matched bank statement"},
        headers=auth_headers(admin),
    )
    replayed = await client.put(
        f"/orders/admin/{order.id}/payments/{proof_id}/approve",
        headers=auth_headers(admin),
    )

    assert submitted.status_code == 201
    assert approved.status_code == 200
    assert approved.json()["order"]["payment_status"] == "fully_paid"
    assert approved.json()["order"]["outstanding_balance"] == 0
    assert replayed.status_code == 409
    assert replayed.json()["error"]["code"] == "PROOF_ALREADY_REVIEWED"

    stored = await reload(session_factory, Order, order.id)
    assert stored.payment_status == PaymentStatus.fully_paid
    assert stored.total_paid == 4000


@pytest.mark.asyncio
async def test_reject_payment_proof(client: AsyncClient, db_session, session_factory):
    admin = await create_user(db_session, role="admin")
    buyer = await create_user(db_session)
    order = await create_order(db_session, buyer)
    proof = PaymentProof(order_id=order.id, buyer_id=buyer.id, amount_paid=1000)
    db_session.add(proof)
    await db_session.commit()

    response = await client.put(
        f"/orders/admin/{order.id}/payments/{proof.id}/reject",
        json={"notes": "Unreadable scan"},
        headers=auth_headers(admin),
    )

    assert response.status_code == 200
    stored_proof = await reload(session_factory, PaymentProof, proof.id)
    assert stored_proof.status == PaymentProofStatus.rejected
    assert stored_proof.reviewed_by == admin.id
    assert (await reload(session_factory, Order, order.id)).total_paid == 0


async def _pending_review_url(db_session) -> str:
    buyer = await create_user(db_session)
    order = await create_order(db_session, buyer)
    proof = PaymentProof(order_id=order.id, buyer_id=buyer.id, amount_paid=1000)
    db_session.add(proof)
    await db_session.commit()
    return f"/orders/admin/{order.id}/payments/{proof.id}/approve"


@pytest.mark.asyncio
async def test_payment_review_from_unlisted_ip(client: AsyncClient, db_session, monkeypatch):
    monkeypatch.setattr(ApplicationConfig, "ADMIN_IP_ALLOWLIST", ["10.0.0.5"])
    admin = await create_user(db_session, role="admin")
    url = await _pending_review_url(db_session)

    blocked = await client.put(url, headers=auth_headers(admin))

    assert blocked.status_code == 403
    assert blocked.json()["error"]["code"] == "IP_NOT_ALLOWED"


@pytest.mark.asyncio
async def test_forwarded_ip_from_untrusted_peer_is_ignored(
    client: AsyncClient, db_session, session_factory, monkeypatch
):
    monkeypatch.setattr(ApplicationConfig, "ADMIN_IP_ALLOWLIST", ["10.0.0.5"])
    monkeypatch.setattr(ApplicationConfig, "TRUSTED_PROXIES", [])
    admin = await create_user(db_session, role="admin")
    url = await _pending_review_url(db_session)

    response = await client.put(
        url, headers={**auth_headers(admin), "X-Forwarded-For": "10.0.0.5", "X-Real-IP": "10.0.0.5"}
    )

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "IP_NOT_ALLOWED"
    [entry] = await audit_entries(session_factory, "IP_WHITELIST_CHECK")
    assert entry.client_ip == "127.0.0.1"


@pytest.mark.asyncio
async def test_forwarded_ip_from_trusted_proxy(client: AsyncClient, db_session, monkeypatch):
    monkeypatch.setattr(ApplicationConfig, "ADMIN_IP_ALLOWLIST", ["10.0.0.5"])
    monkeypatch.setattr(ApplicationConfig, "TRUSTED_PROXIES", ["127.0.0.1"])
    admin = await create_user(db_session, role="admin")
    url = await _pending_review_url(db_session)

    response = await client.put(
        url, headers={**auth_headers(admin), "X-Forwarded-For": "10.0.0.5, 127.0.0.1"}
    )

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_wildcard_allowlist_entry(client: AsyncClient, db_session, monkeypatch):
    monkeypatch.setattr(ApplicationConfig, "ADMIN_IP_ALLOWLIST", ["10.0.*", "127.0.0.*"])
    admin = await create_user(db_session, role="admin")
    url = await _pending_review_url(db_session)

    response = await client.put(url, headers=auth_headers(admin))

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_payment_review_with_malformed_ids(client: AsyncClient, db_session):
    admin = await create_user(db_session, role="admin")

    response = await client.put(
        "/orders/admin/not-a-uuid/payments/also-bad/approve", headers=auth_headers(admin)
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_ID"
