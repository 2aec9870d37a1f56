import pytest
from httpx import AsyncClient
from sqlmodel import select

from stoneguard.domain.base import utcnow
from stoneguard.domain.entities import (
    AuditStatus,
    Order,
    PaymentProof,
    PaymentStatus,
    SessionActivity,
)
from tests.integration.seed import (
    BROWSER,
    PASSWORD,
    audit_entries,
    auth_headers,
    create_order,
    create_user,
    reload,
)


def _submit(client: AsyncClient, user, order_id, amount, **body):
    payload = {"amountPaid": amount, "passwordConfirmation": PASSWORD}
    payload.update(body)
    return client.post(
        f"/orders/payment/submit/{order_id}", json=payload, headers=auth_headers(user)
    )


async def _proofs(session_factory, order_id):
    async with session_factory() as session:
        result = await session.exec(select(PaymentProof).where(PaymentProof.order_id == order_id))
        return list(result.all())


@pytest.mark.asyncio
async def test_submit_payment_proof(client: AsyncClient, db_session, session_factory):
    """
    Given a draft order with 4000 outstanding
    When the owning buyer submits a 1500 proof with their password
    Then the proof awaits review and the order payment status is unchanged
    """
    buyer = await create_user(db_session)
    order = await create_order(db_session, buyer)

    response = await _submit(client, buyer, order.id, 1500, proofFile="proofs/wire-1500.pdf")

    assert response.status_code == 201
    data = response.json()
    assert data["payment_proof"]["status"] == "pending"
    assert data["payment_proof"]["amount_paid"] == 1500
    assert data["order"]["payment_status"] == "pending"
    assert "internal_notes" not in data["order"]
    assert "buyer_id" not in data["order"]

    proofs = await _proofs(session_factory, order.id)
    assert len(proofs) == 1
    assert proofs[0].proof_file == "proofs/wire-1500.pdf"
    assert len(await audit_entries(session_factory, "PAYMENT_PROOF_SUBMITTED")) == 1


@pytest.mark.asyncio
async def test_payment_status_in_body_is_rejected(client: AsyncClient, db_session, session_factory):
    buyer = await create_user(db_session)
    order = await create_order(db_session, buyer)

    response = await _submit(client, buyer, order.id, 4000, paymentStatus="fully_paid")

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "PAYMENT_STATUS_MANIPULATION"
    stored = await reload(session_factory, Order, order.id)
    assert stored.payment_status == PaymentStatus.pending
    assert await _proofs(session_factory, order.id) == []

    attempts = await audit_entries(session_factory, "PAYMENT_STATUS_MANIPULATION_ATTEMPT")
    assert attempts[0].status == AuditStatus.WARNING


@pytest.mark.asyncio
async def test_payment_status_in_query_is_rejected(client: AsyncClient, db_session):
    buyer = await create_user(db_session)
    order = await create_order(db_session, buyer)

    response = await client.post(
        f"/orders/payment/submit/{order.id}?paymentStatus=fully_paid",
        json={"amountPaid": 100, "passwordConfirmation": PASSWORD},
        headers=auth_headers(buyer),
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "PAYMENT_STATUS_MANIPULATION"


@pytest.mark.asyncio
async def test_amount_over_outstanding_balance(client: AsyncClient, db_session, session_factory):
    buyer = await create_user(db_session)
    order = await create_order(db_session, buyer)

    response = await _submit(client, buyer, order.id, 5000)

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "AMOUNT_EXCEEDS_BALANCE"
    assert response.json()["error"]["message"] == "Payment amount exceeds outstanding balance"
    assert await _proofs(session_factory, order.id) == []
    stored = await reload(session_factory, Order, order.id)
    assert stored.outstanding_balance == 4000


@pytest.mark.asyncio
async def test_payment_requires_password(client: AsyncClient, db_session):
    buyer = await create_user(db_session)
    order = await create_order(db_session, buyer)

    response = await client.post(
        f"/orders/payment/submit/{order.id}",
        json={"amountPaid": 1000},
        headers=auth_headers(buyer),
    )

    assert response.status_code == 401
    assert response.json()["requiresMFA"] is True


@pytest.mark.asyncio
async def test_payment_for_other_buyers_order(client: AsyncClient, db_session, session_factory):
    owner = await create_user(db_session)
    intruder = await create_user(db_session)
    order = await create_order(db_session, owner)

    response = await _submit(client, intruder, order.id, 1000)

    assert response.status_code == 403
    assert await _proofs(session_factory, order.id) == []


@pytest.mark.asyncio
async def test_payment_for_paid_order(client: AsyncClient, db_session):
    buyer = await create_user(db_session)
    order = await create_order(db_session, buyer, total_paid=4000)

    response = await _submit(client, buyer, order.id, 100)

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "ORDER_ALREADY_PAID"


@pytest.mark.asyncio
async def test_missing_amount_is_a_validation_error(client: AsyncClient, db_session):
    buyer = await create_user(db_session)
    order = await create_order(db_session, buyer)

    response = await client.post(
        f"/orders/payment/submit/{order.id}",
        json={"passwordConfirmation": PASSWORD},
        headers=auth_headers(buyer),
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", ["NaN", "Infinity"])
async def test_non_finite_amount_is_rejected(
    client: AsyncClient, db_session, session_factory, amount
):
    buyer = await create_user(db_session)
    order = await create_order(db_session, buyer)

    response = await client.post(
        f"/orders/payment/submit/{order.id}",
        content=f'{{"amountPaid": {amount}, "passwordConfirmation": "{PASSWORD}"}}',
        headers={**auth_headers(buyer), "Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"
    assert await _proofs(session_factory, order.id) == []
    stored = await reload(session_factory, Order, order.id)
    assert stored.payment_status == PaymentStatus.pending


@pytest.mark.asyncio
async def test_submission_from_new_ip_is_flagged(client: AsyncClient, db_session, session_factory):
    buyer = await create_user(db_session)
    order = await create_order(db_session, buyer)
    seen = utcnow().isoformat()
    db_session.add(
        SessionActivity(
            subject_id=buyer.id,
            last_ip_address="198.51.100.9",
            last_user_agent=BROWSER,
            last_activity=utcnow(),
            known_ips=[{"ip": "198.51.100.9", "first_seen": seen, "last_seen": seen, "count": 3}],
        )
    )
    await db_session.commit()

    response = await _submit(client, buyer, order.id, 1500)

    assert response.status_code == 201
    [flagged] = await audit_entries(session_factory, "ANOMALY_DETECTED")
    assert flagged.status == AuditStatus.WARNING
    assert flagged.details == "New IP address detected: 127.0.0.1 (previous: 198.51.100.9)"
