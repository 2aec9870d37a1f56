import pytest
from httpx import AsyncClient

from config import ApplicationConfig
from stoneguard.api.app import create_app
from tests.integration.seed import auth_headers, create_quotation, create_user


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_app_refuses_to_start_without_signing_secret(monkeypatch):
    monkeypatch.setattr(ApplicationConfig, "JWT_SECRET", None)

    with pytest.raises(RuntimeError, match="JWT_SECRET"):
        create_app(ApplicationConfig)


@pytest.mark.asyncio
async def test_missing_signing_secret_fails_closed(client: AsyncClient, db_session, monkeypatch):
    buyer = await create_user(db_session)
    quotation = await create_quotation(db_session, buyer)
    headers = auth_headers(buyer)
    monkeypatch.setattr(ApplicationConfig, "JWT_SECRET", None)

    response = await client.get(f"/quotes/{quotation.id}", headers=headers)

    assert response.status_code == 500
    assert response.json()["error"]["message"] == "Internal server error"
