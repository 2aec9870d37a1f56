from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from stoneguard.app.services.captcha import CaptchaVerifier
from stoneguard.depends import get_captcha_verifier, get_session_factory
from tests.integration.seed import BROWSER, VALID_CAPTCHA


class FakeCaptchaVerifier(CaptchaVerifier):
    def __init__(self):
        self.calls = []

    async def verify(self, token: str, remote_ip: Optional[str] = None) -> bool:
        self.calls.append((token, remote_ip))
        return token == VALID_CAPTCHA


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'stoneguard_test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def captcha_verifier():
    return FakeCaptchaVerifier()


@pytest.fixture
def app(session_factory, captcha_verifier):
    from config import ApplicationConfig
    from stoneguard.api.app import create_app

    app = create_app(ApplicationConfig)
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_captcha_verifier] = lambda: captcha_verifier
    return app


@pytest_asyncio.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport, base_url="http://test", headers={"User-Agent": BROWSER}
    ) as ac:
        yield ac
