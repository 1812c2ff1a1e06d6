"""Shared test fixtures for fedauth."""

from collections.abc import AsyncIterator, Callable
from typing import Any

import httpx
import pytest
from cryptography.fernet import Fernet
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from fedauth.core.app import create_registry_app, create_vault_app
from fedauth.db.base import BaseEntity
from fedauth.db.engine import get_session
from fedauth.registry.deps import get_http_client
from fedauth.vault.deps import get_jwks_cache
from fedauth.vault.jwks_cache import JWKSCache

FERNET_KEY = Fernet.generate_key().decode()
REGISTRY_URL = "https://registry.example.test"
VAULT_URL = "https://vault42.example.test"
PROVIDER_TOKEN_URL = "https://provider.test/token"
PROVIDER_USERINFO_URL = "https://provider.test/userinfo"


@pytest.fixture(autouse=True)
def _set_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set environment variables for test settings."""
    monkeypatch.setenv("REGISTRY_ISSUER_URL", REGISTRY_URL)
    monkeypatch.setenv("REGISTRY_PARENT_DOMAIN", "example.test")
    monkeypatch.setenv("REGISTRY_DEFAULT_REDIRECT_URL", "https://example.test")
    monkeypatch.setenv("REGISTRY_SIGNING_KEY_ENCRYPTION_KEY", FERNET_KEY)
    monkeypatch.setenv("REGISTRY_INTERNAL_TOKEN", "internal-test-token")
    monkeypatch.setenv("REGISTRY_STATE_SECRET", "state-secret-for-tests-0123456789abcdef")
    monkeypatch.setenv("REGISTRY_PROVIDER_CLIENT_ID", "client-123")
    monkeypatch.setenv("REGISTRY_PROVIDER_CLIENT_SECRET", "client-secret")
    monkeypatch.setenv("REGISTRY_PROVIDER_AUTHORIZE_URL", "https://provider.test/authorize")
    monkeypatch.setenv("REGISTRY_PROVIDER_TOKEN_URL", PROVIDER_TOKEN_URL)
    monkeypatch.setenv("REGISTRY_PROVIDER_USERINFO_URL", PROVIDER_USERINFO_URL)
    monkeypatch.setenv("VAULT_VAULT_ID", "vault-42")
    monkeypatch.setenv("VAULT_REGISTRY_URL", REGISTRY_URL)
    monkeypatch.setenv("VAULT_PUBLIC_URL", VAULT_URL)
    monkeypatch.setenv("VAULT_SESSION_SECRET", "vault-session-secret-0123456789abcdef")


@pytest.fixture
def fernet_key() -> str:
    return FERNET_KEY


@pytest.fixture
async def db_session() -> AsyncIterator[AsyncSession]:
    """Create an in-memory SQLite async session for tests."""
    engine = create_async_engine("sqlite+aiosqlite://", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(BaseEntity.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session

    await engine.dispose()


def _session_override(db_session: AsyncSession) -> Callable[[], AsyncIterator[AsyncSession]]:
    async def _override_session() -> AsyncIterator[AsyncSession]:
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    return _override_session


class FakeProvider:
    """Stands in for the upstream OAuth provider behind httpx.MockTransport."""

    def __init__(self) -> None:
        self.token_status = 200
        self.token_body: Any = {"access_token": "provider-access-token"}
        self.userinfo_status = 200
        self.userinfo_body: Any = {
            "email": "Alice@Example.test",
            "email_verified": True,
            "name": "Alice",
            "picture": "https://provider.test/alice.png",
        }
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if url.startswith(PROVIDER_TOKEN_URL):
            return httpx.Response(self.token_status, json=self.token_body)
        if url.startswith(PROVIDER_USERINFO_URL):
            return httpx.Response(self.userinfo_status, json=self.userinfo_body)
        return httpx.Response(404)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def registry_app(db_session: AsyncSession, provider: FakeProvider) -> FastAPI:
    """Registry app bound to the test session and the fake provider."""
    app = create_registry_app()

    async def _override_http() -> AsyncIterator[httpx.AsyncClient]:
        async with provider.client() as client:
            yield client

    app.dependency_overrides[get_session] = _session_override(db_session)
    app.dependency_overrides[get_http_client] = _override_http
    return app


@pytest.fixture
async def registry_client(registry_app: FastAPI) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=registry_app)
    async with AsyncClient(transport=transport, base_url=REGISTRY_URL) as ac:
        yield ac


@pytest.fixture
async def jwks_cache(registry_app: FastAPI) -> AsyncIterator[JWKSCache]:
    """JWKS cache whose fetches are served by the in-process registry."""
    transport = ASGITransport(app=registry_app)
    async with AsyncClient(transport=transport) as http:
        yield JWKSCache(http)


@pytest.fixture
async def vault_client(
    db_session: AsyncSession, jwks_cache: JWKSCache
) -> AsyncIterator[AsyncClient]:
    """Vault app sharing the test session and verifying against the registry."""
    app = create_vault_app()
    app.dependency_overrides[get_session] = _session_override(db_session)
    app.dependency_overrides[get_jwks_cache] = lambda: jwks_cache

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url=VAULT_URL) as ac:
        yield ac
