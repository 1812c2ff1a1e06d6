"""Tests for the vault's /api/auth endpoints."""

from datetime import UTC, datetime, timedelta
from urllib.parse import parse_qs, urlparse

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from fedauth.core.settings import RegistrySettings, VaultSettings
from fedauth.crypto.keys import decrypt_private_key, generate_ed25519_keypair
from fedauth.db.models_keys import SigningKeyEntity
from fedauth.db.models_members import MemberEntity
from fedauth.db.repo_keys import create_key
from fedauth.db.repo_members import (
    MemberCreateData,
    create_member,
    get_member_by_email,
    get_role_rows,
)
from fedauth.registry.identity_bridge import VerifiedIdentity
from fedauth.registry.signing import ActiveSigningKey, issue_token
from fedauth.vault.invites import create_invite
from fedauth.vault.permissions import Role
from fedauth.vault.session import decode_session

HTTP_REDIRECT = 302
HTTP_BAD_REQUEST = 400
HTTP_UNAUTHORIZED = 401

ALICE = VerifiedIdentity(email="alice@example.test", name="Alice")


@pytest.fixture
async def signing_key(db_session: AsyncSession, fernet_key: str) -> ActiveSigningKey:
    key: SigningKeyEntity = await create_key(db_session, fernet_key)
    await db_session.commit()
    return ActiveSigningKey(
        kid=key.kid, private_key_pem=decrypt_private_key(key.private_key_pem, fernet_key)
    )


@pytest.fixture
async def roster(db_session: AsyncSession) -> MemberEntity:
    member = await create_member(db_session, MemberCreateData(name="Alice A."))
    await db_session.commit()
    return member


def _tenant_token(
    key: ActiveSigningKey,
    identity: VerifiedIdentity = ALICE,
    audience: str = "vault-42",
) -> str:
    return issue_token(identity, audience, key, RegistrySettings())


def _session_member(set_cookie: str) -> str | None:
    value = set_cookie.split(";", 1)[0].split("=", 1)[1]
    return decode_session(value, VaultSettings())


class TestLogin:
    """GET /api/auth/login."""

    async def test_redirects_to_registry(self, vault_client: AsyncClient) -> None:
        resp = await vault_client.get("/api/auth/login")
        assert resp.status_code == HTTP_REDIRECT
        location = urlparse(resp.headers["location"])
        assert f"{location.scheme}://{location.netloc}{location.path}" == (
            "https://registry.example.test/auth"
        )
        assert parse_qs(location.query) == {
            "vault_id": ["vault-42"],
            "callback": ["https://vault42.example.test/api/auth/callback"],
        }


class TestCallback:
    """GET /api/auth/callback."""

    async def test_creates_member_and_session(
        self,
        vault_client: AsyncClient,
        db_session: AsyncSession,
        signing_key: ActiveSigningKey,
    ) -> None:
        resp = await vault_client.get(
            "/api/auth/callback", params={"token": _tenant_token(signing_key)}
        )
        assert resp.status_code == HTTP_REDIRECT
        assert resp.headers["location"] == "/"

        member = await get_member_by_email(db_session, "alice@example.test")
        assert member is not None
        assert member.name == "Alice"
        assert _session_member(resp.headers["set-cookie"]) == member.id

    async def test_existing_member_reused(
        self,
        vault_client: AsyncClient,
        db_session: AsyncSession,
        signing_key: ActiveSigningKey,
    ) -> None:
        existing = await create_member(
            db_session, MemberCreateData(name="Al", email_id="alice@example.test")
        )
        await db_session.commit()
        resp = await vault_client.get(
            "/api/auth/callback", params={"token": _tenant_token(signing_key)}
        )
        assert _session_member(resp.headers["set-cookie"]) == existing.id
        assert existing.name == "Alice"

    async def test_missing_token(self, vault_client: AsyncClient) -> None:
        resp = await vault_client.get("/api/auth/callback")
        assert resp.status_code == HTTP_BAD_REQUEST

    async def test_token_for_other_vault(
        self, vault_client: AsyncClient, signing_key: ActiveSigningKey
    ) -> None:
        resp = await vault_client.get(
            "/api/auth/callback",
            params={"token": _tenant_token(signing_key, audience="vault-7")},
        )
        assert resp.status_code == HTTP_UNAUTHORIZED
        assert resp.json()["error"] == "invalid_token"
        assert "set-cookie" not in resp.headers

    async def test_sso_token_rejected_as_tenant_token(
        self, vault_client: AsyncClient, signing_key: ActiveSigningKey
    ) -> None:
        resp = await vault_client.get(
            "/api/auth/callback",
            params={"token": _tenant_token(signing_key, audience="sso")},
        )
        assert resp.status_code == HTTP_UNAUTHORIZED

    @pytest.mark.usefixtures("signing_key")
    async def test_unknown_signer(self, vault_client: AsyncClient) -> None:
        rogue = generate_ed25519_keypair()
        token = _tenant_token(
            ActiveSigningKey(kid=rogue.kid, private_key_pem=rogue.private_key_pem)
        )
        resp = await vault_client.get("/api/auth/callback", params={"token": token})
        assert resp.status_code == HTTP_UNAUTHORIZED
        assert resp.json()["error"] == "no_matching_key"


class TestInviteRedemption:
    """Accept link followed by the login round-trip."""

    async def test_accept_sets_invite_cookie(
        self, vault_client: AsyncClient, db_session: AsyncSession, roster: MemberEntity
    ) -> None:
        invite = await create_invite(
            db_session, roster_member_id=roster.id, roles=[Role.ADMIN], invited_by="o-1"
        )
        await db_session.commit()

        resp = await vault_client.get("/api/auth/accept", params={"token": invite.token})
        assert resp.status_code == HTTP_REDIRECT
        assert resp.headers["location"] == "/api/auth/login"
        assert resp.headers["set-cookie"].startswith(f"invite_token={invite.token};")

    async def test_accept_unknown_token(self, vault_client: AsyncClient) -> None:
        resp = await vault_client.get("/api/auth/accept", params={"token": "nope"})
        assert resp.status_code == HTTP_REDIRECT
        location = urlparse(resp.headers["location"])
        assert location.path == "/invite/error"
        assert parse_qs(location.query)["message"] == [
            "This invitation link is not valid."
        ]

    async def test_accept_expired(
        self, vault_client: AsyncClient, db_session: AsyncSession, roster: MemberEntity
    ) -> None:
        invite = await create_invite(
            db_session,
            roster_member_id=roster.id,
            roles=[Role.ADMIN],
            invited_by="o-1",
            now=datetime.now(UTC) - timedelta(days=3),
        )
        await db_session.commit()
        resp = await vault_client.get("/api/auth/accept", params={"token": invite.token})
        assert "expired" in parse_qs(urlparse(resp.headers["location"]).query)["message"][0]

    async def test_callback_redeems_invite(
        self,
        vault_client: AsyncClient,
        db_session: AsyncSession,
        roster: MemberEntity,
        signing_key: ActiveSigningKey,
    ) -> None:
        invite = await create_invite(
            db_session, roster_member_id=roster.id, roles=[Role.ADMIN], invited_by="o-1"
        )
        await db_session.commit()

        resp = await vault_client.get(
            "/api/auth/callback",
            params={"token": _tenant_token(signing_key)},
            headers={"Cookie": f"invite_token={invite.token}"},
        )
        assert resp.status_code == HTTP_REDIRECT
        assert resp.headers["location"] == "/"
        cookies = resp.headers.get_list("set-cookie")
        session_cookie = next(c for c in cookies if c.startswith("member_session="))
        assert _session_member(session_cookie) == roster.id
        assert any(c.startswith("invite_token=") and "Max-Age=0" in c for c in cookies)

        assert roster.email_id == "alice@example.test"
        assert [r.role for r in await get_role_rows(db_session, roster.id)] == ["admin"]

    async def test_callback_with_used_invite(
        self,
        vault_client: AsyncClient,
        db_session: AsyncSession,
        roster: MemberEntity,
        signing_key: ActiveSigningKey,
    ) -> None:
        invite = await create_invite(
            db_session, roster_member_id=roster.id, roles=[Role.ADMIN], invited_by="o-1"
        )
        await db_session.commit()
        headers = {"Cookie": f"invite_token={invite.token}"}
        await vault_client.get(
            "/api/auth/callback",
            params={"token": _tenant_token(signing_key)},
            headers=headers,
        )

        eve = VerifiedIdentity(email="eve@example.test")
        resp = await vault_client.get(
            "/api/auth/callback",
            params={"token": _tenant_token(signing_key, identity=eve)},
            headers=headers,
        )
        assert resp.status_code == HTTP_REDIRECT
        assert urlparse(resp.headers["location"]).path == "/invite/error"
        assert await get_member_by_email(db_session, "eve@example.test") is None


    async def test_callback_cannot_rebind_registered_member(
        self,
        vault_client: AsyncClient,
        db_session: AsyncSession,
        roster: MemberEntity,
        signing_key: ActiveSigningKey,
    ) -> None:
        invite = await create_invite(
            db_session, roster_member_id=roster.id, roles=[Role.ADMIN], invited_by="o-1"
        )
        roster.email_id = "alice@example.test"
        await db_session.commit()

        eve = VerifiedIdentity(email="eve@evil.test")
        resp = await vault_client.get(
            "/api/auth/callback",
            params={"token": _tenant_token(signing_key, identity=eve)},
            headers={"Cookie": f"invite_token={invite.token}"},
        )
        assert resp.status_code == HTTP_REDIRECT
        assert urlparse(resp.headers["location"]).path == "/invite/error"
        assert roster.email_id == "alice@example.test"
        assert await get_member_by_email(db_session, "eve@evil.test") is None


class TestLogout:
    """GET /api/auth/logout."""

    async def test_clears_session(self, vault_client: AsyncClient) -> None:
        resp = await vault_client.get("/api/auth/logout")
        assert resp.status_code == HTTP_REDIRECT
        assert resp.headers["location"] == "/"
        cookie = resp.headers["set-cookie"]
        assert cookie.startswith("member_session=")
        assert "Max-Age=0" in cookie
