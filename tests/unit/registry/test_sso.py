"""Tests for the SSO cookie session."""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import Response

from fedauth.core.settings import RegistrySettings
from fedauth.crypto.keys import decrypt_private_key, generate_ed25519_keypair
from fedauth.crypto.token_codec import sign_token, verify_token
from fedauth.crypto.types import TokenClaims
from fedauth.db.models_keys import SigningKeyEntity
from fedauth.db.repo_keys import create_key
from fedauth.registry.identity_bridge import VerifiedIdentity
from fedauth.registry.signing import ActiveSigningKey
from fedauth.registry.sso import SSO_AUDIENCE, SSOSession, is_safe_logout_callback

ISSUER = "https://registry.example.test"
ALICE = VerifiedIdentity(email="alice@example.test", name="Alice")


@pytest.fixture
async def stored_key(db_session: AsyncSession, fernet_key: str) -> SigningKeyEntity:
    return await create_key(db_session, fernet_key)


@pytest.fixture
def active_key(stored_key: SigningKeyEntity, fernet_key: str) -> ActiveSigningKey:
    return ActiveSigningKey(
        kid=stored_key.kid,
        private_key_pem=decrypt_private_key(stored_key.private_key_pem, fernet_key),
    )


class TestMintTokens:
    """Tests for the tenant/SSO token pair."""

    def test_audiences_differ(
        self, stored_key: SigningKeyEntity, active_key: ActiveSigningKey
    ) -> None:
        sso = SSOSession(RegistrySettings())
        tenant, sso_token = sso.mint_tokens(ALICE, "vault-42", active_key)
        tenant_claims = verify_token(
            tenant, stored_key.public_key_pem, issuer=ISSUER, audience="vault-42"
        )
        sso_claims = verify_token(
            sso_token, stored_key.public_key_pem, issuer=ISSUER, audience=SSO_AUDIENCE
        )
        assert tenant_claims.exp - tenant_claims.iat == 300
        assert sso_claims.exp - sso_claims.iat == 7 * 24 * 3600
        assert tenant_claims.nonce != sso_claims.nonce

    def test_reserved_audience_refused_for_tenant(
        self, active_key: ActiveSigningKey
    ) -> None:
        with pytest.raises(ValueError):
            SSOSession(RegistrySettings()).mint_tenant_token(ALICE, "sso", active_key)


class TestReadSession:
    """Every failure reads as "no session"."""

    def test_valid_cookie(
        self, stored_key: SigningKeyEntity, active_key: ActiveSigningKey
    ) -> None:
        sso = SSOSession(RegistrySettings())
        token = sso.mint_sso_token(ALICE, active_key)
        identity = sso.read_session(token, [stored_key])
        assert identity is not None
        assert identity.email == "alice@example.test"
        assert identity.name == "Alice"

    def test_missing_cookie(self, stored_key: SigningKeyEntity) -> None:
        assert SSOSession(RegistrySettings()).read_session(None, [stored_key]) is None

    def test_tenant_token_is_not_sso(
        self, stored_key: SigningKeyEntity, active_key: ActiveSigningKey
    ) -> None:
        sso = SSOSession(RegistrySettings())
        tenant = sso.mint_tenant_token(ALICE, "vault-42", active_key)
        assert sso.read_session(tenant, [stored_key]) is None

    def test_expired_cookie(
        self, stored_key: SigningKeyEntity, active_key: ActiveSigningKey
    ) -> None:
        claims = TokenClaims(
            iss=ISSUER,
            sub=ALICE.email,
            aud=SSO_AUDIENCE,
            email=ALICE.email,
            nonce="n",
        )
        token = sign_token(
            claims,
            active_key.private_key_pem,
            active_key.kid,
            issued_at=datetime.now(UTC) - timedelta(days=8),
            ttl_seconds=7 * 24 * 3600,
        )
        assert SSOSession(RegistrySettings()).read_session(token, [stored_key]) is None

    def test_unknown_signer(self, stored_key: SigningKeyEntity) -> None:
        rogue = generate_ed25519_keypair()
        token = SSOSession(RegistrySettings()).mint_sso_token(
            ALICE, ActiveSigningKey(kid=rogue.kid, private_key_pem=rogue.private_key_pem)
        )
        assert SSOSession(RegistrySettings()).read_session(token, [stored_key]) is None

    def test_garbage(self, stored_key: SigningKeyEntity) -> None:
        assert SSOSession(RegistrySettings()).read_session("x.y.z", [stored_key]) is None


class TestCookie:
    """Cookie attributes."""

    def test_set_cookie_attributes(self) -> None:
        response = Response()
        SSOSession(RegistrySettings()).set_cookie(response, "tok")
        header = response.headers["set-cookie"]
        assert header.startswith("fedauth_sso=tok;")
        assert "Domain=.example.test" in header
        assert "HttpOnly" in header
        assert "Secure" in header
        assert "SameSite=lax" in header
        assert "Path=/" in header
        assert "Max-Age=604800" in header

    def test_clear_cookie(self) -> None:
        response = Response()
        SSOSession(RegistrySettings()).clear_cookie(response)
        header = response.headers["set-cookie"]
        assert "Max-Age=0" in header
        assert "Domain=.example.test" in header


class TestLogoutCallback:
    """Open-redirect guard for logout."""

    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("https://example.test/", True),
            ("https://vault42.example.test/bye", True),
            ("https://evil.test", False),
            ("http://vault42.example.test/", False),
            ("https://example.test.evil.test/", False),
            ("https://notexample.test/", False),
            ("https://example.test@evil.test/", False),
            ("javascript:alert(1)", False),
            ("https://[::1", False),
            ("https://[vault42.example.test/", False),
            ("", False),
        ],
    )
    def test_callback_validation(self, url: str, expected: bool) -> None:
        assert is_safe_logout_callback(url, "example.test") is expected
