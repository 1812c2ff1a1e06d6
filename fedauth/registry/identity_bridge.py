"""Upstream OAuth exchange mapped to canonical identity claims.

The provider is a black box that, given a one-time code, yields an access
token, which in turn yields an email/name/picture triple. The round-trip
``state`` is an HS256 token over the vault id and callback so a forged or
stale callback is rejected before any provider call is made.
"""

from datetime import UTC, datetime, timedelta
from urllib.parse import urlencode

import httpx
import jwt
import structlog
from pydantic import BaseModel, ValidationError

from fedauth.core.errors import InvalidState, UpstreamExchangeFailed
from fedauth.core.settings import RegistrySettings
from fedauth.crypto.token_codec import new_nonce

logger = structlog.get_logger(__name__)

STATE_ALGORITHM = "HS256"
STATE_TTL_SECONDS = 600


class VerifiedIdentity(BaseModel):
    """Canonical identity returned by the provider."""

    email: str
    name: str | None = None
    picture: str | None = None


class AuthState(BaseModel):
    """Tenant context carried through the provider round-trip."""

    vault_id: str
    callback_url: str


class IdentityBridge:
    """Drives authorize redirect, code exchange and userinfo fetch."""

    def __init__(self, settings: RegistrySettings, http_client: httpx.AsyncClient) -> None:
        self._settings = settings
        self._http = http_client

    def _state_secret(self) -> str:
        if not self._settings.state_secret:
            raise RuntimeError("REGISTRY_STATE_SECRET is not configured")
        return self._settings.state_secret

    def encode_state(
        self, vault_id: str, callback_url: str, *, now: datetime | None = None
    ) -> str:
        issued = now or datetime.now(UTC)
        payload = {
            "vault_id": vault_id,
            "callback_url": callback_url,
            "jti": new_nonce(),
            "iat": issued,
            "exp": issued + timedelta(seconds=STATE_TTL_SECONDS),
        }
        return jwt.encode(payload, self._state_secret(), algorithm=STATE_ALGORITHM)

    def decode_state(self, state: str | None) -> AuthState:
        """Raises InvalidState for a missing, tampered or expired state."""
        if not state:
            raise InvalidState("Missing state parameter")
        try:
            raw = jwt.decode(
                state,
                self._state_secret(),
                algorithms=[STATE_ALGORITHM],
                options={"require": ["exp", "vault_id", "callback_url"]},
            )
            return AuthState.model_validate(raw)
        except (jwt.InvalidTokenError, ValidationError) as exc:
            raise InvalidState(f"Rejected state: {exc}") from exc

    def build_authorization_url(self, vault_id: str, callback_url: str) -> str:
        """Provider authorize URL for this tenant's login attempt."""
        params = {
            "client_id": self._settings.provider_client_id,
            "redirect_uri": self._settings.callback_url,
            "response_type": "code",
            "scope": self._settings.provider_scope,
            "state": self.encode_state(vault_id, callback_url),
        }
        return f"{self._settings.provider_authorize_url}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> str:
        """Server-to-server code exchange; returns the provider access token."""
        try:
            response = await self._http.post(
                self._settings.provider_token_url,
                data={
                    "code": code,
                    "client_id": self._settings.provider_client_id,
                    "client_secret": self._settings.provider_client_secret,
                    "redirect_uri": self._settings.callback_url,
                    "grant_type": "authorization_code",
                },
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("provider_code_exchange_failed", error=str(exc))
            raise UpstreamExchangeFailed("Code exchange failed") from exc
        access_token = body.get("access_token") if isinstance(body, dict) else None
        if not isinstance(access_token, str) or not access_token:
            logger.warning("provider_code_exchange_failed", error="no access_token")
            raise UpstreamExchangeFailed("Provider returned no access token")
        return access_token

    async def fetch_identity(self, access_token: str) -> VerifiedIdentity:
        """Userinfo lookup mapped to a lower-cased email plus profile fields."""
        try:
            response = await self._http.get(
                self._settings.provider_userinfo_url,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            response.raise_for_status()
            info = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("provider_userinfo_failed", error=str(exc))
            raise UpstreamExchangeFailed("Userinfo fetch failed") from exc

        email = info.get("email") if isinstance(info, dict) else None
        if not isinstance(email, str) or not email:
            raise UpstreamExchangeFailed("Provider returned no email")
        if info.get("email_verified") is False:
            raise UpstreamExchangeFailed("Provider email is not verified")

        name = info.get("name")
        picture = info.get("picture")
        return VerifiedIdentity(
            email=email.lower(),
            name=name if isinstance(name, str) else None,
            picture=picture if isinstance(picture, str) else None,
        )

    async def complete(
        self, code: str | None, state: str | None
    ) -> tuple[AuthState, VerifiedIdentity]:
        """Validate state, then exchange the code and fetch the identity."""
        auth_state = self.decode_state(state)
        if not code:
            raise UpstreamExchangeFailed("Provider callback carried no code")
        access_token = await self.exchange_code(code)
        identity = await self.fetch_identity(access_token)
        logger.info("provider_login_completed", vault_id=auth_state.vault_id)
        return auth_state, identity
