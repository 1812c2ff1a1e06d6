"""Cross-tenant SSO cookie.

After a full provider login the registry mints two tokens from the same
identity: one for the requesting vault and one for the reserved ``sso``
audience, stored in a parent-domain cookie. A later login for any vault that
presents a verifying SSO cookie skips the provider round-trip. The two
audiences are never interchangeable.
"""

from collections.abc import Iterable
from urllib.parse import urlsplit

import structlog
from starlette.responses import Response

from fedauth.core.errors import InvalidSignature, TokenError
from fedauth.core.settings import RegistrySettings
from fedauth.crypto.token_codec import verify_token
from fedauth.db.models_keys import SigningKeyEntity
from fedauth.registry.identity_bridge import VerifiedIdentity
from fedauth.registry.signing import ActiveSigningKey, issue_token

logger = structlog.get_logger(__name__)

SSO_AUDIENCE = "sso"


class SSOSession:
    """Mints, reads and scopes the SSO cookie."""

    def __init__(self, settings: RegistrySettings) -> None:
        self._settings = settings

    def mint_tenant_token(
        self, identity: VerifiedIdentity, vault_id: str, key: ActiveSigningKey
    ) -> str:
        if vault_id == SSO_AUDIENCE:
            raise ValueError("Vault id collides with the reserved SSO audience")
        return issue_token(identity, vault_id, key, self._settings)

    def mint_sso_token(self, identity: VerifiedIdentity, key: ActiveSigningKey) -> str:
        # exp matches the cookie's Max-Age so a replayed cookie dies with it
        return issue_token(
            identity,
            SSO_AUDIENCE,
            key,
            self._settings,
            ttl_seconds=self._settings.sso_cookie_max_age,
        )

    def mint_tokens(
        self, identity: VerifiedIdentity, vault_id: str, key: ActiveSigningKey
    ) -> tuple[str, str]:
        """Tenant token and SSO token for one completed login."""
        return (
            self.mint_tenant_token(identity, vault_id, key),
            self.mint_sso_token(identity, key),
        )

    def read_session(
        self, cookie_value: str | None, keys: Iterable[SigningKeyEntity]
    ) -> VerifiedIdentity | None:
        """Identity from a valid SSO cookie, or None.

        Every failure (absent, expired, forged, tenant-audienced) means "no
        SSO session" and is never raised.
        """
        if not cookie_value:
            return None
        for key in keys:
            try:
                decoded = verify_token(
                    cookie_value,
                    key.public_key_pem,
                    issuer=self._settings.issuer_url,
                    audience=SSO_AUDIENCE,
                )
            except InvalidSignature:
                continue
            except TokenError as exc:
                logger.debug("sso_cookie_rejected", reason=exc.error_code)
                return None
            return VerifiedIdentity(
                email=decoded.email, name=decoded.name, picture=decoded.picture
            )
        logger.debug("sso_cookie_rejected", reason="no_matching_key")
        return None

    def set_cookie(self, response: Response, sso_token: str) -> None:
        response.set_cookie(
            key=self._settings.sso_cookie_name,
            value=sso_token,
            max_age=self._settings.sso_cookie_max_age,
            domain=self._settings.sso_cookie_domain,
            path="/",
            secure=True,
            httponly=True,
            samesite="lax",
        )

    def clear_cookie(self, response: Response) -> None:
        response.delete_cookie(
            key=self._settings.sso_cookie_name,
            domain=self._settings.sso_cookie_domain,
            path="/",
            secure=True,
            httponly=True,
            samesite="lax",
        )


def is_safe_logout_callback(url: str | None, parent_domain: str) -> bool:
    """True for an https URL on the parent domain or one of its subdomains."""
    if not url:
        return False
    try:
        parts = urlsplit(url)
        hostname = parts.hostname
    except ValueError:
        return False
    host = (hostname or "").lower()
    parent = parent_domain.lower().lstrip(".")
    if parts.scheme != "https" or not host:
        return False
    return host == parent or host.endswith(f".{parent}")
