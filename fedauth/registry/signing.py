"""Load the active signing key and mint tokens with it."""

import structlog
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from fedauth.core.settings import RegistrySettings
from fedauth.crypto.keys import decrypt_private_key
from fedauth.crypto.token_codec import TOKEN_TTL_SECONDS, new_nonce, sign_token
from fedauth.crypto.types import TokenClaims
from fedauth.db.repo_keys import get_active_key
from fedauth.registry.identity_bridge import VerifiedIdentity

logger = structlog.get_logger(__name__)


class ActiveSigningKey(BaseModel):
    """Decrypted private half of the active key."""

    kid: str
    private_key_pem: str


async def load_active_signing_key(
    session: AsyncSession, settings: RegistrySettings
) -> ActiveSigningKey | None:
    """Decrypt the newest non-revoked key, or None if none is provisioned."""
    key = await get_active_key(session)
    if key is None:
        return None
    private_pem = decrypt_private_key(
        key.private_key_pem, settings.signing_key_encryption_key
    )
    return ActiveSigningKey(kid=key.kid, private_key_pem=private_pem)


def issue_token(
    identity: VerifiedIdentity,
    audience: str,
    key: ActiveSigningKey,
    settings: RegistrySettings,
    *,
    ttl_seconds: int = TOKEN_TTL_SECONDS,
) -> str:
    """Sign ``identity`` for ``audience`` with a fresh nonce."""
    claims = TokenClaims(
        iss=settings.issuer_url,
        sub=identity.email,
        aud=audience,
        email=identity.email,
        nonce=new_nonce(),
        name=identity.name,
        picture=identity.picture,
    )
    token = sign_token(claims, key.private_key_pem, key.kid, ttl_seconds=ttl_seconds)
    logger.info("token_issued", kid=key.kid, aud=audience, nonce=claims.nonce)
    return token
