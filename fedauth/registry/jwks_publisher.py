"""Build the public JWKS document from the key store."""

from collections.abc import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from fedauth.crypto.keys import pem_to_jwk_entry
from fedauth.crypto.types import JWKSResponse
from fedauth.db.models_keys import SigningKeyEntity
from fedauth.db.repo_keys import get_published_keys

JWKS_CACHE_CONTROL = "public, max-age=3600"


def build_jwks(keys: Iterable[SigningKeyEntity]) -> JWKSResponse:
    """One OKP descriptor per key; callers pass only non-revoked keys."""
    return JWKSResponse(
        keys=[pem_to_jwk_entry(k.public_key_pem, k.kid) for k in keys]
    )


async def list_public_keys(session: AsyncSession) -> JWKSResponse:
    """Every non-revoked key, newest first."""
    return build_jwks(await get_published_keys(session))
