"""Public key set endpoint."""

from fastapi import APIRouter, Response

from fedauth.crypto.types import JWKSResponse
from fedauth.registry.deps import DbSession
from fedauth.registry.jwks_publisher import JWKS_CACHE_CONTROL, list_public_keys

router = APIRouter(tags=["jwks"])


@router.get("/.well-known/jwks.json")
async def jwks(response: Response, db: DbSession) -> JWKSResponse:
    """JSON Web Key Set of every non-revoked signing key."""
    response.headers["Cache-Control"] = JWKS_CACHE_CONTROL
    return await list_public_keys(db)
