"""Compact EdDSA token signing and verification.

Tokens are standard three-segment JWS (``header.payload.signature``) so any
compliant JWT library can verify them against the published JWKS. Expiry is
checked here against an injectable clock rather than by PyJWT, so callers that
own a clock (the JWKS cache, tests) see one consistent notion of "now".
"""

import secrets
from datetime import UTC, datetime

import jwt
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from jwt.types import Options
from pydantic import ValidationError

from fedauth.core.errors import (
    ClaimMismatch,
    InvalidSignature,
    MalformedPayload,
    TokenExpired,
)
from fedauth.crypto.types import DecodedToken, TokenClaims

ALGORITHM = "EdDSA"
TOKEN_TTL_SECONDS = 300
REQUIRED_CLAIMS = ["iss", "sub", "aud", "iat", "exp"]


def new_nonce() -> str:
    """Opaque per-issuance value; distinguishes reissued tokens in logs."""
    return secrets.token_urlsafe(16)


def sign_token(
    claims: TokenClaims,
    private_key: str | Ed25519PrivateKey,
    kid: str,
    *,
    issued_at: datetime | None = None,
    ttl_seconds: int = TOKEN_TTL_SECONDS,
) -> str:
    """Sign claims with ``iat = now`` and ``exp = iat + ttl_seconds``."""
    now = issued_at or datetime.now(UTC)
    iat = int(now.timestamp())
    payload = claims.model_dump(exclude_none=True)
    payload["iat"] = iat
    payload["exp"] = iat + ttl_seconds
    return jwt.encode(
        payload,
        private_key,
        algorithm=ALGORITHM,
        headers={"kid": kid, "typ": "JWT"},
    )


def _decode(
    token: str, public_key: str | Ed25519PublicKey, issuer: str, audience: str
) -> dict:
    opts: Options = {
        "verify_exp": False,
        "verify_iat": False,
        "verify_nbf": False,
        "require": REQUIRED_CLAIMS,
    }
    try:
        return jwt.decode(
            token,
            public_key,
            algorithms=[ALGORITHM],
            issuer=issuer,
            audience=audience,
            options=opts,
        )
    except (jwt.InvalidSignatureError, jwt.InvalidAlgorithmError) as exc:
        raise InvalidSignature(str(exc)) from exc
    except (jwt.InvalidAudienceError, jwt.InvalidIssuerError) as exc:
        raise ClaimMismatch(str(exc)) from exc
    except jwt.InvalidTokenError as exc:
        raise MalformedPayload(str(exc)) from exc


def verify_token(
    token: str,
    public_key: str | Ed25519PublicKey,
    *,
    issuer: str,
    audience: str,
    now: datetime | None = None,
) -> DecodedToken:
    """Verify signature and claims, returning the decoded token.

    Raises InvalidSignature, ClaimMismatch, MalformedPayload or TokenExpired.
    """
    raw = _decode(token, public_key, issuer, audience)
    try:
        decoded = DecodedToken.model_validate(raw)
    except ValidationError as exc:
        raise MalformedPayload(
            f"Token payload invalid: {exc.error_count()} error(s)"
        ) from exc

    current = int((now or datetime.now(UTC)).timestamp())
    if current > decoded.exp:
        raise TokenExpired("Token has expired")
    return decoded
