"""Type definitions for signing keys, JWKS and signed tokens."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, StrictInt, StrictStr


class SigningKeyData(BaseModel):
    """A freshly generated Ed25519 keypair in PEM form."""

    kid: str
    private_key_pem: str
    public_key_pem: str


class JWKEntry(BaseModel):
    """Single OKP entry in a JWKS response."""

    kty: Literal["OKP"] = "OKP"
    crv: Literal["Ed25519"] = "Ed25519"
    use: str = "sig"
    alg: str = "EdDSA"
    kid: str
    x: str


class JWKSResponse(BaseModel):
    """JSON Web Key Set response."""

    keys: list[JWKEntry]


class TokenClaims(BaseModel):
    """Claims bundle for token signing; ``iat``/``exp`` are added by the codec."""

    iss: str
    sub: str
    aud: str
    email: str
    nonce: str
    name: str | None = None
    picture: str | None = None


class DecodedToken(BaseModel):
    """Verified token claims.

    Strict types: a numeric ``email`` or a string ``exp`` is a malformed
    payload, not something to coerce.
    """

    model_config = ConfigDict(extra="ignore")

    iss: StrictStr
    sub: StrictStr
    aud: StrictStr
    iat: StrictInt
    exp: StrictInt
    nonce: StrictStr
    email: StrictStr
    name: StrictStr | None = None
    picture: StrictStr | None = None
