"""Ed25519 signing key generation, encryption, and JWK conversion."""

import base64

import uuid_utils
from cryptography.fernet import Fernet
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from fedauth.crypto.types import JWKEntry, SigningKeyData

ED25519_PUBLIC_KEY_BYTES = 32


def generate_ed25519_keypair() -> SigningKeyData:
    """Generate a new Ed25519 keypair for token signing."""
    private_key = Ed25519PrivateKey.generate()
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = (
        private_key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode()
    )
    kid = str(uuid_utils.uuid7())
    return SigningKeyData(
        kid=kid, private_key_pem=private_pem, public_key_pem=public_pem
    )


def encrypt_private_key(private_pem: str, fernet_key: str) -> str:
    """Encrypt a PEM private key with Fernet for database storage."""
    cipher = Fernet(fernet_key.encode())
    return cipher.encrypt(private_pem.encode()).decode()


def decrypt_private_key(encrypted: str, fernet_key: str) -> str:
    """Decrypt a Fernet-encrypted PEM private key."""
    cipher = Fernet(fernet_key.encode())
    return cipher.decrypt(encrypted.encode()).decode()


def _base64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def _base64url_decode(value: str) -> bytes:
    padded = value + "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(padded.encode())


def load_public_key(public_key_pem: str) -> Ed25519PublicKey:
    """Load an SPKI PEM public key, rejecting anything but Ed25519."""
    loaded = serialization.load_pem_public_key(public_key_pem.encode())
    if not isinstance(loaded, Ed25519PublicKey):
        raise ValueError("Public key is not an Ed25519 key")
    return loaded


def pem_to_jwk_entry(public_key_pem: str, kid: str) -> JWKEntry:
    """Convert a PEM public key to its OKP JWK form."""
    raw = load_public_key(public_key_pem).public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return JWKEntry(kid=kid, x=_base64url(raw))


def jwk_entry_to_public_key(entry: JWKEntry) -> Ed25519PublicKey:
    """Rebuild an Ed25519 public key from a JWK ``x`` coordinate."""
    raw = _base64url_decode(entry.x)
    if len(raw) != ED25519_PUBLIC_KEY_BYTES:
        raise ValueError("Ed25519 public key must be 32 bytes")
    return Ed25519PublicKey.from_public_bytes(raw)
