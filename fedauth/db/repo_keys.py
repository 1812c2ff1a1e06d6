"""Database operations for the signing key store."""

from datetime import UTC, datetime

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fedauth.crypto.keys import encrypt_private_key, generate_ed25519_keypair
from fedauth.db.models_keys import SigningKeyEntity

logger = structlog.get_logger(__name__)


async def get_active_key(
    session: AsyncSession,
) -> SigningKeyEntity | None:
    """Return the most recently created non-revoked key."""
    stmt = (
        select(SigningKeyEntity)
        .where(SigningKeyEntity.revoked_at.is_(None))
        .order_by(SigningKeyEntity.created_at.desc(), SigningKeyEntity.kid.desc())
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_published_keys(
    session: AsyncSession,
) -> list[SigningKeyEntity]:
    """Return every non-revoked key, newest first, for JWKS publication."""
    stmt = (
        select(SigningKeyEntity)
        .where(SigningKeyEntity.revoked_at.is_(None))
        .order_by(SigningKeyEntity.created_at.desc(), SigningKeyEntity.kid.desc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_key(session: AsyncSession, kid: str) -> SigningKeyEntity | None:
    """Look up a key by id, revoked or not."""
    return await session.get(SigningKeyEntity, kid)


async def store_key(
    session: AsyncSession, entity: SigningKeyEntity
) -> SigningKeyEntity:
    """Persist a new signing key."""
    session.add(entity)
    await session.flush()
    return entity


async def create_key(session: AsyncSession, fernet_key: str) -> SigningKeyEntity:
    """Generate an Ed25519 keypair and store it as the new active key."""
    keypair = generate_ed25519_keypair()
    entity = SigningKeyEntity(
        kid=keypair.kid,
        algorithm="EdDSA",
        private_key_pem=encrypt_private_key(keypair.private_key_pem, fernet_key),
        public_key_pem=keypair.public_key_pem,
        created_at=datetime.now(UTC),
    )
    stored = await store_key(session, entity)
    logger.info("signing_key_created", kid=stored.kid)
    return stored


async def revoke_key(session: AsyncSession, kid: str) -> bool:
    """Set ``revoked_at`` on a key. Idempotent; False if the key is unknown."""
    stmt = (
        update(SigningKeyEntity)
        .where(
            SigningKeyEntity.kid == kid,
            SigningKeyEntity.revoked_at.is_(None),
        )
        .values(revoked_at=datetime.now(UTC))
    )
    result = await session.execute(stmt)
    await session.flush()
    if result.rowcount:
        logger.info("signing_key_revoked", kid=kid)
        return True
    return await get_key(session, kid) is not None
