"""Repository for vault (tenant) registration."""

import uuid_utils
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fedauth.core.errors import InvalidCallbackUrl, ReservedVaultId, VaultNameTaken
from fedauth.db.models_vaults import VaultEntity

# Token audiences the registry uses for itself; "sso" scopes the SSO cookie
RESERVED_VAULT_IDS = frozenset({"sso"})


def _require_https(callback_url: str) -> None:
    if not callback_url.startswith("https://"):
        raise InvalidCallbackUrl(f"callback_url must use HTTPS: {callback_url!r}")


async def register_vault(
    session: AsyncSession,
    *,
    name: str,
    callback_url: str,
    vault_id: str | None = None,
) -> VaultEntity:
    """Register a new vault with an https callback and a unique name."""
    _require_https(callback_url)
    if vault_id is not None and vault_id.lower() in RESERVED_VAULT_IDS:
        raise ReservedVaultId(f"Vault id {vault_id!r} is reserved")
    existing = await session.execute(
        select(VaultEntity.id).where(VaultEntity.name == name)
    )
    if existing.scalar_one_or_none() is not None:
        raise VaultNameTaken(f"Vault name already exists: {name!r}")

    entity = VaultEntity(
        id=vault_id or str(uuid_utils.uuid7()),
        name=name,
        callback_url=callback_url,
        active=True,
    )
    session.add(entity)
    await session.flush()
    return entity


async def get_vault(session: AsyncSession, vault_id: str) -> VaultEntity | None:
    """Look up a vault by id, active or not."""
    return await session.get(VaultEntity, vault_id)


async def get_active_vault(
    session: AsyncSession, vault_id: str
) -> VaultEntity | None:
    """Look up an active vault by id."""
    stmt = select(VaultEntity).where(
        VaultEntity.id == vault_id,
        VaultEntity.active.is_(True),
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


def validate_callback(vault: VaultEntity, callback_url: str) -> bool:
    """Exact match against the registered callback; no query-string leeway."""
    return vault.callback_url == callback_url


async def update_callback(
    session: AsyncSession, vault: VaultEntity, callback_url: str
) -> VaultEntity:
    """Point a vault at a new https callback."""
    _require_https(callback_url)
    vault.callback_url = callback_url
    await session.flush()
    return vault


async def deactivate_vault(session: AsyncSession, vault_id: str) -> bool:
    """Mark a vault inactive. Returns False if it does not exist."""
    vault = await get_vault(session, vault_id)
    if vault is None:
        return False
    vault.active = False
    await session.flush()
    return True


async def list_vaults(session: AsyncSession) -> list[VaultEntity]:
    """Every registered vault, oldest registration first."""
    stmt = select(VaultEntity).order_by(VaultEntity.registered_at, VaultEntity.id)
    result = await session.execute(stmt)
    return list(result.scalars().all())
