"""Operator API: vault registration and signing key provisioning."""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from fedauth.api.deps import require_internal_token
from fedauth.api.schemas import (
    RevokeKeyResponse,
    SigningKeyResponse,
    VaultCallbackPayload,
    VaultListResponse,
    VaultPayload,
    VaultResponse,
)
from fedauth.crypto.keys import pem_to_jwk_entry
from fedauth.db.repo_keys import create_key, revoke_key
from fedauth.db.repo_vaults import (
    deactivate_vault,
    get_vault,
    list_vaults,
    register_vault,
    update_callback,
)
from fedauth.registry.deps import DbSession, Settings

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["admin"])

InternalToken = Annotated[str, Depends(require_internal_token)]


def _vault_not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Vault not found")


@router.post("/vaults", status_code=status.HTTP_201_CREATED)
async def create_vault(
    payload: VaultPayload,
    db: DbSession,
    _token: InternalToken,
) -> VaultResponse:
    """POST /api/vaults -- register a vault."""
    vault = await register_vault(
        db, name=payload.name, callback_url=payload.callback_url
    )
    logger.info("vault_registered", vault_id=vault.id, name=vault.name)
    return VaultResponse.model_validate(vault)


@router.get("/vaults")
async def get_vaults(db: DbSession, _token: InternalToken) -> VaultListResponse:
    """GET /api/vaults -- list registrations."""
    vaults = await list_vaults(db)
    return VaultListResponse(vaults=[VaultResponse.model_validate(v) for v in vaults])


@router.get("/vaults/{vault_id}")
async def read_vault(
    vault_id: str, db: DbSession, _token: InternalToken
) -> VaultResponse:
    """GET /api/vaults/{id} -- one registration."""
    vault = await get_vault(db, vault_id)
    if vault is None:
        raise _vault_not_found()
    return VaultResponse.model_validate(vault)


@router.put("/vaults/{vault_id}")
async def change_vault_callback(
    vault_id: str,
    payload: VaultCallbackPayload,
    db: DbSession,
    _token: InternalToken,
) -> VaultResponse:
    """PUT /api/vaults/{id} -- replace the registered callback."""
    vault = await get_vault(db, vault_id)
    if vault is None:
        raise _vault_not_found()
    vault = await update_callback(db, vault, payload.callback_url)
    logger.info("vault_callback_updated", vault_id=vault.id)
    return VaultResponse.model_validate(vault)


@router.delete("/vaults/{vault_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_vault(vault_id: str, db: DbSession, _token: InternalToken) -> None:
    """DELETE /api/vaults/{id} -- deactivate; the row is kept."""
    if not await deactivate_vault(db, vault_id):
        raise _vault_not_found()
    logger.info("vault_deactivated", vault_id=vault_id)


@router.post("/keys", status_code=status.HTTP_201_CREATED)
async def provision_key(
    db: DbSession,
    settings: Settings,
    _token: InternalToken,
) -> SigningKeyResponse:
    """POST /api/keys -- generate a key; it becomes the active signer."""
    if not settings.signing_key_encryption_key:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Signing key encryption is not configured",
        )
    key = await create_key(db, settings.signing_key_encryption_key)
    return SigningKeyResponse(
        kid=key.kid,
        created_at=key.created_at,
        jwk=pem_to_jwk_entry(key.public_key_pem, key.kid),
    )


@router.delete("/keys/{kid}")
async def retire_key(kid: str, db: DbSession, _token: InternalToken) -> RevokeKeyResponse:
    """DELETE /api/keys/{kid} -- revoke; verifiers drop it on their next refresh."""
    if not await revoke_key(db, kid):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Key not found")
    return RevokeKeyResponse(kid=kid, revoked=True)
