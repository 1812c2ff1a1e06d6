"""FastAPI dependencies for vault routers."""

from collections.abc import Awaitable, Callable
from typing import Annotated

import httpx
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from fedauth.core.settings import VaultSettings
from fedauth.db.engine import get_session
from fedauth.db.repo_members import get_member_by_id, get_role_rows
from fedauth.vault.jwks_cache import JWKSCache
from fedauth.vault.permissions import (
    MemberAuthContext,
    Role,
    auth_context_from,
    require_role,
)
from fedauth.vault.session import decode_session


def load_vault_settings() -> VaultSettings:
    return VaultSettings()


Settings = Annotated[VaultSettings, Depends(load_vault_settings)]
DbSession = Annotated[AsyncSession, Depends(get_session)]


class _CacheHolder:
    """Process-wide JWKS cache and the client it fetches with."""

    cache: JWKSCache | None = None
    client: httpx.AsyncClient | None = None


_holder = _CacheHolder()


def get_jwks_cache(settings: Settings) -> JWKSCache:
    """Lazily create the cache; it outlives individual requests."""
    if _holder.cache is None:
        _holder.client = httpx.AsyncClient(timeout=settings.http_timeout)
        _holder.cache = JWKSCache(_holder.client, ttl_seconds=settings.jwks_cache_ttl)
    return _holder.cache


async def close_jwks_cache() -> None:
    """Release the cache's HTTP client; called on app shutdown."""
    if _holder.client is not None:
        await _holder.client.aclose()
    _holder.cache = None
    _holder.client = None


Jwks = Annotated[JWKSCache, Depends(get_jwks_cache)]


async def get_current_member(
    request: Request, db: DbSession, settings: Settings
) -> MemberAuthContext | None:
    """Auth context for the session cookie's member, or None."""
    member_id = decode_session(
        request.cookies.get(settings.session_cookie_name), settings
    )
    if member_id is None:
        return None
    member = await get_member_by_id(db, member_id)
    if member is None:
        return None
    return auth_context_from(member, await get_role_rows(db, member.id))


CurrentMember = Annotated[MemberAuthContext | None, Depends(get_current_member)]


def require_roles(
    *roles: Role,
) -> Callable[[MemberAuthContext | None], Awaitable[MemberAuthContext]]:
    """Dependency factory gating a route on one of ``roles``."""

    async def _dependency(member: CurrentMember) -> MemberAuthContext:
        return require_role(member, roles)

    return _dependency
