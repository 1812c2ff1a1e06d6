"""FastAPI dependencies shared by the registry routers."""

from collections.abc import AsyncIterator
from typing import Annotated

import httpx
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fedauth.core.settings import RegistrySettings
from fedauth.db.engine import get_session
from fedauth.registry.identity_bridge import IdentityBridge
from fedauth.registry.sso import SSOSession


def load_registry_settings() -> RegistrySettings:
    return RegistrySettings()


Settings = Annotated[RegistrySettings, Depends(load_registry_settings)]
DbSession = Annotated[AsyncSession, Depends(get_session)]


async def get_http_client(settings: Settings) -> AsyncIterator[httpx.AsyncClient]:
    """Outbound client for provider calls, one per request."""
    async with httpx.AsyncClient(timeout=settings.http_timeout) as client:
        yield client


def get_identity_bridge(
    settings: Settings,
    http_client: Annotated[httpx.AsyncClient, Depends(get_http_client)],
) -> IdentityBridge:
    return IdentityBridge(settings, http_client)


def get_sso_session(settings: Settings) -> SSOSession:
    return SSOSession(settings)


Bridge = Annotated[IdentityBridge, Depends(get_identity_bridge)]
Sso = Annotated[SSOSession, Depends(get_sso_session)]
