"""FastAPI dependency for internal (operator) API authentication."""

import secrets
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from fedauth.core.settings import RegistrySettings
from fedauth.registry.deps import load_registry_settings

_security = HTTPBearer()


async def require_internal_token(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(_security)],
    settings: Annotated[RegistrySettings, Depends(load_registry_settings)],
) -> str:
    """Verify the REGISTRY_INTERNAL_TOKEN Bearer token."""
    expected = settings.internal_token
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    if not secrets.compare_digest(credentials.credentials, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
        )
    return credentials.credentials
