"""FastAPI application factories for the registry and for a vault."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

from fedauth.api.router_admin import router as admin_router
from fedauth.core.errors import FedAuthError
from fedauth.core.logging import configure_logging
from fedauth.core.settings import RegistrySettings
from fedauth.db.engine import dispose_engine
from fedauth.registry.routes_auth import router as registry_auth_router
from fedauth.registry.routes_jwks import router as jwks_router
from fedauth.vault.deps import close_jwks_cache
from fedauth.vault.routes_auth import router as vault_auth_router
from fedauth.vault.routes_invites import router as invites_router

logger = structlog.get_logger(__name__)

SERVER_ERROR_STATUS = 500


async def _fedauth_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render auth-core errors without leaking library detail."""
    if not isinstance(exc, FedAuthError):
        raise exc
    log = logger.error if exc.status_code >= SERVER_ERROR_STATUS else logger.info
    log(
        "request_failed",
        path=request.url.path,
        error_code=exc.error_code,
        status_code=exc.status_code,
        detail=exc.message,
    )
    return JSONResponse(
        {"error": exc.error_code, "error_description": exc.user_message},
        status_code=exc.status_code,
    )


def create_registry_app() -> FastAPI:
    """Build the central identity registry."""
    settings = RegistrySettings()
    configure_logging()

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        await dispose_engine()

    app = FastAPI(title="fedauth registry", version="0.1.0", lifespan=lifespan)

    origins = settings.get_cors_origin_list()
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["Authorization", "Content-Type"],
        )

    app.add_exception_handler(FedAuthError, _fedauth_error_handler)
    app.include_router(jwks_router)
    app.include_router(registry_auth_router)
    app.include_router(admin_router)
    return app


def create_vault_app() -> FastAPI:
    """Build a tenant vault that trusts the registry's published keys."""
    configure_logging()

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        await close_jwks_cache()
        await dispose_engine()

    app = FastAPI(title="fedauth vault", version="0.1.0", lifespan=lifespan)
    app.add_exception_handler(FedAuthError, _fedauth_error_handler)
    app.include_router(vault_auth_router)
    app.include_router(invites_router)
    return app
