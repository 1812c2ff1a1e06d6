"""Login initiation, provider callback and logout for the registry."""

from typing import Annotated
from urllib.parse import urlencode

import structlog
from fastapi import APIRouter, Query, Request
from fastapi.responses import RedirectResponse
from starlette.responses import JSONResponse

from fedauth.db.repo_keys import get_published_keys
from fedauth.db.repo_vaults import get_active_vault, validate_callback
from fedauth.registry.deps import Bridge, DbSession, Settings, Sso
from fedauth.registry.signing import load_active_signing_key
from fedauth.registry.sso import is_safe_logout_callback

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

HTTP_BAD_REQUEST = 400
HTTP_SERVER_ERROR = 500


def _bad_request(error: str, description: str) -> JSONResponse:
    return JSONResponse(
        {"error": error, "error_description": description},
        status_code=HTTP_BAD_REQUEST,
    )


def _no_signing_key() -> JSONResponse:
    logger.error("no_active_signing_key")
    return JSONResponse(
        {"error": "server_error", "error_description": "No signing key"},
        status_code=HTTP_SERVER_ERROR,
    )


def with_token(callback_url: str, token: str) -> str:
    """Append ``token`` to the tenant callback, keeping any existing query."""
    separator = "&" if "?" in callback_url else "?"
    return f"{callback_url}{separator}{urlencode({'token': token})}"


@router.get("", response_model=None)
async def begin_auth(
    request: Request,
    db: DbSession,
    settings: Settings,
    bridge: Bridge,
    sso: Sso,
    vault_id: Annotated[str | None, Query()] = None,
    callback: Annotated[str | None, Query()] = None,
) -> RedirectResponse | JSONResponse:
    """GET /auth -- start a login for a registered vault."""
    if not vault_id:
        return _bad_request("invalid_request", "Missing vault_id parameter")
    if not callback:
        return _bad_request("invalid_request", "Missing callback parameter")

    vault = await get_active_vault(db, vault_id)
    if vault is None:
        return _bad_request("unknown_vault", "Vault not registered")
    if not validate_callback(vault, callback):
        return _bad_request("invalid_callback", "Invalid callback URL")

    cookie = request.cookies.get(settings.sso_cookie_name)
    identity = sso.read_session(cookie, await get_published_keys(db))
    if identity is not None:
        key = await load_active_signing_key(db, settings)
        if key is None:
            return _no_signing_key()
        token = sso.mint_tenant_token(identity, vault.id, key)
        logger.info("sso_fast_path", vault_id=vault.id)
        return RedirectResponse(url=with_token(callback, token), status_code=302)

    return RedirectResponse(
        url=bridge.build_authorization_url(vault.id, callback),
        status_code=302,
    )


@router.get("/callback", response_model=None)
async def provider_callback(
    db: DbSession,
    settings: Settings,
    bridge: Bridge,
    sso: Sso,
    code: Annotated[str | None, Query()] = None,
    state: Annotated[str | None, Query()] = None,
) -> RedirectResponse | JSONResponse:
    """GET /auth/callback -- finish the provider round-trip and mint tokens."""
    auth_state, identity = await bridge.complete(code, state)

    # Registration may have changed while the user was at the provider
    vault = await get_active_vault(db, auth_state.vault_id)
    if vault is None:
        return _bad_request("unknown_vault", "Vault not registered")
    if not validate_callback(vault, auth_state.callback_url):
        return _bad_request("invalid_callback", "Invalid callback URL")

    key = await load_active_signing_key(db, settings)
    if key is None:
        return _no_signing_key()

    tenant_token, sso_token = sso.mint_tokens(identity, vault.id, key)
    response = RedirectResponse(
        url=with_token(auth_state.callback_url, tenant_token), status_code=302
    )
    sso.set_cookie(response, sso_token)
    return response


@router.api_route("/logout", methods=["GET", "POST"], response_model=None)
async def logout(
    settings: Settings,
    sso: Sso,
    callback: Annotated[str | None, Query()] = None,
) -> RedirectResponse:
    """GET|POST /auth/logout -- drop the SSO cookie and bounce back."""
    target = settings.default_redirect_url
    if callback and is_safe_logout_callback(callback, settings.parent_domain):
        target = callback
    elif callback:
        logger.warning("logout_callback_rejected", callback=callback)
    response = RedirectResponse(url=target, status_code=302)
    sso.clear_cookie(response)
    return response
