"""Vault-side login, registry callback, invite redemption and logout."""

from typing import Annotated
from urllib.parse import urlencode

import structlog
from fastapi import APIRouter, Query, Request
from fastapi.responses import RedirectResponse
from starlette.responses import JSONResponse

from fedauth.core.errors import InviteError
from fedauth.db.repo_members import (
    MemberCreateData,
    create_member,
    get_member_by_email,
)
from fedauth.vault.deps import DbSession, Jwks, Settings
from fedauth.vault.invites import accept_invite, peek_invite
from fedauth.vault.session import (
    INVITE_COOKIE_NAME,
    clear_invite_cookie,
    clear_session_cookie,
    set_invite_cookie,
    set_session_cookie,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

HTTP_BAD_REQUEST = 400
LOGIN_PATH = "/api/auth/login"
INVITE_ERROR_PATH = "/invite/error"


def _invite_error_redirect(error: InviteError) -> RedirectResponse:
    url = f"{INVITE_ERROR_PATH}?{urlencode({'message': error.user_message})}"
    return RedirectResponse(url=url, status_code=302)


@router.get("/login")
async def login(settings: Settings) -> RedirectResponse:
    """GET /api/auth/login -- hand the browser to the registry."""
    params = urlencode({"vault_id": settings.vault_id, "callback": settings.callback_url})
    return RedirectResponse(
        url=f"{settings.registry_url.rstrip('/')}/auth?{params}", status_code=302
    )


@router.get("/callback", response_model=None)
async def auth_callback(
    request: Request,
    db: DbSession,
    settings: Settings,
    jwks: Jwks,
    token: Annotated[str | None, Query()] = None,
) -> RedirectResponse | JSONResponse:
    """GET /api/auth/callback -- verify the registry token and start a session."""
    if not token:
        return JSONResponse(
            {"error": "invalid_request", "error_description": "Missing token"},
            status_code=HTTP_BAD_REQUEST,
        )
    decoded = await jwks.verify(token, settings.registry_url, settings.vault_id)

    invite_token = request.cookies.get(INVITE_COOKIE_NAME)
    if invite_token:
        try:
            accepted = await accept_invite(db, invite_token, decoded.email, decoded.name)
        except InviteError as exc:
            logger.info("invite_redemption_failed", reason=exc.error_code)
            response = _invite_error_redirect(exc)
            clear_invite_cookie(response)
            return response
        member_id = accepted.member_id
    else:
        member = await get_member_by_email(db, decoded.email)
        if member is None:
            member = await create_member(
                db, MemberCreateData(name=decoded.name or "", email_id=decoded.email)
            )
            logger.info("member_created_on_login", member_id=member.id)
        elif decoded.name and member.name != decoded.name:
            member.name = decoded.name
            await db.flush()
        member_id = member.id

    logger.info("member_signed_in", member_id=member_id, nonce=decoded.nonce)
    response = RedirectResponse(url="/", status_code=302)
    set_session_cookie(response, member_id, settings)
    if invite_token:
        clear_invite_cookie(response)
    return response


@router.get("/accept")
async def accept(
    db: DbSession,
    token: Annotated[str | None, Query()] = None,
) -> RedirectResponse:
    """GET /api/auth/accept -- check an invite link, then send the user to log in."""
    if not token:
        return RedirectResponse(
            url=f"{INVITE_ERROR_PATH}?{urlencode({'message': 'Missing invite token'})}",
            status_code=302,
        )
    try:
        invite = await peek_invite(db, token)
    except InviteError as exc:
        return _invite_error_redirect(exc)

    logger.info("invite_link_opened", invite_id=invite.id)
    response = RedirectResponse(url=LOGIN_PATH, status_code=302)
    set_invite_cookie(response, token)
    return response


@router.get("/logout")
async def logout(settings: Settings) -> RedirectResponse:
    """GET /api/auth/logout -- drop the session cookie."""
    response = RedirectResponse(url="/", status_code=302)
    clear_session_cookie(response, settings)
    return response
