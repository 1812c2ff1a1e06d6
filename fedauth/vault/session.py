"""Signed member session cookie for a vault.

The cookie holds an HS256 token over the member id, keyed by the vault's own
``session_secret``. It is host-only (no Domain attribute) so one vault never
sees another vault's session.
"""

from datetime import UTC, datetime, timedelta

import jwt
import structlog
from starlette.responses import Response

from fedauth.core.settings import VaultSettings

logger = structlog.get_logger(__name__)

SESSION_ALGORITHM = "HS256"
INVITE_COOKIE_NAME = "invite_token"
INVITE_COOKIE_MAX_AGE = 3600


def _secret(settings: VaultSettings) -> str:
    if not settings.session_secret:
        raise RuntimeError("VAULT_SESSION_SECRET is not configured")
    return settings.session_secret


def encode_session(
    member_id: str, settings: VaultSettings, *, now: datetime | None = None
) -> str:
    issued = now or datetime.now(UTC)
    payload = {
        "sub": member_id,
        "vid": settings.vault_id,
        "iat": issued,
        "exp": issued + timedelta(seconds=settings.session_max_age),
    }
    return jwt.encode(payload, _secret(settings), algorithm=SESSION_ALGORITHM)


def decode_session(value: str | None, settings: VaultSettings) -> str | None:
    """Member id from a valid session cookie, else None."""
    if not value:
        return None
    try:
        payload = jwt.decode(
            value,
            _secret(settings),
            algorithms=[SESSION_ALGORITHM],
            options={"require": ["sub", "vid", "exp"]},
        )
    except jwt.InvalidTokenError as exc:
        logger.debug("session_cookie_rejected", error=str(exc))
        return None
    if payload["vid"] != settings.vault_id or not isinstance(payload["sub"], str):
        logger.debug("session_cookie_rejected", error="wrong vault")
        return None
    return payload["sub"]


def set_session_cookie(
    response: Response, member_id: str, settings: VaultSettings
) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=encode_session(member_id, settings),
        max_age=settings.session_max_age,
        path="/",
        secure=True,
        httponly=True,
        samesite="lax",
    )


def clear_session_cookie(response: Response, settings: VaultSettings) -> None:
    response.delete_cookie(
        key=settings.session_cookie_name,
        path="/",
        secure=True,
        httponly=True,
        samesite="lax",
    )


def set_invite_cookie(response: Response, token: str) -> None:
    """Park an invite token across the registry round-trip."""
    response.set_cookie(
        key=INVITE_COOKIE_NAME,
        value=token,
        max_age=INVITE_COOKIE_MAX_AGE,
        path="/",
        secure=True,
        httponly=True,
        samesite="lax",
    )


def clear_invite_cookie(response: Response) -> None:
    response.delete_cookie(
        key=INVITE_COOKIE_NAME,
        path="/",
        secure=True,
        httponly=True,
        samesite="lax",
    )
