"""Invite lifecycle: create, accept, renew and revoke onboarding tokens.

An invite is an opaque bearer capability (32 random bytes, hex) scoped to one
roster member. Stored status only ever moves ``pending -> accepted``; whether a
pending invite is expired is derived from ``expires_at`` at read time.
"""

import secrets
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from typing import Literal

import structlog
import uuid_utils
from pydantic import BaseModel
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fedauth.core.errors import (
    AlreadyAccepted,
    DuplicatePendingInvite,
    InvalidInviteToken,
    InviteExpired,
    MemberAlreadyRegistered,
    MemberNotFound,
)
from fedauth.core.settings import INVITE_TTL_HOURS_DEFAULT
from fedauth.db.models_members import InviteEntity, MemberRoleEntity
from fedauth.db.repo_members import (
    MemberCreateData,
    get_member_by_email,
    get_member_by_id,
    get_role_rows,
    new_member,
    new_role_rows,
)
from fedauth.vault.permissions import Role

logger = structlog.get_logger(__name__)

STATUS_PENDING = "pending"
STATUS_ACCEPTED = "accepted"
INVITE_TOKEN_BYTES = 32

InviteView = Literal["pending", "accepted", "expired"]


class AcceptResult(BaseModel):
    """Outcome of a successful invite redemption."""

    member_id: str
    invite_id: str
    roles: list[str]


def generate_invite_token() -> str:
    """Unguessable opaque token, unrelated to the signed-JWT family."""
    return secrets.token_hex(INVITE_TOKEN_BYTES)


def _utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything here is stored as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def is_expired(invite: InviteEntity, now: datetime | None = None) -> bool:
    current = now or datetime.now(UTC)
    return current > _utc(invite.expires_at)


def view_status(invite: InviteEntity, now: datetime | None = None) -> InviteView:
    """Status as shown to admins, with expiry folded in."""
    if invite.status == STATUS_ACCEPTED:
        return "accepted"
    return "expired" if is_expired(invite, now) else "pending"


async def get_invite_by_token(
    session: AsyncSession, token: str
) -> InviteEntity | None:
    stmt = select(InviteEntity).where(InviteEntity.token == token)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_pending_invite_for_member(
    session: AsyncSession, roster_member_id: str
) -> InviteEntity | None:
    stmt = select(InviteEntity).where(
        InviteEntity.roster_member_id == roster_member_id,
        InviteEntity.status == STATUS_PENDING,
    )
    result = await session.execute(stmt)
    return result.scalars().first()


async def list_pending_invites(session: AsyncSession) -> list[InviteEntity]:
    stmt = (
        select(InviteEntity)
        .where(InviteEntity.status == STATUS_PENDING)
        .order_by(InviteEntity.created_at.desc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def create_invite(
    session: AsyncSession,
    *,
    roster_member_id: str,
    roles: Iterable[Role | str],
    invited_by: str,
    voice_part: str | None = None,
    org_id: str | None = None,
    ttl_hours: int = INVITE_TTL_HOURS_DEFAULT,
    now: datetime | None = None,
) -> InviteEntity:
    """Issue a pending invite for a roster member.

    Raises MemberNotFound for an unknown roster member,
    MemberAlreadyRegistered when the member already has a verified identity
    and DuplicatePendingInvite when one is already pending for them.
    """
    role_values = [Role(r).value for r in roles]
    roster = await get_member_by_id(session, roster_member_id)
    if roster is None:
        raise MemberNotFound(f"Roster member {roster_member_id} not found")
    if roster.email_id is not None:
        raise MemberAlreadyRegistered(f"Member {roster_member_id} is already registered")
    if await get_pending_invite_for_member(session, roster_member_id) is not None:
        raise DuplicatePendingInvite(
            f"Roster member {roster_member_id} already has a pending invite"
        )

    created = now or datetime.now(UTC)
    invite = InviteEntity(
        id=str(uuid_utils.uuid7()),
        roster_member_id=roster_member_id,
        token=generate_invite_token(),
        invited_by=invited_by,
        roles=role_values,
        voice_part=voice_part,
        org_id=org_id,
        status=STATUS_PENDING,
        created_at=created,
        expires_at=created + timedelta(hours=ttl_hours),
    )
    session.add(invite)
    await session.flush()
    logger.info(
        "invite_created",
        invite_id=invite.id,
        roster_member_id=roster_member_id,
        invited_by=invited_by,
        roles=role_values,
    )
    return invite


async def peek_invite(
    session: AsyncSession, token: str, now: datetime | None = None
) -> InviteEntity:
    """Return a redeemable invite without touching it.

    Raises InvalidInviteToken, AlreadyAccepted, InviteExpired, or
    MemberAlreadyRegistered once the roster member has a verified identity.
    """
    invite = await get_invite_by_token(session, token)
    if invite is None:
        raise InvalidInviteToken("No invite for token")
    if invite.status == STATUS_ACCEPTED:
        raise AlreadyAccepted(f"Invite {invite.id} already accepted")
    if is_expired(invite, now):
        raise InviteExpired(f"Invite {invite.id} expired at {invite.expires_at}")
    roster = await get_member_by_id(session, invite.roster_member_id)
    if roster is not None and roster.email_id is not None:
        raise MemberAlreadyRegistered(
            f"Roster member {roster.id} of invite {invite.id} is already registered"
        )
    return invite


async def accept_invite(
    session: AsyncSession,
    token: str,
    verified_email: str,
    verified_name: str | None = None,
    now: datetime | None = None,
) -> AcceptResult:
    """Bind a verified identity to the invited roster member.

    The status flip is a conditional single-row update; member and role
    changes ride in the same flush, so the session's transaction either
    applies all three or none.
    """
    current = now or datetime.now(UTC)
    invite = await peek_invite(session, token, current)
    email = verified_email.lower()

    owner = await get_member_by_email(session, email)
    roster = await get_member_by_id(session, invite.roster_member_id)
    target = owner or roster
    existing: list[MemberRoleEntity] = (
        await get_role_rows(session, target.id) if target is not None else []
    )

    flipped = await session.execute(
        update(InviteEntity)
        .where(
            InviteEntity.id == invite.id,
            InviteEntity.status == STATUS_PENDING,
        )
        .values(
            status=STATUS_ACCEPTED,
            accepted_at=current,
            accepted_by_email=email,
        )
    )
    if flipped.rowcount != 1:
        raise AlreadyAccepted(f"Invite {invite.id} accepted concurrently")

    if target is None:
        target = new_member(
            MemberCreateData(
                name=verified_name or "",
                email_id=email,
                invited_by=invite.invited_by,
            )
        )
        session.add(target)
    elif target.email_id is None:
        target.email_id = email
        if verified_name and not target.name:
            target.name = verified_name
    if invite.voice_part:
        target.voice_part = invite.voice_part

    session.add_all(
        new_role_rows(
            target.id,
            invite.roles,
            existing,
            org_id=invite.org_id,
            granted_by=invite.invited_by,
        )
    )
    await session.flush()

    logger.info(
        "invite_accepted",
        invite_id=invite.id,
        member_id=target.id,
        merged_into_existing=owner is not None and owner.id != invite.roster_member_id,
    )
    return AcceptResult(member_id=target.id, invite_id=invite.id, roles=invite.roles)


async def renew_invite(
    session: AsyncSession,
    invite_id: str,
    *,
    ttl_hours: int = INVITE_TTL_HOURS_DEFAULT,
    now: datetime | None = None,
) -> InviteEntity | None:
    """Push ``expires_at`` to ``now + ttl``. Pending invites only."""
    invite = await session.get(InviteEntity, invite_id)
    if invite is None or invite.status != STATUS_PENDING:
        return None
    invite.expires_at = (now or datetime.now(UTC)) + timedelta(hours=ttl_hours)
    await session.flush()
    logger.info("invite_renewed", invite_id=invite_id)
    return invite


async def revoke_invite(session: AsyncSession, invite_id: str) -> bool:
    """Hard-delete a pending invite. Accepted invites are kept as history."""
    result = await session.execute(
        delete(InviteEntity).where(
            InviteEntity.id == invite_id,
            InviteEntity.status == STATUS_PENDING,
        )
    )
    await session.flush()
    if result.rowcount:
        logger.info("invite_revoked", invite_id=invite_id)
        return True
    return False
