"""Admin-only roster and invite management."""

from typing import Annotated
from urllib.parse import urlencode

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from fedauth.api.schemas import (
    CreatedInviteResponse,
    InviteListResponse,
    InvitePayload,
    InviteResponse,
    MemberResponse,
    RosterMemberPayload,
)
from fedauth.core.errors import Forbidden
from fedauth.db.models_members import InviteEntity
from fedauth.db.repo_members import MemberCreateData, create_member
from fedauth.vault.deps import DbSession, Settings, require_roles
from fedauth.vault.invites import (
    create_invite,
    list_pending_invites,
    renew_invite,
    revoke_invite,
    view_status,
)
from fedauth.vault.permissions import MemberAuthContext, Role, has_role

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["invites"])

Admin = Annotated[MemberAuthContext, Depends(require_roles(Role.ADMIN))]


def _invite_to_response(invite: InviteEntity) -> InviteResponse:
    response = InviteResponse.model_validate(invite)
    return response.model_copy(update={"status": view_status(invite)})


def _invite_not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND, detail="Pending invite not found"
    )


@router.post("/members/roster", status_code=status.HTTP_201_CREATED)
async def add_roster_member(
    payload: RosterMemberPayload, db: DbSession, admin: Admin
) -> MemberResponse:
    """POST /api/members/roster -- add a member who has not signed in yet."""
    member = await create_member(
        db,
        MemberCreateData(
            name=payload.name,
            email_contact=payload.email_contact,
            voice_part=payload.voice_part,
            invited_by=admin.id,
        ),
    )
    logger.info("roster_member_created", member_id=member.id, created_by=admin.id)
    return MemberResponse.model_validate(member)


@router.post("/members/invite", status_code=status.HTTP_201_CREATED)
async def invite_member(
    payload: InvitePayload,
    db: DbSession,
    settings: Settings,
    admin: Admin,
) -> CreatedInviteResponse:
    """POST /api/members/invite -- issue an invite for a roster member."""
    if Role.OWNER in payload.roles and not has_role(admin, Role.OWNER):
        logger.warning("owner_invite_denied", member_id=admin.id)
        raise Forbidden(f"Member {admin.id} is not an owner and cannot grant owner")
    invite = await create_invite(
        db,
        roster_member_id=payload.roster_member_id,
        roles=payload.roles,
        invited_by=admin.id,
        voice_part=payload.voice_part,
        org_id=payload.org_id,
        ttl_hours=settings.invite_ttl_hours,
    )
    link = (
        f"{settings.public_url.rstrip('/')}/api/auth/accept?"
        f"{urlencode({'token': invite.token})}"
    )
    base = _invite_to_response(invite)
    return CreatedInviteResponse(**base.model_dump(), token=invite.token, invite_url=link)


@router.get("/invites")
async def pending_invites(db: DbSession, _admin: Admin) -> InviteListResponse:
    """GET /api/invites -- pending invites, including expired ones."""
    invites = await list_pending_invites(db)
    return InviteListResponse(invites=[_invite_to_response(i) for i in invites])


@router.post("/invites/{invite_id}/renew")
async def renew(
    invite_id: str, db: DbSession, settings: Settings, _admin: Admin
) -> InviteResponse:
    """POST /api/invites/{id}/renew -- extend a pending invite."""
    invite = await renew_invite(db, invite_id, ttl_hours=settings.invite_ttl_hours)
    if invite is None:
        raise _invite_not_found()
    return _invite_to_response(invite)


@router.delete("/invites/{invite_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke(invite_id: str, db: DbSession, _admin: Admin) -> None:
    """DELETE /api/invites/{id} -- delete a pending invite."""
    if not await revoke_invite(db, invite_id):
        raise _invite_not_found()
