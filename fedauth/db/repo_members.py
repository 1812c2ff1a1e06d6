"""Member and role-assignment repository."""

from collections.abc import Iterable

import uuid_utils
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fedauth.db.models_members import MemberEntity, MemberRoleEntity


class MemberCreateData(BaseModel):
    """Parameters for creating a member."""

    name: str = ""
    email_id: str | None = None
    email_contact: str | None = None
    voice_part: str | None = None
    invited_by: str | None = None
    member_id: str | None = None


async def get_member_by_id(
    session: AsyncSession, member_id: str
) -> MemberEntity | None:
    """Look up a member by primary key."""
    return await session.get(MemberEntity, member_id)


async def get_member_by_email(
    session: AsyncSession, email: str
) -> MemberEntity | None:
    """Look up a registered member by verified email (case-insensitive)."""
    stmt = select(MemberEntity).where(MemberEntity.email_id == email.lower())
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


def new_member(data: MemberCreateData) -> MemberEntity:
    """Build an unsaved member entity."""
    return MemberEntity(
        id=data.member_id or str(uuid_utils.uuid7()),
        name=data.name,
        email_id=data.email_id.lower() if data.email_id else None,
        email_contact=data.email_contact,
        voice_part=data.voice_part,
        invited_by=data.invited_by,
    )


async def create_member(session: AsyncSession, data: MemberCreateData) -> MemberEntity:
    """Create a member; without ``email_id`` it is a roster-only member."""
    member = new_member(data)
    session.add(member)
    await session.flush()
    return member


async def get_role_rows(
    session: AsyncSession, member_id: str
) -> list[MemberRoleEntity]:
    """Every role row for a member, global and org-scoped."""
    stmt = select(MemberRoleEntity).where(MemberRoleEntity.member_id == member_id)
    result = await session.execute(stmt)
    return list(result.scalars().all())


def new_role_rows(
    member_id: str,
    roles: Iterable[str],
    existing: Iterable[MemberRoleEntity],
    *,
    org_id: str | None = None,
    granted_by: str | None = None,
) -> list[MemberRoleEntity]:
    """Unsaved role rows for the roles the member does not already hold."""
    held = {row.role for row in existing if row.org_id == org_id}
    rows: list[MemberRoleEntity] = []
    for role in dict.fromkeys(roles):
        if role in held:
            continue
        rows.append(
            MemberRoleEntity(
                member_id=member_id,
                org_id=org_id,
                role=role,
                granted_by=granted_by,
            )
        )
    return rows


async def add_member_roles(
    session: AsyncSession,
    member_id: str,
    roles: Iterable[str],
    *,
    org_id: str | None = None,
    granted_by: str | None = None,
) -> int:
    """Grant roles, skipping ones already held in that scope. Returns count added."""
    existing = await get_role_rows(session, member_id)
    rows = new_role_rows(
        member_id, roles, existing, org_id=org_id, granted_by=granted_by
    )
    session.add_all(rows)
    await session.flush()
    return len(rows)
