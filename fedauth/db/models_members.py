"""SQLAlchemy models for vault members, role assignments and invites."""

from datetime import UTC, datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from fedauth.db.base import BaseEntity


def _utcnow() -> datetime:
    return datetime.now(UTC)


class MemberEntity(BaseEntity):
    """A person known to the vault.

    ``email_id`` is the verified OAuth identity; it stays NULL for roster-only
    members until an invite is accepted.
    """

    __tablename__ = "members"

    id: Mapped[str] = mapped_column(String(48), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    email_id: Mapped[str | None] = mapped_column(
        String(255), unique=True, nullable=True, index=True
    )
    email_contact: Mapped[str | None] = mapped_column(String(255), nullable=True)
    voice_part: Mapped[str | None] = mapped_column(String(50), nullable=True)
    invited_by: Mapped[str | None] = mapped_column(String(48), nullable=True)
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
    )


class MemberRoleEntity(BaseEntity):
    """One role held by a member, globally (``org_id`` NULL) or within an org."""

    __tablename__ = "member_roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    member_id: Mapped[str] = mapped_column(
        String(48), ForeignKey("members.id"), nullable=False, index=True
    )
    org_id: Mapped[str | None] = mapped_column(String(48), nullable=True)
    role: Mapped[str] = mapped_column(String(32), nullable=False)
    granted_by: Mapped[str | None] = mapped_column(String(48), nullable=True)
    granted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
    )


class InviteEntity(BaseEntity):
    """Single-use onboarding token for one roster member."""

    __tablename__ = "invites"

    id: Mapped[str] = mapped_column(String(48), primary_key=True)
    roster_member_id: Mapped[str] = mapped_column(
        String(48), ForeignKey("members.id"), nullable=False, index=True
    )
    token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    invited_by: Mapped[str] = mapped_column(String(48), nullable=False)
    roles: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    voice_part: Mapped[str | None] = mapped_column(String(50), nullable=True)
    org_id: Mapped[str | None] = mapped_column(String(48), nullable=True)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="pending"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    accepted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    accepted_by_email: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
