"""Initial schema: signing keys, vaults, members, roles, invites.

Revision ID: 0001
Revises:
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "signing_keys",
        sa.Column("kid", sa.String(50), primary_key=True),
        sa.Column("algorithm", sa.String(10), nullable=False, server_default="EdDSA"),
        sa.Column("private_key_pem", sa.Text(), nullable=False),
        sa.Column("public_key_pem", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_signing_keys_created_at", "signing_keys", ["created_at"])

    op.create_table(
        "vaults",
        sa.Column("id", sa.String(48), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("callback_url", sa.String(2048), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column(
            "registered_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )

    op.create_table(
        "members",
        sa.Column("id", sa.String(48), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email_id", sa.String(255), nullable=True),
        sa.Column("email_contact", sa.String(255), nullable=True),
        sa.Column("voice_part", sa.String(50), nullable=True),
        sa.Column("invited_by", sa.String(48), nullable=True),
        sa.Column(
            "joined_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_members_email_id", "members", ["email_id"], unique=True)

    op.create_table(
        "member_roles",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "member_id", sa.String(48), sa.ForeignKey("members.id"), nullable=False
        ),
        sa.Column("org_id", sa.String(48), nullable=True),
        sa.Column("role", sa.String(32), nullable=False),
        sa.Column("granted_by", sa.String(48), nullable=True),
        sa.Column(
            "granted_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_member_roles_member_id", "member_roles", ["member_id"])

    op.create_table(
        "invites",
        sa.Column("id", sa.String(48), primary_key=True),
        sa.Column(
            "roster_member_id",
            sa.String(48),
            sa.ForeignKey("members.id"),
            nullable=False,
        ),
        sa.Column("token", sa.String(64), nullable=False, unique=True),
        sa.Column("invited_by", sa.String(48), nullable=False),
        sa.Column("roles", sa.JSON(), nullable=False),
        sa.Column("voice_part", sa.String(50), nullable=True),
        sa.Column("org_id", sa.String(48), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("accepted_by_email", sa.String(255), nullable=True),
    )
    op.create_index("ix_invites_roster_member_id", "invites", ["roster_member_id"])


def downgrade() -> None:
    op.drop_table("invites")
    op.drop_table("member_roles")
    op.drop_table("members")
    op.drop_table("vaults")
    op.drop_table("signing_keys")
