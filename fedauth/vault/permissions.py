"""Org-scoped role and permission resolution.

Two checks with deliberately different owner semantics:

* ``has_permission`` is driven strictly by ``ROLE_PERMISSIONS``. Owner is
  powerful only because its row lists every permission.
* ``require_role`` gates routes on role membership, and owner satisfies every
  role requirement.

Both refuse roster-only members (no verified ``email_id``) before looking at
roles at all.
"""

from collections.abc import Iterable
from enum import Enum

import structlog
from pydantic import BaseModel, Field

from fedauth.core.errors import Forbidden, Unauthenticated
from fedauth.db.models_members import MemberEntity, MemberRoleEntity

logger = structlog.get_logger(__name__)


class Role(str, Enum):
    """Assignable member roles."""

    OWNER = "owner"
    ADMIN = "admin"
    LIBRARIAN = "librarian"
    CONDUCTOR = "conductor"
    SECTION_LEADER = "section_leader"


class Permission(str, Enum):
    """Capabilities checked by resource endpoints."""

    SCORES_VIEW = "scores:view"
    SCORES_DOWNLOAD = "scores:download"
    SCORES_UPLOAD = "scores:upload"
    SCORES_DELETE = "scores:delete"
    MEMBERS_INVITE = "members:invite"
    MEMBERS_MANAGE = "members:manage"
    ROLES_MANAGE = "roles:manage"
    VAULT_DELETE = "vault:delete"
    EVENTS_CREATE = "events:create"
    EVENTS_MANAGE = "events:manage"
    EVENTS_DELETE = "events:delete"
    ATTENDANCE_RECORD = "attendance:record"


BASELINE_PERMISSIONS = frozenset({Permission.SCORES_VIEW, Permission.SCORES_DOWNLOAD})

ROLE_PERMISSIONS: dict[Role, frozenset[Permission]] = {
    Role.OWNER: frozenset(Permission),
    Role.ADMIN: frozenset(
        {
            Permission.MEMBERS_INVITE,
            Permission.MEMBERS_MANAGE,
            Permission.ROLES_MANAGE,
        }
    ),
    Role.LIBRARIAN: frozenset({Permission.SCORES_UPLOAD, Permission.SCORES_DELETE}),
    Role.CONDUCTOR: frozenset(
        {
            Permission.EVENTS_CREATE,
            Permission.EVENTS_MANAGE,
            Permission.EVENTS_DELETE,
            Permission.ATTENDANCE_RECORD,
        }
    ),
    Role.SECTION_LEADER: frozenset(),
}

_unmapped = set(Role) - set(ROLE_PERMISSIONS)
if _unmapped:
    raise RuntimeError(f"Roles missing from ROLE_PERMISSIONS: {sorted(_unmapped)}")


class MemberAuthContext(BaseModel):
    """Minimal member view used for authorization decisions."""

    id: str
    email_id: str | None = None
    roles: list[Role] = Field(default_factory=list)
    org_roles: dict[str, list[Role]] = Field(default_factory=dict)

    @property
    def is_registered(self) -> bool:
        return self.email_id is not None


def _parse_roles(values: Iterable[str]) -> list[Role]:
    parsed: list[Role] = []
    for value in values:
        try:
            parsed.append(Role(value))
        except ValueError:
            logger.warning("unknown_role_ignored", role=value)
    return parsed


def auth_context_from(
    member: MemberEntity, role_rows: Iterable[MemberRoleEntity]
) -> MemberAuthContext:
    """Fold role rows into global roles and per-org role lists."""
    global_roles: list[str] = []
    by_org: dict[str, list[str]] = {}
    for row in role_rows:
        if row.org_id is None:
            global_roles.append(row.role)
        else:
            by_org.setdefault(row.org_id, []).append(row.role)
    return MemberAuthContext(
        id=member.id,
        email_id=member.email_id,
        roles=_parse_roles(global_roles),
        org_roles={org: _parse_roles(roles) for org, roles in by_org.items()},
    )


def resolve_roles(member: MemberAuthContext, org_id: str | None = None) -> list[Role]:
    """Org-scoped roles when the member has any for ``org_id``, else global."""
    if org_id is not None:
        scoped = member.org_roles.get(org_id)
        if scoped:
            return scoped
    return member.roles


def has_permission(
    member: MemberAuthContext | None,
    permission: Permission,
    org_id: str | None = None,
) -> bool:
    """Whether the member's resolved roles grant ``permission``."""
    if member is None or not member.is_registered:
        return False
    if permission in BASELINE_PERMISSIONS:
        return True
    return any(
        permission in ROLE_PERMISSIONS[role] for role in resolve_roles(member, org_id)
    )


def has_role(
    member: MemberAuthContext | None, role: Role, org_id: str | None = None
) -> bool:
    """Literal role membership; no owner shortcut."""
    if member is None:
        return False
    return role in resolve_roles(member, org_id)


def require_role(
    member: MemberAuthContext | None,
    roles: Role | Iterable[Role],
    org_id: str | None = None,
) -> MemberAuthContext:
    """Return the member if it holds one of ``roles``; owner satisfies any.

    Raises Unauthenticated for a missing or roster-only member and Forbidden
    when the roles do not match.
    """
    if member is None or not member.is_registered:
        raise Unauthenticated("Authentication required")

    required = {roles} if isinstance(roles, Role) else set(roles)
    held = set(resolve_roles(member, org_id))
    if Role.OWNER in held or held & required:
        return member

    logger.info(
        "role_check_denied",
        member_id=member.id,
        org_id=org_id,
        required=sorted(r.value for r in required),
    )
    raise Forbidden("Insufficient role")
