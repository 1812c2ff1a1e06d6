"""Pydantic request and response bodies for the JSON APIs."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fedauth.crypto.types import JWKEntry
from fedauth.vault.permissions import Role


class VaultPayload(BaseModel):
    """Request body for POST /api/vaults."""

    name: str = Field(min_length=1, max_length=255)
    callback_url: str = Field(min_length=1, max_length=2048)


class VaultCallbackPayload(BaseModel):
    """Request body for PUT /api/vaults/{id}."""

    callback_url: str = Field(min_length=1, max_length=2048)


class VaultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    callback_url: str
    active: bool
    registered_at: datetime


class VaultListResponse(BaseModel):
    vaults: list[VaultResponse] = Field(default_factory=list)


class SigningKeyResponse(BaseModel):
    """Public half of a newly provisioned key."""

    kid: str
    created_at: datetime
    jwk: JWKEntry


class RevokeKeyResponse(BaseModel):
    kid: str
    revoked: bool


class InvitePayload(BaseModel):
    """Request body for POST /api/members/invite."""

    roster_member_id: str
    roles: list[Role] = Field(min_length=1)
    voice_part: str | None = None
    org_id: str | None = None


class InviteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    roster_member_id: str
    invited_by: str
    roles: list[str]
    voice_part: str | None = None
    org_id: str | None = None
    status: str
    created_at: datetime
    expires_at: datetime


class CreatedInviteResponse(InviteResponse):
    """Creation response; the only time the token and link are returned."""

    token: str
    invite_url: str


class InviteListResponse(BaseModel):
    invites: list[InviteResponse] = Field(default_factory=list)


class RosterMemberPayload(BaseModel):
    """Request body for POST /api/members/roster."""

    name: str = Field(min_length=1, max_length=255)
    email_contact: str | None = Field(default=None, max_length=255)
    voice_part: str | None = Field(default=None, max_length=50)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("name must not be blank")
        return stripped


class MemberResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email_id: str | None = None
    email_contact: str | None = None
    voice_part: str | None = None
    joined_at: datetime
