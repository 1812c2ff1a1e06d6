"""Error taxonomy for the federated auth core.

Every error carries a stable ``error_code`` and the HTTP status the edge layer
should answer with. ``user_message`` is the only text that may be shown to an
end user; the exception message itself is for logs and may contain detail from
PyJWT or the upstream provider.
"""

from __future__ import annotations


class FedAuthError(Exception):
    """Base class for auth-core exceptions mapped to HTTP responses."""

    status_code: int = 400
    error_code: str = "invalid_request"
    user_message: str = "The request could not be processed."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.user_message)
        self.message = message or self.user_message


# Session / authorization


class Unauthenticated(FedAuthError):
    """No session, or a session that does not map to a verified member."""

    status_code = 401
    error_code = "unauthenticated"
    user_message = "Authentication required."


class Forbidden(FedAuthError):
    """Authenticated but lacking the required role or permission."""

    status_code = 403
    error_code = "forbidden"
    user_message = "Forbidden."


# Signed tokens


class TokenError(FedAuthError):
    """A signed token was rejected."""

    status_code = 401
    error_code = "invalid_token"
    user_message = "Invalid or expired token."


class InvalidSignature(TokenError):
    """Signature does not match the key it was checked against."""


class TokenExpired(TokenError):
    """Token used after its ``exp``."""

    error_code = "token_expired"


class ClaimMismatch(TokenError):
    """``iss`` or ``aud`` differs from what the verifier expects."""


class MalformedPayload(TokenError):
    """Token is unparseable or lacks a required claim of the right type."""


class KeyFetchFailed(TokenError):
    """The issuer's key set could not be fetched and nothing is cached."""

    error_code = "key_fetch_failed"


class NoMatchingKey(TokenError):
    """No published key verifies the token's signature."""

    error_code = "no_matching_key"


# Upstream identity provider


class UpstreamExchangeFailed(FedAuthError):
    """The provider rejected the code exchange or the userinfo fetch."""

    status_code = 502
    error_code = "upstream_exchange_failed"
    user_message = "Sign-in with the identity provider failed. Please try again."


class InvalidState(FedAuthError):
    """OAuth round-trip state is missing, tampered with or expired."""

    status_code = 400
    error_code = "invalid_state"
    user_message = "Invalid sign-in request."


# Invites


class InviteError(FedAuthError):
    """Base class for invite lifecycle failures."""


class InvalidInviteToken(InviteError):
    status_code = 404
    error_code = "invalid_invite"
    user_message = "This invitation link is not valid."


class InviteExpired(InviteError):
    status_code = 410
    error_code = "invite_expired"
    user_message = "This invitation has expired. Ask an administrator to renew it."


class AlreadyAccepted(InviteError):
    status_code = 409
    error_code = "invite_already_accepted"
    user_message = "This invitation has already been used."


class DuplicatePendingInvite(InviteError):
    status_code = 409
    error_code = "duplicate_pending_invite"
    user_message = "This member already has a pending invitation."


class MemberNotFound(InviteError):
    status_code = 404
    error_code = "member_not_found"
    user_message = "Member not found."


class MemberAlreadyRegistered(InviteError):
    """The roster member is already bound to a verified identity."""

    status_code = 409
    error_code = "member_already_registered"
    user_message = "This member has already signed in; the invitation cannot be used."


# Vault registration


class InvalidCallbackUrl(FedAuthError):
    status_code = 400
    error_code = "invalid_callback_url"
    user_message = "callback_url must use HTTPS."


class VaultNameTaken(FedAuthError):
    status_code = 409
    error_code = "vault_name_taken"
    user_message = "Vault name already exists."


class ReservedVaultId(FedAuthError):
    status_code = 400
    error_code = "reserved_vault_id"
    user_message = "Vault id is reserved."
