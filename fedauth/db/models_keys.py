"""SQLAlchemy model for token signing keys."""

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from fedauth.db.base import BaseEntity


class SigningKeyEntity(BaseEntity):
    """Ed25519 signing key. Rows are revoked, never deleted."""

    __tablename__ = "signing_keys"

    kid: Mapped[str] = mapped_column(String(50), primary_key=True)
    algorithm: Mapped[str] = mapped_column(
        String(10), nullable=False, server_default="EdDSA"
    )
    private_key_pem: Mapped[str] = mapped_column(Text, nullable=False)
    public_key_pem: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    revoked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
