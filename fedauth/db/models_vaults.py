"""SQLAlchemy model for registered tenant vaults."""

from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from fedauth.db.base import BaseEntity


def _utcnow() -> datetime:
    return datetime.now(UTC)


class VaultEntity(BaseEntity):
    """A tenant trusting the registry; its id is the token ``aud``."""

    __tablename__ = "vaults"

    id: Mapped[str] = mapped_column(String(48), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    callback_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    registered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
    )
