"""
AuthSession model - server-side record of a sign-in session.

Created at sign-in, deleted at sign-out. The Session Verifier only ever
reads this table; a row past expires_at is treated as absent.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from authcore.db.base import Base

if TYPE_CHECKING:
    from authcore.models.user import User


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone=True columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class AuthSession(Base):
    """
    SQLAlchemy ORM model for the 'auth_sessions' table.

    One row per signed-in device. The row id is embedded in the session
    token as the "sid" claim.
    """

    __tablename__ = "auth_sessions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # user_agent: Optional label so users can tell their devices apart
    user_agent: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    owner: Mapped["User"] = relationship("User", back_populates="sessions")

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """True once the session's time window has closed."""
        now = now or datetime.now(timezone.utc)
        return now >= _as_utc(self.expires_at)

    def __repr__(self) -> str:
        return f"<AuthSession(id={self.id}, user_id={self.user_id})>"
