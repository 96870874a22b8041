"""
OAuth Credential model - durable storage for delegated provider tokens.

One row per (user, provider). A later connect overwrites the row, a
refresh mutates it in place, a disconnect or an invalid_grant deletes it.
Business logic lives in the token manager; this table only stores.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional, List, TYPE_CHECKING

from sqlalchemy import String, DateTime, ForeignKey, Text, JSON, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from authcore.db.base import Base

if TYPE_CHECKING:
    from authcore.models.user import User


class OAuthCredential(Base):
    """
    SQLAlchemy ORM model for the 'oauth_credentials' table.

    The unique constraint on (user_id, provider) is what makes "at most one
    record per identity and provider" hold even when two callbacks race.
    """

    __tablename__ = "oauth_credentials"
    __table_args__ = (
        UniqueConstraint("user_id", "provider", name="uq_oauth_credentials_user_provider"),
    )

    # ---------------------------------------------------------------------------
    # PRIMARY KEY
    # ---------------------------------------------------------------------------
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )

    # ---------------------------------------------------------------------------
    # OWNER AND PROVIDER
    # ---------------------------------------------------------------------------
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # provider: "google" today; the column keeps room for other calendar providers
    provider: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    # ---------------------------------------------------------------------------
    # TOKEN DATA
    # ---------------------------------------------------------------------------
    # access_token: short-lived, may be absent when only a refresh token survived
    access_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # refresh_token: long-lived, absent if the provider did not issue one
    refresh_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    token_type: Mapped[str] = mapped_column(String(50), default="Bearer")

    # ---------------------------------------------------------------------------
    # TOKEN METADATA
    # ---------------------------------------------------------------------------
    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # scopes: granted permission set, as a JSON list
    scopes: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)

    # calendar_id: provider-side calendar the features read from ("primary" by default)
    calendar_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # ---------------------------------------------------------------------------
    # TIMESTAMPS
    # ---------------------------------------------------------------------------
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    owner: Mapped["User"] = relationship("User", back_populates="oauth_credentials")

    def __repr__(self) -> str:
        return f"<OAuthCredential(user_id={self.user_id}, provider='{self.provider}')>"
