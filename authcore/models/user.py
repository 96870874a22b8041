"""
User model - the Identity every other record hangs off.

A user's id is created at registration and never mutated. The role column
is the only input of the Authorization Resolver.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import String, DateTime
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from authcore.db.base import Base

if TYPE_CHECKING:
    from authcore.models.auth_session import AuthSession
    from authcore.models.oauth_credential import OAuthCredential


class Role(str, enum.Enum):
    """Closed set of authorization tiers."""

    USER = "user"
    ADMIN = "admin"


class User(Base):
    """
    SQLAlchemy ORM model for the 'users' table.
    """

    __tablename__ = "users"

    # ---------------------------------------------------------------------------
    # PRIMARY KEY (the Identity)
    # ---------------------------------------------------------------------------
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )

    # ---------------------------------------------------------------------------
    # USER CREDENTIALS
    # ---------------------------------------------------------------------------
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)

    # ---------------------------------------------------------------------------
    # PROFILE INFORMATION
    # ---------------------------------------------------------------------------
    display_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # ---------------------------------------------------------------------------
    # AUTHORIZATION
    # ---------------------------------------------------------------------------
    # role: "user" or "admin". Stored as plain text so new tiers need no
    # enum migration; validated against Role at the edges.
    role: Mapped[str] = mapped_column(String(20), default=Role.USER.value, nullable=False)

    # is_active: deactivated accounts keep their data but are refused everywhere
    is_active: Mapped[bool] = mapped_column(default=True)

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

    # ---------------------------------------------------------------------------
    # RELATIONSHIPS
    # ---------------------------------------------------------------------------
    sessions: Mapped[list["AuthSession"]] = relationship(
        "AuthSession", back_populates="owner", cascade="all, delete-orphan"
    )
    oauth_credentials: Mapped[list["OAuthCredential"]] = relationship(
        "OAuthCredential", back_populates="owner", cascade="all, delete-orphan"
    )

    def has_role(self, role: Role) -> bool:
        return self.role == role.value

    def __repr__(self) -> str:
        return f"<User(id={self.id}, role='{self.role}')>"
