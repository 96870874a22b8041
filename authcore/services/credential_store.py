"""
Credential Store - durable mapping from (identity, provider) to OAuth tokens.

No business logic lives here: three operations, full-overwrite semantics.

    get(user_id, provider)          -> TokenRecord | None
    put(user_id, provider, record)  full overwrite, never a merge
    delete(user_id, provider)       -> True if a record was removed

The SQL adapter opens its own short session per operation, because the
token manager calls it from refresh tasks that outlive any request.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from authcore.models.oauth_credential import OAuthCredential


logger = logging.getLogger("authcore.services.credential_store")


class CredentialStoreError(Exception):
    """The store could not complete a read or write."""
    pass


@dataclass(frozen=True)
class TokenRecord:
    """
    Stored OAuth credential for one identity and provider.

    expires_at is always timezone-aware (UTC) or None.
    """
    access_token: Optional[str]
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    calendar_id: Optional[str] = None
    scopes: Optional[List[str]] = None
    token_type: str = "Bearer"

    def has_credentials(self) -> bool:
        """True if there is anything to call the provider with."""
        return bool(self.access_token or self.refresh_token)

    def is_fresh(self, margin: timedelta, now: Optional[datetime] = None) -> bool:
        """
        True if the access token stays valid for longer than margin.

        Unknown expiry counts as expired.
        """
        if not self.access_token or self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return self.expires_at - now > margin


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CredentialStore(ABC):
    """Contract the token manager requires from persistent storage."""

    @abstractmethod
    def get(self, user_id: uuid.UUID, provider: str) -> Optional[TokenRecord]:
        pass

    @abstractmethod
    def put(self, user_id: uuid.UUID, provider: str, record: TokenRecord) -> None:
        pass

    @abstractmethod
    def delete(self, user_id: uuid.UUID, provider: str) -> bool:
        pass


class SqlCredentialStore(CredentialStore):
    """
    CredentialStore backed by the oauth_credentials table.

    Args:
        session_factory: Callable returning a new SQLAlchemy Session
                         (SessionLocal in the app, the test factory in tests)

    Raises:
        CredentialStoreError: wraps every SQLAlchemyError
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def get(self, user_id: uuid.UUID, provider: str) -> Optional[TokenRecord]:
        try:
            with self._session_factory() as db:
                row = db.scalars(
                    select(OAuthCredential).where(
                        OAuthCredential.user_id == user_id,
                        OAuthCredential.provider == provider,
                    )
                ).first()
                if row is None:
                    return None
                return self._to_record(row)
        except SQLAlchemyError as e:
            logger.error(f"Credential read failed for user {user_id}: {type(e).__name__}")
            raise CredentialStoreError("Credential read failed") from e

    def put(self, user_id: uuid.UUID, provider: str, record: TokenRecord) -> None:
        try:
            try:
                self._upsert(user_id, provider, record)
            except IntegrityError:
                # A concurrent insert for the same (user, provider) won the
                # unique constraint; overwrite it instead.
                logger.info(f"Concurrent credential insert for user {user_id}, retrying as update")
                self._upsert(user_id, provider, record)
        except SQLAlchemyError as e:
            logger.error(f"Credential write failed for user {user_id}: {type(e).__name__}")
            raise CredentialStoreError("Credential write failed") from e

    def delete(self, user_id: uuid.UUID, provider: str) -> bool:
        try:
            with self._session_factory() as db:
                row = db.scalars(
                    select(OAuthCredential).where(
                        OAuthCredential.user_id == user_id,
                        OAuthCredential.provider == provider,
                    )
                ).first()
                if row is None:
                    return False
                db.delete(row)
                db.commit()
                return True
        except SQLAlchemyError as e:
            logger.error(f"Credential delete failed for user {user_id}: {type(e).__name__}")
            raise CredentialStoreError("Credential delete failed") from e

    # -------------------------------------------------------------------------
    # HELPERS
    # -------------------------------------------------------------------------

    def _upsert(self, user_id: uuid.UUID, provider: str, record: TokenRecord) -> None:
        with self._session_factory() as db:
            try:
                row = db.scalars(
                    select(OAuthCredential).where(
                        OAuthCredential.user_id == user_id,
                        OAuthCredential.provider == provider,
                    )
                ).first()
                if row is None:
                    row = OAuthCredential(user_id=user_id, provider=provider)
                    db.add(row)

                row.access_token = record.access_token
                row.refresh_token = record.refresh_token
                row.expires_at = record.expires_at
                row.calendar_id = record.calendar_id
                row.scopes = list(record.scopes) if record.scopes is not None else None
                row.token_type = record.token_type

                db.commit()
            except SQLAlchemyError:
                db.rollback()
                raise

    @staticmethod
    def _to_record(row: OAuthCredential) -> TokenRecord:
        return TokenRecord(
            access_token=row.access_token,
            refresh_token=row.refresh_token,
            expires_at=_as_utc(row.expires_at),
            calendar_id=row.calendar_id,
            scopes=list(row.scopes) if row.scopes is not None else None,
            token_type=row.token_type or "Bearer",
        )
