"""
Token Lifecycle Manager - hands out currently valid calendar access tokens.

get_valid_access_token(user_id):
1. no stored record                           -> NotConnected (no network call)
2. token valid for longer than the margin     -> stored token (no network call)
3. otherwise join the user's in-flight refresh, or start one
4. refresh succeeded -> persist, then release every waiter with the new token;
   persist failed   -> TransientAuthError, the unpersisted token is dropped
5. invalid_grant     -> delete the record, ReauthRequired
6. transient failure -> record untouched, TransientAuthError

At most one refresh per user is in flight: _inflight maps user id to the
asyncio.Task doing it, and every concurrent caller awaits that same task.
Different users get different tasks and never wait on each other. Callers
await through asyncio.shield, so a caller that times out or disconnects
abandons only its own wait; the refresh still completes and persists.

State per (user, provider):

    Disconnected -> Connected(valid) -> Connected(expiring) -> Refreshing
    Refreshing -> Connected(valid)      on success
    Refreshing -> Disconnected          on invalid_grant
    Refreshing -> Connected(expiring)   on transient failure

The registry is per process. With several workers, the store's last put
wins; a second worker racing a refresh is superseded, never merged.
"""

import asyncio
import functools
import logging
import uuid
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import Optional

from authcore.core.config import settings
from authcore.core.errors import NotConnected, ReauthRequired, TransientAuthError
from authcore.environments.base import (
    InvalidGrantError,
    OAuthTokens,
    ProviderError,
    TransientProviderError,
)
from authcore.environments.google.auth.schemas import DEFAULT_CALENDAR_ID
from authcore.services.credential_store import CredentialStore, CredentialStoreError, TokenRecord
from authcore.services.oauth_connector import OAuthConnector


logger = logging.getLogger("authcore.services.token_manager")


@dataclass(frozen=True)
class ConnectionStatus:
    connected: bool
    calendar_id: Optional[str]


class TokenManager:
    """
    Owns read / refresh / write of stored OAuth tokens for one provider.

    Args:
        store: Durable credential storage
        connector: OAuth connector for the provider
        refresh_margin: Tokens expiring sooner than this are refreshed first

    Example:
        access_token = await token_manager.get_valid_access_token(user.id)
    """

    def __init__(
        self,
        store: CredentialStore,
        connector: OAuthConnector,
        refresh_margin: Optional[timedelta] = None,
    ):
        self.store = store
        self.connector = connector
        self.provider = connector.provider_name
        self.refresh_margin = (
            refresh_margin
            if refresh_margin is not None
            else timedelta(seconds=settings.TOKEN_REFRESH_MARGIN_SECONDS)
        )
        self._inflight: dict[uuid.UUID, asyncio.Task] = {}
        # user id -> number of disconnects running; no refresh may start meanwhile
        self._disconnecting: dict[uuid.UUID, int] = {}

    # -------------------------------------------------------------------------
    # VALID ACCESS TOKEN
    # -------------------------------------------------------------------------

    async def get_valid_access_token(self, user_id: uuid.UUID) -> str:
        """
        Return an access token valid for at least the refresh margin.

        Raises:
            NotConnected: The user never connected a calendar
            ReauthRequired: The grant is gone; the stored record was purged
            TransientAuthError: Provider or store hiccup; retry later
        """
        record = self._read(user_id)

        if record is None or not record.has_credentials():
            raise NotConnected()

        if record.is_fresh(self.refresh_margin):
            return record.access_token

        return await self._join_refresh(user_id)

    def is_refreshing(self, user_id: uuid.UUID) -> bool:
        return user_id in self._inflight

    async def _join_refresh(self, user_id: uuid.UUID) -> str:
        task = self._inflight.get(user_id)

        if task is None:
            if user_id in self._disconnecting:
                raise NotConnected()
            task = asyncio.create_task(self._refresh(user_id), name=f"token-refresh-{user_id}")
            self._inflight[user_id] = task
            task.add_done_callback(functools.partial(self._settle, user_id))
        else:
            logger.debug(f"Joining in-flight refresh for user {user_id}")

        return await asyncio.shield(task)

    def _settle(self, user_id: uuid.UUID, task: asyncio.Task) -> None:
        if self._inflight.get(user_id) is task:
            del self._inflight[user_id]
        # Every waiter may have gone away; mark the outcome as retrieved.
        if not task.cancelled():
            task.exception()

    async def _refresh(self, user_id: uuid.UUID) -> str:
        # Re-read: a connect or an earlier refresh may have landed since
        # the caller looked.
        record = self._read(user_id)

        if record is None or not record.has_credentials():
            raise NotConnected()

        if record.is_fresh(self.refresh_margin):
            return record.access_token

        if not record.refresh_token:
            logger.warning(f"Expired calendar token without refresh token for user {user_id}")
            self._purge(user_id)
            raise ReauthRequired()

        logger.info(f"Refreshing calendar token for user {user_id}")

        try:
            tokens = await self.connector.refresh(record.refresh_token)
        except InvalidGrantError:
            logger.warning(f"Calendar grant revoked for user {user_id}, purging credential")
            self._purge(user_id)
            raise ReauthRequired()
        except TransientProviderError as e:
            logger.warning(f"Transient refresh failure for user {user_id}: {e}")
            raise TransientAuthError() from e
        except ProviderError as e:
            logger.error(f"Unclassified refresh failure for user {user_id}: {e}")
            raise TransientAuthError() from e

        refreshed = replace(
            record,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token or record.refresh_token,
            expires_at=tokens.expires_at,
            scopes=tokens.scopes or record.scopes,
            token_type=tokens.token_type or record.token_type,
        )

        try:
            self.store.put(user_id, self.provider, refreshed)
        except CredentialStoreError as e:
            # Never hand out a token that a later read would not see.
            logger.error(f"Refreshed token for user {user_id} could not be persisted")
            raise TransientAuthError() from e

        logger.info(f"Calendar token refreshed for user {user_id}")
        return refreshed.access_token

    # -------------------------------------------------------------------------
    # CONNECT / STATUS / DISCONNECT
    # -------------------------------------------------------------------------

    async def save_connection(
        self,
        user_id: uuid.UUID,
        tokens: OAuthTokens,
        calendar_id: Optional[str] = None,
    ) -> TokenRecord:
        """
        Persist the result of a successful code exchange (full overwrite).

        Waits for an in-flight refresh of the old grant first, so that
        refresh cannot land after, and on top of, the new grant.

        Raises:
            TransientAuthError: If the store is unavailable
        """
        await self._wait_for_refresh(user_id)

        existing = self._read(user_id)

        record = TokenRecord(
            access_token=tokens.access_token,
            # Google omits the refresh token on some re-consents
            refresh_token=tokens.refresh_token or (existing.refresh_token if existing else None),
            expires_at=tokens.expires_at,
            calendar_id=calendar_id or (existing.calendar_id if existing else None) or DEFAULT_CALENDAR_ID,
            scopes=tokens.scopes,
            token_type=tokens.token_type,
        )

        try:
            self.store.put(user_id, self.provider, record)
        except CredentialStoreError as e:
            raise TransientAuthError() from e

        logger.info(
            f"{'Updated' if existing else 'Created'} calendar credentials for user {user_id}",
            extra={"has_refresh_token": record.refresh_token is not None},
        )
        return record

    def connection_status(self, user_id: uuid.UUID) -> ConnectionStatus:
        """
        Local read only: no refresh, no provider call.

        Connected means a record exists with an access or a refresh token.
        """
        record = self._read(user_id)

        if record is None or not record.has_credentials():
            return ConnectionStatus(connected=False, calendar_id=None)

        return ConnectionStatus(connected=True, calendar_id=record.calendar_id)

    async def disconnect(self, user_id: uuid.UUID) -> bool:
        """
        Revoke the grant at the provider (best effort) and delete the record.

        Refreshes already running are awaited; new ones are refused with
        NotConnected until the record is gone.

        Returns:
            False if nothing was connected
        """
        self._disconnecting[user_id] = self._disconnecting.get(user_id, 0) + 1
        try:
            await self._wait_for_refresh(user_id)

            record = self._read(user_id)
            if record is None:
                return False

            token = record.refresh_token or record.access_token
            if token and not await self.connector.revoke(token):
                logger.warning(f"Provider revocation failed for user {user_id}, deleting locally anyway")

            try:
                deleted = self.store.delete(user_id, self.provider)
            except CredentialStoreError as e:
                raise TransientAuthError() from e
        finally:
            remaining = self._disconnecting.pop(user_id) - 1
            if remaining:
                self._disconnecting[user_id] = remaining

        logger.info(f"Disconnected calendar for user {user_id}")
        return deleted

    # -------------------------------------------------------------------------
    # HELPERS
    # -------------------------------------------------------------------------

    async def _wait_for_refresh(self, user_id: uuid.UUID) -> None:
        task = self._inflight.get(user_id)
        if task is not None:
            # Outcome is irrelevant here; asyncio.wait never raises it.
            await asyncio.wait([task])

    def _read(self, user_id: uuid.UUID) -> Optional[TokenRecord]:
        try:
            return self.store.get(user_id, self.provider)
        except CredentialStoreError as e:
            raise TransientAuthError() from e

    def _purge(self, user_id: uuid.UUID) -> None:
        try:
            self.store.delete(user_id, self.provider)
        except CredentialStoreError:
            # The dead record stays; the next refresh attempt hits
            # invalid_grant again and retries the purge.
            logger.error(f"Could not purge dead calendar credential for user {user_id}")
