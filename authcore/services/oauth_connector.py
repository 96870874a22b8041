"""
OAuth Connector - drives the three-legged flow against the calendar provider.

Operations:
- build_authorization_url(user_id, redirect_after) -> consent URL
- exchange_code(code, state) -> PendingConnection, or ExchangeFailed
- refresh(refresh_token) -> OAuthTokens, or InvalidGrantError / TransientProviderError
- revoke(token) -> bool, best effort

The state parameter is a signed token carrying only a random nonce; the
nonce maps to the user server-side. Logging or leaking the state reveals
nothing about who started the flow. The connector never touches the
credential store: persisting the result is the token manager's job.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import List, Optional

from jose import JWTError

from authcore.core.errors import ConnectorMisconfigured, ExchangeFailed
from authcore.core.security import create_state_token, decode_state_token
from authcore.environments.base import AuthenticationError, EnvironmentProvider, OAuthTokens
from authcore.environments.google.auth.schemas import CALENDAR_SCOPES
from authcore.services.oauth_state import OAuthStateStore


logger = logging.getLogger("authcore.services.oauth_connector")


@dataclass(frozen=True)
class PendingConnection:
    """A successful code exchange, not yet persisted."""
    user_id: uuid.UUID
    redirect_after: Optional[str]
    tokens: OAuthTokens


class OAuthConnector:
    """
    Calendar OAuth flow on top of a provider client.

    Args:
        provider: OAuth provider client (GoogleAuthClient in the app)
        state_store: Registry of outstanding nonces
        scopes: Scopes requested on the consent screen
    """

    def __init__(
        self,
        provider: EnvironmentProvider,
        state_store: OAuthStateStore,
        scopes: Optional[List[str]] = None,
    ):
        self.provider = provider
        self.state_store = state_store
        self.scopes = list(scopes or CALENDAR_SCOPES)

    @property
    def provider_name(self) -> str:
        return self.provider.provider_name

    # -------------------------------------------------------------------------
    # CONSENT URL
    # -------------------------------------------------------------------------

    def build_authorization_url(
        self,
        user_id: uuid.UUID,
        redirect_after: Optional[str] = None,
    ) -> str:
        """
        Build the provider consent URL for user_id.

        Raises:
            ConnectorMisconfigured: If client credentials are missing
        """
        if not self.provider.is_configured():
            logger.error("Calendar OAuth not configured - missing client credentials")
            raise ConnectorMisconfigured()

        nonce = self.state_store.issue(user_id, redirect_after)
        state = create_state_token(nonce, self.state_store.ttl)

        logger.info(f"Initiating calendar OAuth for user {user_id}")

        return self.provider.get_authorization_url(scopes=self.scopes, state=state)

    # -------------------------------------------------------------------------
    # CODE EXCHANGE
    # -------------------------------------------------------------------------

    async def exchange_code(self, code: str, state: str) -> PendingConnection:
        """
        Validate the callback state and exchange the code for tokens.

        The nonce is consumed before the provider is called, so a failed
        exchange cannot be replayed either. Never retried: codes are single-use.

        Raises:
            ExchangeFailed: On forged, expired or replayed state, or provider error
        """
        try:
            nonce = decode_state_token(state)
        except JWTError:
            logger.warning("OAuth callback with forged or expired state (possible attack)")
            raise ExchangeFailed()

        pending = self.state_store.consume(nonce)
        if pending is None:
            logger.warning("OAuth callback with unknown, expired or replayed state (possible attack)")
            raise ExchangeFailed()

        try:
            tokens = await self.provider.exchange_code_for_tokens(code=code)
        except AuthenticationError as e:
            logger.warning(f"Code exchange failed for user {pending.user_id}: {e}")
            raise ExchangeFailed() from e

        return PendingConnection(
            user_id=pending.user_id,
            redirect_after=pending.redirect_after,
            tokens=tokens,
        )

    # -------------------------------------------------------------------------
    # REFRESH / REVOKE
    # -------------------------------------------------------------------------

    async def refresh(self, refresh_token: str) -> OAuthTokens:
        """
        Exchange a refresh token for a new access token.

        Raises:
            InvalidGrantError: Caller must re-run the full consent flow
            TransientProviderError: Caller may retry with backoff
        """
        return await self.provider.refresh_access_token(refresh_token)

    async def revoke(self, token: str) -> bool:
        return await self.provider.revoke_token(token)
