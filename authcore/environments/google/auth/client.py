"""
Google OAuth Client - Handles the OAuth 2.0 authorization code flow.

Key Features:
=============
1. Authorization URL generation (offline access, forced consent)
2. Code-to-token exchange
3. Token refresh with failure classification
4. Token revocation for disconnect

Refresh failure classification:
===============================
- 400/401 with error "invalid_grant"      -> InvalidGrantError
- network error, timeout, 429, 5xx        -> TransientProviderError
- any other rejection (e.g. invalid_client) -> TransientProviderError,
  logged at error level: it points at our configuration, not at the
  user's grant, so the stored credential must survive it.

References:
===========
- OAuth 2.0: https://developers.google.com/identity/protocols/oauth2
- Token endpoint: https://oauth2.googleapis.com/token
"""

import logging
from typing import List, Optional
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError

from authcore.core.config import settings
from authcore.environments.base import (
    EnvironmentProvider,
    OAuthTokens,
    AuthenticationError,
    InvalidGrantError,
    TransientProviderError,
)
from authcore.environments.google.auth.schemas import (
    GoogleTokenError,
    GoogleTokenResponse,
)


logger = logging.getLogger("authcore.environments.google.auth")


class GoogleAuthClient(EnvironmentProvider):
    """
    Google OAuth 2.0 Client implementation.

    Example Usage:
        client = GoogleAuthClient()

        url = client.get_authorization_url(scopes=CALENDAR_SCOPES, state=state)
        tokens = await client.exchange_code_for_tokens(code="4/0Ab...")
        tokens = await client.refresh_access_token(refresh_token="1//0e...")

    Args:
        transport: Optional httpx transport (tests pass httpx.MockTransport)
    """

    provider_name = "google"

    # Google OAuth endpoints
    AUTHORIZATION_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    REVOKE_URL = "https://oauth2.googleapis.com/revoke"

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id if client_id is not None else settings.GOOGLE_CALENDAR_CLIENT_ID
        self.client_secret = (
            client_secret if client_secret is not None else settings.GOOGLE_CALENDAR_CLIENT_SECRET
        )
        self.redirect_uri = redirect_uri or settings.GOOGLE_CALENDAR_REDIRECT_URI
        self.timeout = timeout or settings.PROVIDER_HTTP_TIMEOUT
        self._transport = transport

        if not self.is_configured():
            logger.warning(
                "Google Calendar OAuth not configured. Set GOOGLE_CALENDAR_CLIENT_ID and "
                "GOOGLE_CALENDAR_CLIENT_SECRET in environment variables."
            )

    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self.timeout)

    # -------------------------------------------------------------------------
    # AUTHORIZATION URL
    # -------------------------------------------------------------------------

    def get_authorization_url(
        self,
        scopes: List[str],
        state: str,
        redirect_uri: Optional[str] = None,
        access_type: str = "offline",
        prompt: str = "consent",
    ) -> str:
        """
        Generate the Google OAuth authorization URL.

        Args:
            scopes: List of OAuth scopes to request
            state: Signed anti-forgery token
            redirect_uri: Override default callback URL
            access_type: "offline" asks Google for a refresh token
            prompt: "consent" forces the consent screen, so a refresh token
                    is issued even on reconnect

        Returns:
            Full authorization URL. Same inputs always give the same URL.
        """
        params = {
            "client_id": self.client_id,
            "redirect_uri": redirect_uri or self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(scopes),
            "state": state,
            "access_type": access_type,
            "prompt": prompt,
            "include_granted_scopes": "true",
        }

        return f"{self.AUTHORIZATION_URL}?{urlencode(params)}"

    # -------------------------------------------------------------------------
    # TOKEN EXCHANGE
    # -------------------------------------------------------------------------

    async def exchange_code_for_tokens(
        self,
        code: str,
        redirect_uri: Optional[str] = None,
    ) -> OAuthTokens:
        """
        Exchange authorization code for access and refresh tokens.

        Codes are single-use, so this is never retried.

        Raises:
            AuthenticationError: If token exchange fails for any reason
        """
        token_data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": redirect_uri or self.redirect_uri,
        }

        logger.info("Exchanging authorization code for tokens")

        async with self._http_client() as client:
            try:
                response = await client.post(self.TOKEN_URL, data=token_data)
            except httpx.HTTPError as e:
                logger.error(f"Network error during token exchange: {type(e).__name__}")
                raise AuthenticationError("Network error during token exchange") from e

        if response.status_code != 200:
            error = self._parse_error(response)
            logger.error(
                f"Token exchange rejected: HTTP {response.status_code} {error.error}"
            )
            raise AuthenticationError(f"Token exchange failed: {error.error}")

        try:
            token_response = GoogleTokenResponse(**response.json())
        except (ValueError, ValidationError) as e:
            logger.error("Token exchange returned an unreadable body")
            raise AuthenticationError("Malformed token response") from e

        logger.info(
            "Successfully obtained Google tokens",
            extra={
                "has_refresh_token": token_response.refresh_token is not None,
                "expires_in": token_response.expires_in,
            },
        )

        return OAuthTokens(
            access_token=token_response.access_token,
            token_type=token_response.token_type,
            refresh_token=token_response.refresh_token,
            expires_at=token_response.get_expires_at(),
            scopes=token_response.get_scopes_list(),
        )

    # -------------------------------------------------------------------------
    # TOKEN REFRESH
    # -------------------------------------------------------------------------

    async def refresh_access_token(self, refresh_token: str) -> OAuthTokens:
        """
        Use refresh token to get a new access token.

        Returns:
            OAuthTokens with the new access token. refresh_token is set only
            when Google rotated it; the caller keeps the old one otherwise.

        Raises:
            InvalidGrantError: If the refresh token is invalid or revoked
            TransientProviderError: If a later attempt may succeed
        """
        refresh_data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }

        logger.info("Refreshing access token")

        async with self._http_client() as client:
            try:
                response = await client.post(self.TOKEN_URL, data=refresh_data)
            except httpx.HTTPError as e:
                logger.warning(f"Network error during token refresh: {type(e).__name__}")
                raise TransientProviderError("Network error during token refresh") from e

        if response.status_code == 429 or response.status_code >= 500:
            logger.warning(f"Token refresh unavailable: HTTP {response.status_code}")
            raise TransientProviderError(f"Provider returned HTTP {response.status_code}")

        if response.status_code != 200:
            error = self._parse_error(response)
            if error.is_invalid_grant:
                logger.info("Token refresh rejected: invalid_grant")
                raise InvalidGrantError("Refresh token revoked or expired")

            logger.error(
                f"Token refresh rejected: HTTP {response.status_code} {error.error}"
            )
            raise TransientProviderError(f"Token refresh rejected: {error.error}")

        try:
            token_response = GoogleTokenResponse(**response.json())
        except (ValueError, ValidationError) as e:
            logger.warning("Token refresh returned an unreadable body")
            raise TransientProviderError("Malformed token response") from e

        logger.info(
            "Successfully refreshed access token",
            extra={
                "expires_in": token_response.expires_in,
                "rotated": token_response.refresh_token is not None,
            },
        )

        return OAuthTokens(
            access_token=token_response.access_token,
            token_type=token_response.token_type,
            refresh_token=token_response.refresh_token,
            expires_at=token_response.get_expires_at(),
            scopes=token_response.get_scopes_list() or None,
        )

    # -------------------------------------------------------------------------
    # TOKEN REVOCATION
    # -------------------------------------------------------------------------

    async def revoke_token(self, token: str) -> bool:
        """
        Revoke an access or refresh token.

        Best effort: never raises, the caller deletes its record either way.
        """
        logger.info("Revoking Google token")

        async with self._http_client() as client:
            try:
                response = await client.post(self.REVOKE_URL, params={"token": token})
            except httpx.HTTPError as e:
                logger.warning(f"Network error during token revocation: {type(e).__name__}")
                return False

        success = response.status_code == 200
        if not success:
            logger.warning(f"Token revocation returned status {response.status_code}")

        return success

    # -------------------------------------------------------------------------
    # UTILITY METHODS
    # -------------------------------------------------------------------------

    @staticmethod
    def _parse_error(response: httpx.Response) -> GoogleTokenError:
        try:
            return GoogleTokenError(**response.json())
        except (ValueError, TypeError, ValidationError):
            return GoogleTokenError()
