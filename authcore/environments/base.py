"""
Base classes and interfaces for calendar provider integrations.

This module defines the abstract contracts that an OAuth provider
(Google today) and its API services must implement.

Design Pattern: Strategy
========================
- EnvironmentProvider: Abstract base for OAuth providers (consent URL,
  code exchange, refresh, revocation)
- EnvironmentService: Abstract base for API services using the tokens

Refresh failures are classified here, at the HTTP edge, into exactly two
kinds so callers never have to inspect provider payloads:
- InvalidGrantError: the refresh token is permanently unusable
- TransientProviderError: anything a later attempt might fix
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, List, Any


# ---------------------------------------------------------------------------
# CUSTOM EXCEPTIONS
# ---------------------------------------------------------------------------


class ProviderError(Exception):
    """Base exception for all provider-related errors."""
    pass


class AuthenticationError(ProviderError):
    """Raised when the authorization-code exchange fails."""
    pass


class RefreshFailed(ProviderError):
    """Raised when exchanging a refresh token for an access token fails."""
    pass


class InvalidGrantError(RefreshFailed):
    """The provider reports the refresh token revoked or expired."""
    pass


class TransientProviderError(RefreshFailed):
    """Network error, timeout, rate limit or provider-side failure."""
    pass


class APIError(ProviderError):
    """Raised when an API call to the provider fails."""

    def __init__(self, message: str, status_code: Optional[int] = None, response: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


# ---------------------------------------------------------------------------
# DATA STRUCTURES
# ---------------------------------------------------------------------------


@dataclass
class OAuthTokens:
    """
    Standardized token data from any OAuth provider.

    Returned by code exchange and by refresh. On refresh, refresh_token is
    None unless the provider rotated it.
    """
    access_token: str
    token_type: str = "Bearer"
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    scopes: Optional[List[str]] = None


# ---------------------------------------------------------------------------
# ABSTRACT BASE CLASSES
# ---------------------------------------------------------------------------


class EnvironmentProvider(ABC):
    """
    Abstract base class for OAuth providers.

    The provider is responsible for:
    - Generating authorization URLs
    - Exchanging authorization codes for tokens
    - Refreshing expired tokens (and classifying failures)
    - Revoking tokens on disconnect
    """

    # Unique identifier for this provider, used as the credential store key
    provider_name: str = ""

    @abstractmethod
    def is_configured(self) -> bool:
        """True when client credentials are present."""
        pass

    @abstractmethod
    def get_authorization_url(
        self,
        scopes: List[str],
        state: str,
        redirect_uri: Optional[str] = None,
    ) -> str:
        """
        Generate the OAuth authorization URL.

        Args:
            scopes: List of OAuth scopes to request
            state: Anti-forgery state parameter
            redirect_uri: Override the default redirect URI

        Returns:
            URL to redirect the user to for authorization
        """
        pass

    @abstractmethod
    async def exchange_code_for_tokens(
        self,
        code: str,
        redirect_uri: Optional[str] = None,
    ) -> OAuthTokens:
        """
        Exchange authorization code for access/refresh tokens.

        Raises:
            AuthenticationError: If code exchange fails
        """
        pass

    @abstractmethod
    async def refresh_access_token(self, refresh_token: str) -> OAuthTokens:
        """
        Use refresh token to get a new access token.

        Raises:
            InvalidGrantError: If the refresh token is revoked/expired
            TransientProviderError: If a later attempt may succeed
        """
        pass

    @abstractmethod
    async def revoke_token(self, token: str) -> bool:
        """
        Revoke an access or refresh token.

        Returns:
            True if revocation succeeded
        """
        pass


class EnvironmentService(ABC):
    """
    Abstract base class for API services within a provider.

    Services receive an already-valid access token; they never refresh.
    """

    service_name: str = ""

    # OAuth scopes required for this service to function
    required_scopes: List[str] = []

    @abstractmethod
    async def validate_access(self) -> bool:
        """
        Verify the access token is accepted by this service.
        """
        pass
