"""
Google Auth Module - OAuth 2.0 for Google Calendar.

OAuth 2.0 Flow Overview:
========================
1. User asks to connect their calendar
2. Backend generates the authorization URL with a signed state
3. User grants permissions on Google's consent screen
4. Google redirects back with an authorization code
5. Backend exchanges the code for access + refresh tokens
6. Tokens are stored and refreshed on demand
"""

from authcore.environments.google.auth.client import GoogleAuthClient
from authcore.environments.google.auth.schemas import (
    GoogleTokenError,
    GoogleTokenResponse,
    CALENDAR_SCOPES,
    DEFAULT_CALENDAR_ID,
)

__all__ = [
    "GoogleAuthClient",
    "GoogleTokenError",
    "GoogleTokenResponse",
    "CALENDAR_SCOPES",
    "DEFAULT_CALENDAR_ID",
]
