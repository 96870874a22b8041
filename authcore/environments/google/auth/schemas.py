"""
Google OAuth Schemas - Data structures for the Google token endpoint.

Reference: https://developers.google.com/identity/protocols/oauth2/web-server
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, List

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# OAUTH SCOPE CONSTANTS
# ---------------------------------------------------------------------------
# Read/write calendar access: features both read events and push planner items.
CALENDAR_SCOPES = [
    "https://www.googleapis.com/auth/calendar",
]

# Calendar used when the user has not picked one
DEFAULT_CALENDAR_ID = "primary"


# ---------------------------------------------------------------------------
# TOKEN RESPONSES
# ---------------------------------------------------------------------------

class GoogleTokenResponse(BaseModel):
    """
    Successful response from Google's token endpoint.

    Example:
    {
        "access_token": "ya29.a0AfB_byC...",
        "expires_in": 3599,
        "refresh_token": "1//0eXyz...",
        "scope": "https://www.googleapis.com/auth/calendar",
        "token_type": "Bearer"
    }

    refresh_token is only present on the first consent (or when rotated).
    """
    access_token: str = Field(..., description="OAuth access token")
    token_type: str = Field(default="Bearer", description="Token type (usually Bearer)")
    expires_in: Optional[int] = Field(None, description="Seconds until expiration")
    refresh_token: Optional[str] = Field(None, description="Refresh token for renewal")
    scope: Optional[str] = Field(None, description="Space-separated scopes granted")

    def get_scopes_list(self) -> List[str]:
        """Convert space-separated scope string to list."""
        if self.scope:
            return self.scope.split()
        return []

    def get_expires_at(self, now: Optional[datetime] = None) -> Optional[datetime]:
        """Calculate expiration datetime from expires_in seconds."""
        if self.expires_in is None:
            return None
        now = now or datetime.now(timezone.utc)
        return now + timedelta(seconds=self.expires_in)


class GoogleTokenError(BaseModel):
    """
    Error body from Google's token endpoint.

    Example:
    {
        "error": "invalid_grant",
        "error_description": "Token has been expired or revoked."
    }
    """
    error: str = Field(default="unknown_error")
    error_description: Optional[str] = Field(None)

    @property
    def is_invalid_grant(self) -> bool:
        return self.error == "invalid_grant"
