"""
Error taxonomy of the auth core.

Every failure that crosses the core's boundary is one of these classes.
Each carries the HTTP status it maps to, a stable machine-readable code,
and a public message that is safe to show to the caller (no provider
text, no secrets).

    AuthCoreError
    ├── Unauthenticated        401  no/expired/forged session
    ├── Forbidden              403  valid session, insufficient role
    ├── NotConnected           409  calendar never connected
    │   └── ReauthRequired     409  grant revoked, record already purged
    ├── TransientAuthError     503  provider/network/store hiccup, retry later
    ├── ExchangeFailed         400  forged/expired/replayed OAuth callback
    └── ConnectorMisconfigured 500  OAuth client credentials missing
"""

from typing import Optional


class AuthCoreError(Exception):
    """Base class for classified auth core failures."""

    status_code: int = 500
    code: str = "auth_error"
    public_message: str = "Authentication error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


class Unauthenticated(AuthCoreError):
    status_code = 401
    code = "unauthenticated"
    public_message = "Could not validate credentials"


class Forbidden(AuthCoreError):
    status_code = 403
    code = "forbidden"
    public_message = "You don't have permission to perform this action"


class NotConnected(AuthCoreError):
    status_code = 409
    code = "calendar_not_connected"
    public_message = "Connect your calendar to use this feature"


class ReauthRequired(NotConnected):
    code = "calendar_reauth_required"
    public_message = "Calendar access was revoked. Connect your calendar again"


class TransientAuthError(AuthCoreError):
    """Retryable: the stored credential is intact, a later attempt may succeed."""

    status_code = 503
    code = "calendar_temporarily_unavailable"
    public_message = "Calendar provider is temporarily unavailable, try again"
    retry_after_seconds: int = 5


class ExchangeFailed(AuthCoreError):
    status_code = 400
    code = "calendar_connection_failed"
    public_message = "Calendar connection failed, try again"


class ConnectorMisconfigured(AuthCoreError):
    status_code = 500
    code = "calendar_unavailable"
    public_message = "Unable to start calendar connection"
