"""
Security utilities - password hashing and signed tokens.

Two kinds of signed tokens are issued with the same key:
- session tokens: proof of a sign-in session ("sub" = user id, "sid" = session id)
- OAuth state tokens: opaque anti-forgery value sent through the consent screen
  ("nonce" only, never the user id)

The "typ" claim keeps one kind from being accepted in place of the other.
"""

import uuid
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext

from authcore.core.config import settings

SESSION_TOKEN_TYPE = "session"
STATE_TOKEN_TYPE = "oauth_state"

# ---------------------------------------------------------------------------
# PASSWORD HASHING CONTEXT
# ---------------------------------------------------------------------------
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    """Hash a plaintext password using bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plaintext password against a stored hash."""
    return pwd_context.verify(plain_password, hashed_password)


# ---------------------------------------------------------------------------
# SESSION TOKENS
# ---------------------------------------------------------------------------


def create_session_token(
    user_id: uuid.UUID,
    session_id: uuid.UUID,
    expires_at: datetime,
) -> str:
    """
    Create the signed proof for a sign-in session.

    Args:
        user_id: Identity the session belongs to ("sub" claim)
        session_id: Primary key of the auth_sessions row ("sid" claim)
        expires_at: Same expiry as the session row

    Returns:
        A signed JWT string

    The payload is base64, not encrypted: it contains identifiers only.
    The session row is still consulted on every request, so deleting the
    row (sign-out) invalidates the token before "exp".
    """
    to_encode = {
        "sub": str(user_id),
        "sid": str(session_id),
        "typ": SESSION_TOKEN_TYPE,
        "exp": expires_at,
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_session_token(token: str) -> tuple[uuid.UUID, uuid.UUID]:
    """
    Verify a session token's signature and expiry.

    Returns:
        (user_id, session_id)

    Raises:
        JWTError: If the token is forged, expired, of the wrong type or malformed
    """
    payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])

    if payload.get("typ") != SESSION_TOKEN_TYPE:
        raise JWTError("Not a session token")

    try:
        return uuid.UUID(payload["sub"]), uuid.UUID(payload["sid"])
    except (KeyError, TypeError, ValueError) as e:
        raise JWTError("Malformed session token") from e


# ---------------------------------------------------------------------------
# OAUTH STATE TOKENS
# ---------------------------------------------------------------------------


def create_state_token(nonce: str, ttl: timedelta) -> str:
    """Sign an OAuth state nonce so tampering is detected before any lookup."""
    to_encode = {
        "nonce": nonce,
        "typ": STATE_TOKEN_TYPE,
        "exp": datetime.now(timezone.utc) + ttl,
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_state_token(state: str) -> str:
    """
    Verify an OAuth state token and return its nonce.

    Raises:
        JWTError: If the state is forged, expired or malformed
    """
    payload = jwt.decode(state, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])

    nonce = payload.get("nonce")
    if payload.get("typ") != STATE_TOKEN_TYPE or not isinstance(nonce, str):
        raise JWTError("Not an OAuth state token")

    return nonce
