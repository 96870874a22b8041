"""
Dependencies module - reusable FastAPI dependencies for route handlers.

Request pipeline for a protected route:
1. get_session_proofs: session cookie first, then "Authorization: Bearer"
2. get_verified_session: SessionVerifier resolves the first proof that
   verifies, so a stale cookie does not hide a valid header
3. get_current_identity: the verified user id
4. get_current_user / require_role(...): AuthorizationResolver loads the
   user and applies the surface's role requirement

Failures are raised as Unauthenticated / Forbidden; the app's exception
handler turns them into 401 / 403 before any feature code runs.

The OAuth connector and token manager are process-wide singletons: the
in-flight refresh registry and the OAuth nonce registry must be shared by
every request handled by this worker.
"""

import uuid
from datetime import timedelta
from functools import lru_cache
from typing import Callable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from authcore.core.config import settings
from authcore.db.session import SessionLocal, get_db
from authcore.environments.google import GoogleAuthClient
from authcore.models.user import Role, User
from authcore.services.authorization import AuthorizationResolver
from authcore.services.credential_store import SqlCredentialStore
from authcore.services.oauth_connector import OAuthConnector
from authcore.services.oauth_state import OAuthStateStore
from authcore.services.session_verifier import SessionVerifier
from authcore.services.token_manager import TokenManager

# ---------------------------------------------------------------------------
# SECURITY SCHEME
# ---------------------------------------------------------------------------
# auto_error=False: a missing header is not an error by itself, the cookie
# may still carry the proof. Keeps the lock icon in Swagger UI.
bearer_scheme = HTTPBearer(auto_error=False)


def get_session_proofs(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> list[str]:
    """Session cookie for browsers, bearer header for API clients, in that order."""
    proofs = []
    cookie = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if cookie:
        proofs.append(cookie)
    if credentials is not None and credentials.credentials not in proofs:
        proofs.append(credentials.credentials)
    return proofs


def get_verified_session(
    proofs: list[str] = Depends(get_session_proofs),
    db: Session = Depends(get_db),
) -> tuple[uuid.UUID, str]:
    """Return (user id, the proof that verified), or 401."""
    return SessionVerifier(db).resolve_any(proofs)


def get_current_identity(
    verified: tuple[uuid.UUID, str] = Depends(get_verified_session),
) -> uuid.UUID:
    """Resolve the request's session proof to a user id, or 401."""
    user_id, _ = verified
    return user_id


def get_current_user(
    user_id: uuid.UUID = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> User:
    """
    Return the signed-in, active user.

    Usage:
        @router.get("/me")
        def me(current_user: User = Depends(get_current_user)):
            ...
    """
    return AuthorizationResolver(db).authorize(user_id)


def require_role(role: Role) -> Callable[..., User]:
    """
    Dependency factory for role-guarded surfaces.

    Usage:
        @router.get("/admin/users")
        def list_users(admin: User = Depends(require_role(Role.ADMIN))):
            ...
    """

    def _guard(
        user_id: uuid.UUID = Depends(get_current_identity),
        db: Session = Depends(get_db),
    ) -> User:
        return AuthorizationResolver(db).authorize(user_id, role)

    return _guard


# ---------------------------------------------------------------------------
# CALENDAR SINGLETONS
# ---------------------------------------------------------------------------


@lru_cache
def get_oauth_connector() -> OAuthConnector:
    state_store = OAuthStateStore(ttl=timedelta(seconds=settings.OAUTH_STATE_TTL_SECONDS))
    return OAuthConnector(provider=GoogleAuthClient(), state_store=state_store)


@lru_cache
def get_token_manager() -> TokenManager:
    return TokenManager(
        store=SqlCredentialStore(SessionLocal),
        connector=get_oauth_connector(),
    )
