"""
Auth router - registration, sign-in and sign-out.

Sign-in creates a row in auth_sessions and hands out a signed token that
points at it. The token goes back both as JSON (API clients) and as an
httponly cookie (browsers). Sign-out deletes the row, which kills the
token immediately even though its "exp" is still in the future.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from authcore.core.config import settings
from authcore.core.errors import Forbidden, Unauthenticated
from authcore.core.security import (
    create_session_token,
    decode_session_token,
    hash_password,
    verify_password,
)
from authcore.db.session import get_db
from authcore.deps import get_verified_session
from authcore.models.auth_session import AuthSession
from authcore.models.user import Role, User
from authcore.schemas.auth import SessionToken, UserLogin, UserRegister
from authcore.schemas.user import UserOut


logger = logging.getLogger("authcore.routers.auth")

# ---------------------------------------------------------------------------
# ROUTER SETUP
# ---------------------------------------------------------------------------
router = APIRouter(prefix="/auth", tags=["auth"])


# ---------------------------------------------------------------------------
# POST /auth/register - Create a new user account
# ---------------------------------------------------------------------------
@router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def register(payload: UserRegister, db: Session = Depends(get_db)):
    """
    Register a new user account with the default "user" role.

    Raises:
        400 Bad Request: If email is already registered
    """
    existing = db.query(User).filter(User.email == payload.email).first()

    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered",
        )

    user = User(
        email=payload.email,
        hashed_password=hash_password(payload.password),
        display_name=payload.display_name,
        role=Role.USER.value,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info(f"Registered user {user.id}")
    return user


# ---------------------------------------------------------------------------
# POST /auth/login - Start a session
# ---------------------------------------------------------------------------
@router.post("/login", response_model=SessionToken)
def login(
    payload: UserLogin,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
):
    """
    Check the password, open a session and return its token.

    Raises:
        401 Unauthorized: Unknown email or wrong password (same message for both)
        403 Forbidden: Account is inactive
    """
    user = db.query(User).filter(User.email == payload.email).first()

    if not user or not verify_password(payload.password, user.hashed_password):
        raise Unauthenticated("Invalid email or password")

    if not user.is_active:
        raise Forbidden("Account is inactive")

    expires_at = datetime.now(timezone.utc) + timedelta(minutes=settings.SESSION_EXPIRE_MINUTES)

    session_row = AuthSession(
        user_id=user.id,
        user_agent=(request.headers.get("user-agent") or "")[:255] or None,
        expires_at=expires_at,
    )
    db.add(session_row)
    db.commit()
    db.refresh(session_row)

    token = create_session_token(user.id, session_row.id, expires_at)

    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.SESSION_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
    )

    logger.info(f"User {user.id} signed in (session {session_row.id})")
    return SessionToken(access_token=token, expires_at=expires_at)


# ---------------------------------------------------------------------------
# POST /auth/logout - End the current session
# ---------------------------------------------------------------------------
@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(
    verified: tuple[uuid.UUID, str] = Depends(get_verified_session),
    db: Session = Depends(get_db),
):
    # End the session whose proof verified, not a stale one next to it
    user_id, proof = verified
    _, session_id = decode_session_token(proof)

    session_row = db.get(AuthSession, session_id)
    if session_row is not None:
        db.delete(session_row)
        db.commit()

    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    response.delete_cookie(settings.SESSION_COOKIE_NAME)

    logger.info(f"User {user_id} signed out (session {session_id})")
    return response
