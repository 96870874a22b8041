"""
Calendar Auth Router - connect a Google Calendar to the signed-in user.

Endpoints:
==========
- GET    /auth/calendar/connect  -> {"url": consent screen URL}
- GET    /auth/calendar/callback -> browser redirect back to the app
- GET    /auth/calendar/status   -> {"connected": bool, "calendarId": str | null}
- DELETE /auth/calendar          -> revoke and forget the grant

OAuth Flow:
===========
1. Frontend calls GET /auth/calendar/connect and navigates to the returned URL
2. User grants calendar access on Google's consent screen
3. Google redirects to /auth/calendar/callback?code=...&state=...
4. The state nonce identifies the user; the code is exchanged for tokens
5. Tokens are persisted and the browser lands on CALENDAR_SUCCESS_REDIRECT

Security:
=========
- state is a signed, single-use, 10 minute nonce that carries no identity
- the callback never echoes provider error text or the state back
- redirect_after accepts relative paths only (no open redirect)
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import RedirectResponse

from authcore.core.config import settings
from authcore.core.errors import ExchangeFailed, TransientAuthError
from authcore.deps import get_current_user, get_oauth_connector, get_token_manager
from authcore.models.user import User
from authcore.schemas.calendar import ConnectionStatusOut, ConnectResponse
from authcore.services.oauth_connector import OAuthConnector
from authcore.services.token_manager import TokenManager


logger = logging.getLogger("authcore.routers.calendar_auth")

router = APIRouter(prefix="/auth/calendar", tags=["calendar-auth"])


def is_safe_redirect(target: str) -> bool:
    """Relative in-app paths only: "/planner" yes, "//evil.com" or "https://..." no."""
    return (
        target.startswith("/")
        and not target.startswith("//")
        and "\\" not in target
        and not any(ch in target for ch in "\r\n")
    )


# ---------------------------------------------------------------------------
# ENDPOINTS
# ---------------------------------------------------------------------------


@router.get("/connect", response_model=ConnectResponse)
async def connect_calendar(
    current_user: User = Depends(get_current_user),
    connector: OAuthConnector = Depends(get_oauth_connector),
    redirect_after: Optional[str] = Query(None, description="App path to land on after connecting"),
):
    """
    Start the calendar OAuth flow for the signed-in user.

    Raises:
        400 Bad Request: redirect_after is not a relative path
        500: OAuth client credentials are not configured
    """
    if redirect_after is not None and not is_safe_redirect(redirect_after):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="redirect_after must be a relative path",
        )

    url = connector.build_authorization_url(current_user.id, redirect_after)
    return ConnectResponse(url=url)


@router.get("/callback")
async def calendar_callback(
    code: Optional[str] = Query(None, description="Authorization code from Google"),
    state: Optional[str] = Query(None, description="Signed state nonce"),
    error: Optional[str] = Query(None, description="Error from Google"),
    connector: OAuthConnector = Depends(get_oauth_connector),
    token_manager: TokenManager = Depends(get_token_manager),
):
    """
    Handle Google's redirect after the consent screen.

    Always answers with a redirect: success to redirect_after (or
    CALENDAR_SUCCESS_REDIRECT), any failure to CALENDAR_ERROR_REDIRECT.
    """
    error_redirect = RedirectResponse(url=settings.CALENDAR_ERROR_REDIRECT, status_code=status.HTTP_302_FOUND)

    if error:
        # Typically "access_denied": the user pressed cancel
        logger.info(f"Calendar consent not granted: {error}")
        return error_redirect

    if not code or not state:
        logger.warning("Calendar OAuth callback without code or state")
        return error_redirect

    try:
        pending = await connector.exchange_code(code, state)
    except ExchangeFailed:
        return error_redirect

    try:
        await token_manager.save_connection(pending.user_id, pending.tokens)
    except TransientAuthError:
        logger.error(f"Could not persist calendar connection for user {pending.user_id}")
        return error_redirect

    return RedirectResponse(
        url=pending.redirect_after or settings.CALENDAR_SUCCESS_REDIRECT,
        status_code=status.HTTP_302_FOUND,
    )


@router.get("/status", response_model=ConnectionStatusOut)
async def calendar_status(
    current_user: User = Depends(get_current_user),
    token_manager: TokenManager = Depends(get_token_manager),
):
    """Whether the user has a stored calendar grant. Never calls Google."""
    result = token_manager.connection_status(current_user.id)
    return ConnectionStatusOut(connected=result.connected, calendar_id=result.calendar_id)


@router.delete("")
async def disconnect_calendar(
    current_user: User = Depends(get_current_user),
    token_manager: TokenManager = Depends(get_token_manager),
):
    """
    Revoke the grant at Google (best effort) and delete the stored tokens.

    Raises:
        404 Not Found: If no calendar is connected
    """
    if not await token_manager.disconnect(current_user.id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No calendar connected",
        )

    return {"status": "success", "message": "Calendar disconnected"}
