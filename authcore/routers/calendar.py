"""
Calendar router - reads the signed-in user's calendar.

Tokens always come from TokenManager.get_valid_access_token; this module
never looks at expiry or refreshes by itself. A transient token failure
is retried with exponential backoff, then surfaces as 503.
"""

import logging
import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from authcore.core.config import settings
from authcore.core.errors import TransientAuthError
from authcore.deps import get_current_user, get_token_manager
from authcore.environments.base import APIError
from authcore.environments.google import DEFAULT_CALENDAR_ID, GoogleCalendarClient
from authcore.models.user import User
from authcore.schemas.calendar import CalendarOut, EventListOut, EventOut
from authcore.services.token_manager import TokenManager


logger = logging.getLogger("authcore.routers.calendar")

router = APIRouter(prefix="/calendar", tags=["calendar"])


@retry(
    stop=stop_after_attempt(settings.TRANSIENT_RETRY_ATTEMPTS),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
    retry=retry_if_exception_type(TransientAuthError),
    reraise=True,
)
async def get_access_token(token_manager: TokenManager, user_id: uuid.UUID) -> str:
    return await token_manager.get_valid_access_token(user_id)


def _provider_failure(e: APIError) -> HTTPException:
    logger.error(f"Calendar API call failed: status={e.status_code}")
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail="Calendar provider rejected the request",
    )


# ---------------------------------------------------------------------------
# GET /calendar/events - Upcoming events from the connected calendar
# ---------------------------------------------------------------------------
@router.get("/events", response_model=EventListOut)
async def list_events(
    max_results: int = Query(10, ge=1, le=250),
    current_user: User = Depends(get_current_user),
    token_manager: TokenManager = Depends(get_token_manager),
):
    access_token = await get_access_token(token_manager, current_user.id)
    calendar_id = token_manager.connection_status(current_user.id).calendar_id or DEFAULT_CALENDAR_ID

    client = GoogleCalendarClient(access_token=access_token)
    try:
        events = await client.list_upcoming_events(calendar_id=calendar_id, max_results=max_results)
    except APIError as e:
        raise _provider_failure(e)

    return EventListOut(
        calendar_id=calendar_id,
        events=[EventOut.from_event(event) for event in events],
    )


# ---------------------------------------------------------------------------
# GET /calendar/calendars - Calendars the grant can see
# ---------------------------------------------------------------------------
@router.get("/calendars", response_model=List[CalendarOut])
async def list_calendars(
    current_user: User = Depends(get_current_user),
    token_manager: TokenManager = Depends(get_token_manager),
):
    access_token = await get_access_token(token_manager, current_user.id)

    client = GoogleCalendarClient(access_token=access_token)
    try:
        calendars = await client.list_calendars()
    except APIError as e:
        raise _provider_failure(e)

    return [CalendarOut.from_info(info) for info in calendars]
