"""
Google Calendar API Client - Fetch calendars and events.

The client is handed an access token that the token manager already
vouched for; it never refreshes. A 401 here means the provider revoked
the token between our freshness check and this call.

API Reference:
==============
- Events API: https://developers.google.com/calendar/api/v3/reference/events
- CalendarList API: https://developers.google.com/calendar/api/v3/reference/calendarList
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional
from urllib.parse import quote

import httpx

from authcore.core.config import settings
from authcore.environments.base import EnvironmentService, APIError
from authcore.environments.google.calendar.schemas import (
    CalendarEvent,
    CalendarInfo,
    CalendarEventsResponse,
    CalendarListResponse,
)


logger = logging.getLogger("authcore.environments.google.calendar")


class GoogleCalendarClient(EnvironmentService):
    """
    Google Calendar API client.

    Example:
        client = GoogleCalendarClient(access_token="ya29.xxx")
        events = await client.list_upcoming_events(calendar_id="primary")
    """

    service_name = "calendar"
    required_scopes = [
        "https://www.googleapis.com/auth/calendar",
    ]

    BASE_URL = "https://www.googleapis.com/calendar/v3"

    def __init__(
        self,
        access_token: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_token = access_token
        self._transport = transport

    # -------------------------------------------------------------------------
    # HTTP
    # -------------------------------------------------------------------------

    def _get_headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
        }

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict] = None,
    ) -> dict:
        """
        Make an authenticated request to the Calendar API.

        Raises:
            APIError: If the request fails (status_code is None for network errors)
        """
        url = f"{self.BASE_URL}{endpoint}"

        async with httpx.AsyncClient(
            transport=self._transport, timeout=settings.PROVIDER_HTTP_TIMEOUT
        ) as client:
            try:
                response = await client.request(
                    method=method,
                    url=url,
                    headers=self._get_headers(),
                    params=params,
                )
            except httpx.HTTPError as e:
                logger.error(f"Network error in Calendar API: {type(e).__name__}")
                raise APIError("Network error") from e

        if response.status_code == 401:
            logger.error("Calendar API: Unauthorized (token revoked upstream)")
            raise APIError("Unauthorized", status_code=401)

        if response.status_code == 403:
            logger.error("Calendar API: Forbidden (scope may be missing)")
            raise APIError("Forbidden - calendar scope may not be granted", status_code=403)

        if response.status_code != 200:
            logger.error(f"Calendar API error: {response.status_code}")
            raise APIError(
                f"API request failed with status {response.status_code}",
                status_code=response.status_code,
                response=response.text,
            )

        return response.json()

    # -------------------------------------------------------------------------
    # CALENDAR EVENTS
    # -------------------------------------------------------------------------

    async def list_upcoming_events(
        self,
        calendar_id: str = "primary",
        max_results: int = 10,
        time_min: Optional[datetime] = None,
        time_max: Optional[datetime] = None,
    ) -> List[CalendarEvent]:
        """
        List upcoming events from a calendar, expanded and ordered by start time.

        Args:
            calendar_id: Calendar identifier ("primary" for the user's main calendar)
            max_results: Maximum number of events to return (1-2500)
            time_min: Start of time range (defaults to now)
            time_max: End of time range (optional)
        """
        if time_min is None:
            time_min = datetime.now(timezone.utc)

        params = {
            "maxResults": min(max_results, 2500),
            "timeMin": time_min.isoformat(),
            "singleEvents": "true",
            "orderBy": "startTime",
        }
        if time_max:
            params["timeMax"] = time_max.isoformat()

        response_data = await self._make_request(
            method="GET",
            endpoint=f"/calendars/{quote(calendar_id, safe='@')}/events",
            params=params,
        )

        events_response = CalendarEventsResponse(**response_data)
        logger.info(f"Fetched {len(events_response.items)} calendar events")

        return events_response.items

    # -------------------------------------------------------------------------
    # CALENDAR LIST
    # -------------------------------------------------------------------------

    async def list_calendars(self, max_results: int = 100) -> List[CalendarInfo]:
        """List calendars the user has access to."""
        response_data = await self._make_request(
            method="GET",
            endpoint="/users/me/calendarList",
            params={"maxResults": min(max_results, 250)},
        )

        return CalendarListResponse(**response_data).items

    async def validate_access(self) -> bool:
        """True if the Calendar API accepts the token."""
        try:
            await self.list_calendars(max_results=1)
        except APIError as e:
            if e.status_code in (401, 403):
                return False
            raise
        return True
