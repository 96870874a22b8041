"""
Google Environment Module - Google Calendar integration.

google/
├── auth/       # OAuth client shared by every Google service
└── calendar/   # Calendar API client (consumes tokens, never refreshes)
"""

from authcore.environments.google.auth import (
    GoogleAuthClient,
    CALENDAR_SCOPES,
    DEFAULT_CALENDAR_ID,
)
from authcore.environments.google.calendar import GoogleCalendarClient, CalendarEvent, CalendarInfo

__all__ = [
    "GoogleAuthClient",
    "GoogleCalendarClient",
    "CalendarEvent",
    "CalendarInfo",
    "CALENDAR_SCOPES",
    "DEFAULT_CALENDAR_ID",
]
