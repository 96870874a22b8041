"""
Google Calendar Module - Calendar API access for calendar features.
"""

from authcore.environments.google.calendar.client import GoogleCalendarClient
from authcore.environments.google.calendar.schemas import (
    CalendarEvent,
    CalendarInfo,
    EventTime,
)

__all__ = [
    "GoogleCalendarClient",
    "CalendarEvent",
    "CalendarInfo",
    "EventTime",
]
