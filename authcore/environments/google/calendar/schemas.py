"""
Google Calendar Schemas - Data structures for calendar reads.

Reference: https://developers.google.com/calendar/api/v3/reference
"""

from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field


class EventTime(BaseModel):
    """
    Event start or end time.

    Google returns either dateTime (timed events) or date (all-day events).
    """
    model_config = ConfigDict(populate_by_name=True)

    date_time: Optional[datetime] = Field(None, alias="dateTime")
    date: Optional[str] = Field(None)  # YYYY-MM-DD for all-day events
    time_zone: Optional[str] = Field(None, alias="timeZone")

    def is_all_day(self) -> bool:
        return self.date is not None and self.date_time is None

    def as_iso(self) -> Optional[str]:
        """dateTime if present, else the all-day date."""
        if self.date_time:
            return self.date_time.isoformat()
        return self.date


class CalendarEvent(BaseModel):
    """
    A Google Calendar event (the fields calendar features use).
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Unique event identifier")
    summary: Optional[str] = Field(None, description="Event title")
    description: Optional[str] = Field(None)
    location: Optional[str] = Field(None)
    start: Optional[EventTime] = Field(None)
    end: Optional[EventTime] = Field(None)
    status: Optional[str] = Field(None, description="confirmed, tentative, cancelled")
    html_link: Optional[str] = Field(None, alias="htmlLink")

    def get_display_title(self) -> str:
        return self.summary or "Untitled Event"


class CalendarInfo(BaseModel):
    """
    Information about a Google Calendar, as returned by CalendarList.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Calendar identifier (usually email)")
    summary: str = Field(..., description="Calendar title")
    primary: Optional[bool] = Field(False)
    access_role: Optional[str] = Field(None, alias="accessRole")


class CalendarEventsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: List[CalendarEvent] = Field(default_factory=list)
    next_page_token: Optional[str] = Field(None, alias="nextPageToken")


class CalendarListResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: List[CalendarInfo] = Field(default_factory=list)
    next_page_token: Optional[str] = Field(None, alias="nextPageToken")
