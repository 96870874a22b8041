"""
Calendar schemas - bodies of the calendar connection and calendar read routes.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from authcore.environments.google import CalendarEvent, CalendarInfo


class ConnectResponse(BaseModel):
    """Consent screen URL; the frontend navigates the browser to it."""
    url: str


class ConnectionStatusOut(BaseModel):
    """
    Schema for GET /auth/calendar/status.

    Example response:
    {"connected": true, "calendarId": "primary"}
    """
    model_config = ConfigDict(populate_by_name=True)

    connected: bool
    calendar_id: Optional[str] = Field(None, alias="calendarId")


class EventOut(BaseModel):
    id: str
    title: str
    start: Optional[str] = None
    end: Optional[str] = None
    all_day: bool = False
    location: Optional[str] = None
    html_link: Optional[str] = None

    @classmethod
    def from_event(cls, event: CalendarEvent) -> "EventOut":
        return cls(
            id=event.id,
            title=event.get_display_title(),
            start=event.start.as_iso() if event.start else None,
            end=event.end.as_iso() if event.end else None,
            all_day=event.start.is_all_day() if event.start else False,
            location=event.location,
            html_link=event.html_link,
        )


class EventListOut(BaseModel):
    calendar_id: str
    events: List[EventOut]


class CalendarOut(BaseModel):
    id: str
    summary: str
    primary: bool = False

    @classmethod
    def from_info(cls, info: CalendarInfo) -> "CalendarOut":
        return cls(id=info.id, summary=info.summary, primary=bool(info.primary))
