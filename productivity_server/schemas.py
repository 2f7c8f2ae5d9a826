"""
Pydantic models for the calendar service REST payloads.

These mirror the dataclasses in productivity_server.models so that JSON
coming back from the calendar service is validated before it is turned
into core types.
"""
from __future__ import annotations

from pydantic import BaseModel, Field


class EventDateTime(BaseModel):
    date_time: str
    time_zone: str = ""


class CalendarEvent(BaseModel):
    id: str
    title: str = ""
    start: EventDateTime
    end: EventDateTime
    description: str = ""
    location: str = ""
    attendees: list[str] = Field(default_factory=list)
    recurrence: list[str] = Field(default_factory=list)
    source: str = ""


class CreateCalendarEventRequest(BaseModel):
    """Request model for creating or replacing a calendar event."""
    title: str
    start: EventDateTime
    end: EventDateTime
    description: str = ""
    location: str = ""
    attendees: list[str] = Field(default_factory=list)
    recurrence: list[str] = Field(default_factory=list)
    source: str = "planner"
