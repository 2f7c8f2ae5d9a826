"""
Calendar provider port and adapters.

The core never talks to a calendar directly. Callers pick a provider:

- InMemoryCalendarProvider for the CLI, the MCP server and tests
- HttpCalendarProvider for a REST calendar service

Every provider failure surfaces as CalendarProviderError so callers can fall
back without catching transport-specific exceptions.
"""
from __future__ import annotations

import abc
import logging
import os
import typing as t
import uuid
from datetime import datetime

import httpx
from pydantic import ValidationError

from planner_server.models import EventPlan, RecurrenceRule
from planner_server.temporal import parse_iso_datetime
from productivity_server.models import CalendarEvent, EventDateTime
from productivity_server.schemas import (CalendarEvent as CalendarEventPayload, CreateCalendarEventRequest,
                                         EventDateTime as EventDateTimePayload)

logger = logging.getLogger(__name__)

# Service URL - configurable via environment variable
CALENDAR_SERVICE_URL = os.getenv("CALENDAR_SERVICE_URL", "http://localhost:8003")

# Timeout for calendar CRUD calls (in seconds)
CALENDAR_TIMEOUT = float(os.getenv("CALENDAR_TIMEOUT", "30"))


class CalendarProviderError(RuntimeError):
    """Raised when the calendar cannot be read or written."""


def build_recurrence_rule(rule: t.Optional[RecurrenceRule]) -> list[str]:
    """RFC 5545 RRULE lines for a recurrence, e.g. ["RRULE:FREQ=WEEKLY;BYDAY=TU,TH"]."""
    if rule is None:
        return []

    parts = [f"FREQ={rule.frequency}"]
    if rule.interval > 1:
        parts.append(f"INTERVAL={rule.interval}")
    if rule.days_of_week:
        parts.append("BYDAY=" + ",".join(day[:2].upper() for day in rule.days_of_week))
    if rule.end_date:
        parts.append(f"UNTIL={rule.end_date.replace('-', '')}T235959Z")
    elif rule.count:
        parts.append(f"COUNT={rule.count}")
    return ["RRULE:" + ";".join(parts)]


def plan_to_event(plan: EventPlan, event_id: str, source: str = "planner") -> CalendarEvent:
    return CalendarEvent(
        id=event_id,
        title=plan.title,
        start=EventDateTime(date_time=plan.start_date_time),
        end=EventDateTime(date_time=plan.end_date_time),
        description=plan.description,
        location=plan.location,
        attendees=list(plan.attendees),
        recurrence=build_recurrence_rule(plan.recurrence),
        source=source,
    )


def _payload_to_event(payload: CalendarEventPayload) -> CalendarEvent:
    return CalendarEvent(
        id=payload.id,
        title=payload.title,
        start=EventDateTime(**payload.start.model_dump()),
        end=EventDateTime(**payload.end.model_dump()),
        description=payload.description,
        location=payload.location,
        attendees=list(payload.attendees),
        recurrence=list(payload.recurrence),
        source=payload.source,
    )


def parse_calendar_events(items: t.Iterable[t.Any]) -> list[CalendarEvent]:
    """Validate raw event dicts; malformed items are skipped."""
    events: list[CalendarEvent] = []
    for item in items:
        try:
            events.append(_payload_to_event(CalendarEventPayload.model_validate(item)))
        except ValidationError:
            logger.debug("Skipping malformed calendar event %r", item)
    return events


def _plan_to_request(plan: EventPlan) -> CreateCalendarEventRequest:
    return CreateCalendarEventRequest(
        title=plan.title,
        start=EventDateTimePayload(date_time=plan.start_date_time),
        end=EventDateTimePayload(date_time=plan.end_date_time),
        description=plan.description,
        location=plan.location,
        attendees=list(plan.attendees),
        recurrence=build_recurrence_rule(plan.recurrence),
    )


class CalendarProvider(abc.ABC):
    """List / create / update / delete events on one user's calendar."""

    @abc.abstractmethod
    def list_events(self, start: datetime, end: datetime) -> list[CalendarEvent]:
        ...

    @abc.abstractmethod
    def create_event(self, plan: EventPlan) -> CalendarEvent:
        ...

    @abc.abstractmethod
    def update_event(self, event_id: str, plan: EventPlan) -> CalendarEvent:
        ...

    @abc.abstractmethod
    def delete_event(self, event_id: str) -> None:
        ...


class InMemoryCalendarProvider(CalendarProvider):
    """Calendar held in a dict, keyed by event id."""

    def __init__(self, events: t.Iterable[CalendarEvent] = ()):
        self.events: dict[str, CalendarEvent] = {event.id: event for event in events}

    def list_events(self, start: datetime, end: datetime) -> list[CalendarEvent]:
        found: list[tuple[datetime, CalendarEvent]] = []
        for event in self.events.values():
            event_start = parse_iso_datetime(event.start.date_time)
            event_end = parse_iso_datetime(event.end.date_time)
            if event_start is None or event_end is None:
                continue
            if event_start < end and event_end > start:
                found.append((event_start, event))
        found.sort(key=lambda item: item[0])
        return [event for _, event in found]

    def create_event(self, plan: EventPlan) -> CalendarEvent:
        event = plan_to_event(plan, event_id=str(uuid.uuid4()))
        self.events[event.id] = event
        return event

    def update_event(self, event_id: str, plan: EventPlan) -> CalendarEvent:
        if event_id not in self.events:
            raise CalendarProviderError(f"Calendar event not found: {event_id}")
        event = plan_to_event(plan, event_id=event_id, source=self.events[event_id].source or "planner")
        self.events[event_id] = event
        return event

    def delete_event(self, event_id: str) -> None:
        if self.events.pop(event_id, None) is None:
            raise CalendarProviderError(f"Calendar event not found: {event_id}")


class HttpCalendarProvider(CalendarProvider):
    """
    Calendar provider backed by a REST calendar service.

    Routes:
    - GET    /calendar/events?time_min=..&time_max=..
    - POST   /calendar/event
    - PUT    /calendar/event/{event_id}
    - DELETE /calendar/event/{event_id}
    """

    def __init__(
            self,
            base_url: str = CALENDAR_SERVICE_URL,
            timeout: float = CALENDAR_TIMEOUT,
            transport: t.Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.request(method, f"{self.base_url}{path}", **kwargs)
                response.raise_for_status()
            return response
        except httpx.TimeoutException as e:
            raise CalendarProviderError(f"Calendar request timed out after {self.timeout} seconds") from e
        except httpx.HTTPStatusError as e:
            raise CalendarProviderError(
                f"HTTP error from calendar service: {e.response.status_code} {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            raise CalendarProviderError(f"Error calling calendar service: {e}") from e

    def _parse_event(self, response: httpx.Response) -> CalendarEvent:
        try:
            return _payload_to_event(CalendarEventPayload(**response.json()))
        except (ValueError, TypeError, ValidationError) as e:
            raise CalendarProviderError(f"Malformed event from calendar service: {e}") from e

    def list_events(self, start: datetime, end: datetime) -> list[CalendarEvent]:
        response = self._request(
            "GET",
            "/calendar/events",
            params={"time_min": start.isoformat(), "time_max": end.isoformat()},
        )
        try:
            items = response.json()
        except ValueError as e:
            raise CalendarProviderError(f"Malformed response from calendar service: {e}") from e

        return parse_calendar_events(items or [])

    def create_event(self, plan: EventPlan) -> CalendarEvent:
        response = self._request("POST", "/calendar/event", json=_plan_to_request(plan).model_dump())
        return self._parse_event(response)

    def update_event(self, event_id: str, plan: EventPlan) -> CalendarEvent:
        response = self._request("PUT", f"/calendar/event/{event_id}", json=_plan_to_request(plan).model_dump())
        return self._parse_event(response)

    def delete_event(self, event_id: str) -> None:
        self._request("DELETE", f"/calendar/event/{event_id}")
