# -*- coding: utf-8 -*-
from datetime import datetime

from fastmcp import FastMCP

from planner_server.models import EventPlan
from planner_server.temporal import parse_iso_datetime
from productivity_server.conflicts import ConflictResolver
from productivity_server.models import CalendarEvent, ConflictResolution
from productivity_server.providers import CalendarProviderError, InMemoryCalendarProvider

mcp = FastMCP("ProductivityServer")

calendar = InMemoryCalendarProvider()
resolver = ConflictResolver()


def _parse_bound(value: str, name: str) -> datetime:
    parsed = parse_iso_datetime(value)
    if parsed is None:
        raise ValueError(f"Invalid {name} timestamp: {value!r}")
    return parsed


@mcp.tool()
def check_conflicts(event_plan: EventPlan, existing_events: list[CalendarEvent]) -> ConflictResolution:
    """Checks a plan against the given events and proposes alternatives.

    :param event_plan: Candidate plan.
    :param existing_events: Events already on the calendar.
    :return: Conflicts, ranked alternatives and a recommendation.
    """
    return resolver.check_conflicts(event_plan, existing_events)


@mcp.tool()
def create_calendar_event(event_plan: EventPlan) -> CalendarEvent:
    """Writes a confirmed plan to the calendar.

    :param event_plan: The plan to create.
    :return: The created CalendarEvent.
    """
    return calendar.create_event(event_plan)


@mcp.tool()
def list_calendar_events(start: str, end: str) -> list[CalendarEvent]:
    """Lists events overlapping a time range.

    :param start: Range start in ISO format.
    :param end: Range end in ISO format.
    :return: Events sorted by start time.
    """
    return calendar.list_events(_parse_bound(start, "start"), _parse_bound(end, "end"))


@mcp.tool()
def delete_calendar_event(event_id: str) -> bool:
    """Deletes an event.

    :param event_id: Id of the event.
    :return: True if deleted, False if it did not exist.
    """
    try:
        calendar.delete_event(event_id)
    except CalendarProviderError:
        return False
    return True


def _format_datetime(iso_string: str) -> str:
    """Formats an ISO datetime string as 'Mon 1/15 2:30 PM'; unparseable input is returned as-is."""
    parsed = parse_iso_datetime(iso_string)
    if parsed is None:
        return iso_string
    return f"{parsed:%a} {parsed.month}/{parsed.day} {parsed.strftime('%I:%M %p').lstrip('0')}"


@mcp.tool()
def show_calendar_events() -> str:
    """Displays all calendar events as a plain-text table.

    :return: Formatted table, or a message if no events exist.
    """
    events = sorted(calendar.events.values(), key=lambda e: e.start.date_time)
    if not events:
        return "No calendar events found."

    lines = [
        f"{'#':<4} {'Title':<35} {'Start':<18} {'End':<18} {'Location':<20}",
        "-" * 100,
    ]
    for idx, event in enumerate(events, 1):
        lines.append(
            f"{idx:<4} {event.title[:34]:<35} {_format_datetime(event.start.date_time):<18} "
            f"{_format_datetime(event.end.date_time):<18} {(event.location or '-')[:19]:<20}"
        )
    lines.append(f"Total: {len(events)} event(s)")
    return "\n".join(lines)


if __name__ == "__main__":
    # Run as an MCP server over stdio
    mcp.run()
