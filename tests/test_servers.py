"""Tests for the MCP tool surfaces.

FastMCP wraps decorated functions in FunctionTool objects; the underlying
callables are reached through ``.fn``.
"""
import base64

import pytest

from planner_server import server as planner
from planner_server.models import EventPlan
from productivity_server import server as productivity
from productivity_server.providers import InMemoryCalendarProvider
from productivity_server.store import InMemoryAuditLog, InMemoryRecordStore
from syllabus_server import server as syllabus
from syllabus_server.service import SyllabusService


@pytest.fixture
def calendar(monkeypatch: pytest.MonkeyPatch) -> InMemoryCalendarProvider:
    fresh = InMemoryCalendarProvider()
    monkeypatch.setattr(productivity, "calendar", fresh)
    return fresh


def _plan() -> EventPlan:
    return EventPlan(
        id="p1",
        title="EE labs",
        start_date_time="2025-03-04T19:00:00+00:00",
        end_date_time="2025-03-04T21:00:00+00:00",
        location="Room 204",
    )


def test_planner_tools() -> None:
    """Test plan creation and the small parsing tools."""
    plans = planner.create_event_plan.fn("u1", "Block 7-9pm Tu/Th for EE labs")

    assert len(plans) == 2
    assert all(p.title == "EE labs" for p in plans)
    assert planner.parse_clock_time.fn("7pm") == "19:00"
    assert planner.parse_clock_time.fn("noon-ish") is None
    assert planner.parse_date.fn("Oct 12", 2025) == "2025-10-12"
    assert planner.validate_event_plan.fn(_plan()).is_valid


def test_calendar_tools(calendar: InMemoryCalendarProvider) -> None:
    """Test create, list, show and delete against the in-memory calendar."""
    assert productivity.show_calendar_events.fn() == "No calendar events found."

    created = productivity.create_calendar_event.fn(_plan())
    listed = productivity.list_calendar_events.fn("2025-03-04T00:00:00+00:00", "2025-03-05T00:00:00+00:00")
    table = productivity.show_calendar_events.fn()

    assert [e.id for e in listed] == [created.id]
    assert "EE labs" in table
    assert "Total: 1 event(s)" in table
    assert productivity.delete_calendar_event.fn(created.id) is True
    assert productivity.delete_calendar_event.fn(created.id) is False


def test_list_calendar_events_rejects_bad_bounds(calendar: InMemoryCalendarProvider) -> None:
    """Test that unreadable range bounds raise ValueError."""
    with pytest.raises(ValueError, match="Invalid start timestamp"):
        productivity.list_calendar_events.fn("yesterday", "2025-03-05T00:00:00+00:00")


def test_check_conflicts_tool() -> None:
    """Test that the conflict tool reports a clean slot."""
    resolution = productivity.check_conflicts.fn(_plan(), [])

    assert resolution.conflicts == []
    assert resolution.recommendation == "No conflicts detected. The proposed time slot is available."


def test_extract_syllabus_events_tool() -> None:
    """Test stateless extraction from syllabus text."""
    events = syllabus.extract_syllabus_events.fn("Midterm Exam on Oct 12, 2025 in class.", 2025)

    assert [(e.title, e.date, e.type) for e in events] == [("Midterm Exam", "2025-10-12", "exam")]


def test_parse_syllabus_upload_tool(monkeypatch: pytest.MonkeyPatch, syllabus_pdf: bytes) -> None:
    """Test that a base64 upload is parsed, stored and searchable."""
    monkeypatch.setattr(syllabus, "service", SyllabusService(InMemoryRecordStore(), InMemoryAuditLog()))

    analysis = syllabus.parse_syllabus_upload.fn("u1", base64.b64encode(syllabus_pdf).decode("ascii"), "ee101.pdf")

    assert analysis.course_info.name == "EE 101"
    assert [(e.title, e.date) for e in analysis.events] == [("Midterm Exam", "2025-10-12")]
    assert [e.title for e in syllabus.search_syllabus.fn("u1", "midterm")] == ["Midterm Exam"]
