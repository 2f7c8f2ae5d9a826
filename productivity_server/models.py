"""
Data models for calendar events and conflict resolution.

This module contains the dataclasses used to represent events already on a
user's calendar and the results of checking a plan against them.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import typing as t

from planner_server.models import EventPlan


# Type literals for commonly used values
ConflictType = t.Literal["OVERLAP", "ADJACENT", "CONSTRAINT_VIOLATION"]
Severity = t.Literal["HIGH", "MEDIUM", "LOW"]


@dataclass
class EventDateTime:
    """A calendar timestamp as exchanged with the calendar provider."""
    date_time: str                  # ISO datetime
    time_zone: str = ""


@dataclass
class CalendarEvent:
    """Represents an event already on the calendar."""
    id: str
    title: str
    start: EventDateTime
    end: EventDateTime
    description: str = ""
    location: str = ""
    attendees: list[str] = field(default_factory=list)
    recurrence: list[str] = field(default_factory=list)     # ["RRULE:FREQ=WEEKLY;..."]
    source: str = ""                                        # e.g. "planner", "syllabus"


@dataclass(frozen=True)
class CalendarConflict:
    """One existing event (or rule) a plan collides with."""
    event_id: str
    title: str
    start: str
    end: str
    conflict_type: ConflictType
    severity: Severity


@dataclass(frozen=True)
class EventAlternative:
    """A shifted version of a plan with its score and rank (1 = best)."""
    rank: int
    plan: EventPlan
    score: float
    reasoning: str
    tradeoffs: list[str] = field(default_factory=list)


@dataclass
class ConflictResolution:
    """Result of checking one plan against the calendar."""
    conflicts: list[CalendarConflict] = field(default_factory=list)
    alternatives: list[EventAlternative] = field(default_factory=list)
    recommendation: str = ""
