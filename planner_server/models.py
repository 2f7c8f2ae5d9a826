"""
Data models for natural-language scheduling.

This module contains the dataclasses used to represent a parsed scheduling
request and the candidate event plans generated from it.
"""
from __future__ import annotations

import typing as t
from dataclasses import dataclass, field, replace
from datetime import datetime


# Type literals for commonly used values
Frequency = t.Literal["DAILY", "WEEKLY", "MONTHLY"]
DayName = t.Literal[
    "MONDAY",
    "TUESDAY",
    "WEDNESDAY",
    "THURSDAY",
    "FRIDAY",
    "SATURDAY",
    "SUNDAY",
]

# Monday first, matching datetime.weekday()
WEEKDAYS: tuple[str, ...] = (
    "MONDAY",
    "TUESDAY",
    "WEDNESDAY",
    "THURSDAY",
    "FRIDAY",
    "SATURDAY",
    "SUNDAY",
)

DEFAULT_DURATION_MINUTES = 120
CONFIDENCE_CEILING = 0.95
UNTITLED_EVENT = "Untitled Event"


def _as_aware(value: str) -> datetime:
    # naive timestamps are taken as local time
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return parsed if parsed.tzinfo is not None else parsed.astimezone()


@dataclass(frozen=True)
class TimeOfDay:
    """A normalized clock time."""
    hours: int
    minutes: int = 0

    def as_clock(self) -> str:
        return f"{self.hours:02d}:{self.minutes:02d}"


@dataclass(frozen=True)
class TimeExpression:
    """
    A time mention found in request text, e.g.:
    - "7-9pm"  -> start 19:00, end 21:00
    - "2:30pm" -> start 14:30, no end
    """
    text: str
    start: TimeOfDay
    end: t.Optional[TimeOfDay] = None


@dataclass(frozen=True)
class TimeWindow:
    """A preferred clock-time window such as 19:00-21:00."""
    start: str                  # "HH:MM" 24h
    end: str                    # "HH:MM" 24h
    day_of_week: str = ""


@dataclass(frozen=True)
class TimeRange:
    """An aware span used while generating and checking slots."""
    start: datetime
    end: datetime

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)


@dataclass
class RecurrenceRule:
    """
    How a plan repeats. Maps onto an RFC 5545 RRULE when the plan is
    written to a calendar provider.
    """
    frequency: Frequency = "WEEKLY"
    interval: int = 1
    days_of_week: list[str] = field(default_factory=list)   # ["TUESDAY", "THURSDAY"]
    end_date: str = ""                                       # "YYYY-MM-DD" or ""
    count: t.Optional[int] = None


@dataclass
class EventConstraints:
    """Filters applied while generating slots."""
    avoid_days: list[str] = field(default_factory=list)
    preferred_times: list[TimeWindow] = field(default_factory=list)
    max_duration: t.Optional[int] = None     # minutes
    min_duration: t.Optional[int] = None     # minutes


@dataclass(frozen=True)
class EventPlan:
    """
    A single candidate event produced from one scheduling request.

    Plans are never changed after creation. Caller edits go through
    ``with_overrides`` which returns a new version carrying the same id.
    """
    id: str
    title: str
    start_date_time: str            # ISO datetime with offset
    end_date_time: str              # ISO datetime with offset
    constraints: EventConstraints = field(default_factory=EventConstraints)
    confidence: float = 0.0
    explanation: str = ""
    description: str = ""
    location: str = ""
    attendees: list[str] = field(default_factory=list)
    recurrence: t.Optional[RecurrenceRule] = None

    @property
    def starts_at(self) -> datetime:
        return _as_aware(self.start_date_time)

    @property
    def ends_at(self) -> datetime:
        return _as_aware(self.end_date_time)

    def with_overrides(
        self,
        title: t.Optional[str] = None,
        start: t.Optional[datetime] = None,
        end: t.Optional[datetime] = None,
    ) -> EventPlan:
        """Return an edited copy. Raises ValueError if the edit breaks start < end."""
        new_start = start or self.starts_at
        new_end = end or self.ends_at
        if new_start >= new_end:
            raise ValueError("End time must be after start time")
        return replace(
            self,
            title=title or self.title,
            start_date_time=new_start.isoformat(),
            end_date_time=new_end.isoformat(),
        )


@dataclass
class UserPreferences:
    """Per-user scheduling defaults."""
    user_id: str
    avoid_days: list[str] = field(default_factory=list)
    time_zone: str = ""                     # IANA name, e.g. "America/New_York"
    default_event_duration: int = DEFAULT_DURATION_MINUTES


@dataclass
class SchedulingContext:
    """Optional context sent alongside a request."""
    existing_events: list[t.Any] = field(default_factory=list)   # productivity_server CalendarEvent
    user_preferences: t.Optional[UserPreferences] = None


@dataclass
class SchedulingRequest:
    """One free-text scheduling request from a user."""
    user_id: str
    natural_language_input: str
    context: t.Optional[SchedulingContext] = None


@dataclass
class ParsedSchedule:
    """Everything the heuristic extractor pulled out of one request."""
    title: t.Optional[str] = None
    duration: int = DEFAULT_DURATION_MINUTES
    explicit_duration: bool = False
    time_expressions: list[TimeExpression] = field(default_factory=list)
    days_of_week: list[str] = field(default_factory=list)
    frequency: t.Optional[Frequency] = None
    constraints: EventConstraints = field(default_factory=EventConstraints)
    location: t.Optional[str] = None
    attendees: list[str] = field(default_factory=list)
    description: t.Optional[str] = None
    recurrence: t.Optional[RecurrenceRule] = None


@dataclass
class PlanValidation:
    """Result of checking a caller-edited plan before confirmation."""
    is_valid: bool
    issues: list[str] = field(default_factory=list)
