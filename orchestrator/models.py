"""
Data models for LLM-assisted request analysis.

The LLM payload is split into tagged variants, one per group of extracted
fields, so each group can be checked and converted on its own.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import typing as t

from planner_server.models import EventPlan, Frequency
from productivity_server.models import ConflictResolution

Intent = t.Literal["SCHEDULE_EVENT", "MODIFY_EVENT", "QUERY_CALENDAR", "UNCLEAR"]
PlanSource = t.Literal["llm", "heuristic"]


@dataclass(frozen=True)
class TemporalExtraction:
    """When the event happens, e.g. ["7-9pm"] on ["TUESDAY", "THURSDAY"]."""
    title: t.Optional[str] = None
    duration: t.Optional[int] = None                 # minutes
    preferred_times: tuple[str, ...] = ()
    days_of_week: tuple[str, ...] = ()
    kind: t.Literal["temporal"] = field(default="temporal", init=False)


@dataclass(frozen=True)
class ConstraintExtraction:
    """What to avoid plus where and with whom."""
    avoid_days: tuple[str, ...] = ()
    avoid_times: tuple[str, ...] = ()
    location: t.Optional[str] = None
    attendees: tuple[str, ...] = ()
    kind: t.Literal["constraint"] = field(default="constraint", init=False)


@dataclass(frozen=True)
class RecurrenceExtraction:
    """How often the event repeats; None means once."""
    frequency: t.Optional[Frequency] = None
    kind: t.Literal["recurrence"] = field(default="recurrence", init=False)


@dataclass(frozen=True)
class LLMAnalysis:
    """Validated result of one LLM extraction call."""
    intent: Intent
    confidence: float
    temporal: TemporalExtraction = field(default_factory=TemporalExtraction)
    constraints: ConstraintExtraction = field(default_factory=ConstraintExtraction)
    recurrence: RecurrenceExtraction = field(default_factory=RecurrenceExtraction)
    clarification_needed: tuple[str, ...] = ()
    suggestions: tuple[str, ...] = ()


@dataclass
class AnalysisResult:
    """What analyze_request hands back to the caller."""
    plans: list[EventPlan]
    source: PlanSource
    original_input: str
    timestamp: str
    llm_analysis: t.Optional[LLMAnalysis] = None
    conflicts: dict[str, ConflictResolution] = field(default_factory=dict)   # plan id -> resolution
