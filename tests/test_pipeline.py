"""Tests for the two-stage scheduling pipeline.

The LLM is replaced by small fake analyzers so that acceptance, fallback
and timeout behaviour can be checked without network access.
"""
import time
import typing as t
from datetime import datetime, timezone

import pytest

from orchestrator.analyzer import LLMExtractionError
from orchestrator.models import ConstraintExtraction, LLMAnalysis, RecurrenceExtraction, TemporalExtraction
from orchestrator.pipeline import SchedulingOrchestrator, schedule_from_analysis
from planner_server.models import EventPlan, SchedulingContext, SchedulingRequest, TimeOfDay, UserPreferences
from productivity_server.models import CalendarEvent, EventDateTime
from productivity_server.providers import CalendarProviderError, InMemoryCalendarProvider
from productivity_server.store import InMemoryAuditLog

# Monday 2025-03-03 10:00 UTC
NOW = datetime(2025, 3, 3, 10, 0, tzinfo=timezone.utc)

HEURISTIC_TEXT = "Block 7-9pm Tu/Th for EE labs"


def study_group(intent: str = "SCHEDULE_EVENT", confidence: float = 0.9) -> LLMAnalysis:
    return LLMAnalysis(
        intent=intent,
        confidence=confidence,
        temporal=TemporalExtraction(
            title="Study group",
            duration=60,
            preferred_times=("6pm",),
            days_of_week=("WEDNESDAY",),
        ),
        constraints=ConstraintExtraction(location="Library"),
    )


class FakeAnalyzer:
    """Returns a fixed analysis, raises, or stalls."""

    def __init__(
            self,
            analysis: t.Optional[LLMAnalysis] = None,
            error: t.Optional[Exception] = None,
            delay: float = 0.0,
    ) -> None:
        self.analysis = analysis
        self.error = error
        self.delay = delay
        self.calls: list[str] = []

    def analyze(self, text: str) -> LLMAnalysis:
        self.calls.append(text)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.analysis


class BrokenCalendar(InMemoryCalendarProvider):
    def list_events(self, start, end):
        raise CalendarProviderError("calendar offline")


def request(text: str = HEURISTIC_TEXT, existing: t.Optional[list] = None) -> SchedulingRequest:
    return SchedulingRequest(
        user_id="u1",
        natural_language_input=text,
        context=SchedulingContext(existing_events=existing or []),
    )


def _event(start: str, end: str) -> CalendarEvent:
    return CalendarEvent(id="e1", title="Lab", start=EventDateTime(date_time=start), end=EventDateTime(date_time=end))


@pytest.mark.asyncio
async def test_heuristic_only_without_analyzer() -> None:
    """Test that the deterministic planner answers when no LLM is configured."""
    result = await SchedulingOrchestrator().analyze_request(request(), now=NOW)

    assert result.source == "heuristic"
    assert result.llm_analysis is None
    assert [p.start_date_time for p in result.plans] == [
        "2025-03-04T19:00:00+00:00",
        "2025-03-06T19:00:00+00:00",
    ]
    assert result.original_input == HEURISTIC_TEXT
    assert result.conflicts == {}


@pytest.mark.asyncio
async def test_confident_llm_analysis_is_used() -> None:
    """Test that a confident SCHEDULE_EVENT analysis replaces the heuristic plans."""
    analyzer = FakeAnalyzer(study_group())
    orchestrator = SchedulingOrchestrator(analyzer=analyzer)

    result = await orchestrator.analyze_request(request("study group wed 6pm for an hour at the library"), now=NOW)

    assert result.source == "llm"
    assert analyzer.calls == ["study group wed 6pm for an hour at the library"]
    assert len(result.plans) == 1
    plan = result.plans[0]
    assert plan.title == "Study group"
    assert plan.start_date_time == "2025-03-05T18:00:00+00:00"
    assert plan.end_date_time == "2025-03-05T19:00:00+00:00"
    assert plan.location == "Library"
    assert plan.confidence == 0.85


@pytest.mark.parametrize(
    "analysis",
    [study_group(confidence=0.5), study_group(confidence=0.6), study_group(intent="UNCLEAR")],
)
@pytest.mark.asyncio
async def test_weak_or_off_topic_analysis_falls_back(analysis: LLMAnalysis) -> None:
    """Test that low confidence or a non-scheduling intent keeps the heuristic plans."""
    result = await SchedulingOrchestrator(analyzer=FakeAnalyzer(analysis)).analyze_request(request(), now=NOW)

    assert result.source == "heuristic"
    assert result.llm_analysis == analysis
    assert all(p.title == "EE labs" for p in result.plans)


@pytest.mark.asyncio
async def test_llm_failure_falls_back() -> None:
    """Test that an extraction error is logged and the heuristic plans returned."""
    analyzer = FakeAnalyzer(error=LLMExtractionError("No function call response from OpenAI"))

    result = await SchedulingOrchestrator(analyzer=analyzer).analyze_request(request(), now=NOW)

    assert result.source == "heuristic"
    assert result.llm_analysis is None
    assert len(result.plans) == 2


@pytest.mark.asyncio
async def test_llm_timeout_falls_back() -> None:
    """Test that a stalled LLM call is abandoned after the timeout."""
    analyzer = FakeAnalyzer(study_group(), delay=0.3)
    orchestrator = SchedulingOrchestrator(analyzer=analyzer, llm_timeout=0.05)

    started = time.monotonic()
    result = await orchestrator.analyze_request(request(), now=NOW)

    assert time.monotonic() - started < 0.25
    assert result.source == "heuristic"


@pytest.mark.asyncio
async def test_conflicts_are_checked_per_plan() -> None:
    """Test that existing events produce one resolution per plan."""
    existing = [_event("2025-03-04T19:00:00+00:00", "2025-03-04T21:00:00+00:00")]

    result = await SchedulingOrchestrator().analyze_request(request(existing=existing), now=NOW)

    assert set(result.conflicts) == {p.id for p in result.plans}
    tuesday, thursday = result.plans
    assert result.conflicts[tuesday.id].conflicts[0].severity == "HIGH"
    assert result.conflicts[thursday.id].conflicts == []


@pytest.mark.asyncio
async def test_request_is_audited() -> None:
    """Test the ANALYZE_REQUEST audit entry."""
    audit = InMemoryAuditLog()

    await SchedulingOrchestrator(audit=audit).analyze_request(request(), now=NOW)

    assert audit.entries[0].action == "ANALYZE_REQUEST"
    assert audit.entries[0].details == {"input": HEURISTIC_TEXT, "source": "heuristic", "plans": 2}


@pytest.mark.asyncio
async def test_empty_request_is_rejected() -> None:
    """Test that blank input raises ValueError before any work is done."""
    analyzer = FakeAnalyzer(study_group())

    with pytest.raises(ValueError):
        await SchedulingOrchestrator(analyzer=analyzer).analyze_request(request("  "), now=NOW)
    assert analyzer.calls == []


def test_schedule_from_analysis() -> None:
    """Test the conversion from LLM fields to a parsed schedule."""
    analysis = LLMAnalysis(
        intent="SCHEDULE_EVENT",
        confidence=0.9,
        temporal=TemporalExtraction(
            title="EE labs",
            preferred_times=("7-9pm",),
            days_of_week=("THURSDAY", "TUESDAY"),
        ),
        constraints=ConstraintExtraction(avoid_days=("FRIDAY",)),
        recurrence=RecurrenceExtraction(frequency="WEEKLY"),
    )

    parsed = schedule_from_analysis(analysis, "Block 7-9pm Tu/Th for EE labs")

    assert parsed.days_of_week == ["TUESDAY", "THURSDAY"]
    assert parsed.time_expressions[0].start == TimeOfDay(19, 0)
    assert parsed.time_expressions[0].end == TimeOfDay(21, 0)
    assert parsed.duration == 120
    assert not parsed.explicit_duration
    assert parsed.constraints.avoid_days == ["FRIDAY"]
    assert parsed.recurrence is not None
    assert parsed.recurrence.days_of_week == ["TUESDAY", "THURSDAY"]
    assert parsed.description == 'Generated from: "Block 7-9pm Tu/Th for EE labs"'


def _tuesday_plan() -> EventPlan:
    return EventPlan(
        id="p1",
        title="EE labs",
        start_date_time="2025-03-04T19:00:00+00:00",
        end_date_time="2025-03-04T21:00:00+00:00",
    )


def test_check_with_calendar() -> None:
    """Test that the provider's events around the plan are checked."""
    calendar = InMemoryCalendarProvider([_event("2025-03-04T20:00:00+00:00", "2025-03-04T22:00:00+00:00")])

    resolution = SchedulingOrchestrator().check_with_calendar(_tuesday_plan(), calendar)

    assert resolution is not None
    assert [c.event_id for c in resolution.conflicts] == ["e1"]


def test_check_with_calendar_provider_failure() -> None:
    """Test that a failing provider yields None instead of raising."""
    assert SchedulingOrchestrator().check_with_calendar(_tuesday_plan(), BrokenCalendar()) is None


@pytest.mark.asyncio
async def test_llm_plans_respect_user_preferences() -> None:
    """Test that preference avoid days reach the plans built from the LLM analysis."""
    req = SchedulingRequest(
        user_id="u1",
        natural_language_input="study group wed 6pm for an hour",
        context=SchedulingContext(user_preferences=UserPreferences(user_id="u1", avoid_days=["wednesday"])),
    )

    result = await SchedulingOrchestrator(analyzer=FakeAnalyzer(study_group())).analyze_request(req, now=NOW)

    assert result.source == "llm"
    assert result.plans[0].start_date_time == "2025-03-06T18:00:00+00:00"
    assert result.plans[0].constraints.avoid_days == ["WEDNESDAY"]
