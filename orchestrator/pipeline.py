"""Two-stage scheduling pipeline.

The deterministic planner always runs. The LLM analyzer, when configured,
runs in a worker thread under a timeout; its plans replace the heuristic
ones only if it reports intent SCHEDULE_EVENT with confidence above the
floor. Any LLM failure or timeout leaves the heuristic plans in place.
"""
from __future__ import annotations

import asyncio
import logging
import os
import typing as t
from datetime import datetime, timedelta, timezone

from orchestrator.analyzer import LLMAnalyzer, LLMExtractionError
from orchestrator.models import AnalysisResult, LLMAnalysis
from planner_server.constraints import extract_preferred_times
from planner_server.generator import PlanGenerator
from planner_server.models import (DEFAULT_DURATION_MINUTES, WEEKDAYS, EventConstraints, EventPlan, ParsedSchedule,
                                   RecurrenceRule, SchedulingRequest, TimeExpression)
from planner_server.temporal import find_time_expressions, parse_time
from productivity_server.conflicts import ConflictResolver
from productivity_server.models import ConflictResolution
from productivity_server.providers import CalendarProvider, CalendarProviderError
from productivity_server.store import AuditEntry, AuditSink

logger = logging.getLogger(__name__)

SCHEDULER_LLM_TIMEOUT = float(os.getenv("SCHEDULER_LLM_TIMEOUT", "20"))
SCHEDULER_LLM_CONFIDENCE_FLOOR = float(os.getenv("SCHEDULER_LLM_CONFIDENCE_FLOOR", "0.6"))


def default_analyzer() -> t.Optional[LLMAnalyzer]:
    """An analyzer when OPENAI_API_KEY is set, otherwise None (heuristics only)."""
    if not os.getenv("OPENAI_API_KEY"):
        return None
    return LLMAnalyzer(timeout=SCHEDULER_LLM_TIMEOUT)


def _time_expressions(values: t.Iterable[str]) -> list[TimeExpression]:
    expressions: list[TimeExpression] = []
    for value in values:
        found = find_time_expressions(value)
        if found:
            expressions.extend(found)
            continue
        single = parse_time(value)
        if single is not None:
            expressions.append(TimeExpression(text=value, start=single))
    return expressions


def schedule_from_analysis(analysis: LLMAnalysis, text: str) -> ParsedSchedule:
    """Convert validated LLM fields into the planner's ParsedSchedule."""
    temporal, constraints, recurrence = analysis.temporal, analysis.constraints, analysis.recurrence
    days = [day for day in WEEKDAYS if day in set(temporal.days_of_week)]
    avoid = [day for day in WEEKDAYS if day in set(constraints.avoid_days)]
    frequency = recurrence.frequency

    return ParsedSchedule(
        title=temporal.title,
        duration=temporal.duration or DEFAULT_DURATION_MINUTES,
        explicit_duration=temporal.duration is not None,
        time_expressions=_time_expressions(temporal.preferred_times),
        days_of_week=days,
        frequency=frequency,
        constraints=EventConstraints(
            avoid_days=avoid,
            preferred_times=[window for value in temporal.preferred_times for window in extract_preferred_times(value)],
        ),
        location=constraints.location,
        attendees=list(constraints.attendees),
        description=f'Generated from: "{text}"',
        recurrence=RecurrenceRule(
            frequency=frequency,
            days_of_week=days if frequency == "WEEKLY" else [],
        ) if frequency else None,
    )


class SchedulingOrchestrator:
    """Chooses between LLM and heuristic plans and attaches conflict checks."""

    def __init__(
            self,
            generator: t.Optional[PlanGenerator] = None,
            analyzer: t.Optional[LLMAnalyzer] = None,
            resolver: t.Optional[ConflictResolver] = None,
            audit: t.Optional[AuditSink] = None,
            llm_timeout: float = SCHEDULER_LLM_TIMEOUT,
            confidence_floor: float = SCHEDULER_LLM_CONFIDENCE_FLOOR,
    ):
        self.generator = generator or PlanGenerator()
        self.analyzer = analyzer
        self.resolver = resolver or ConflictResolver()
        self.audit = audit
        self.llm_timeout = llm_timeout
        self.confidence_floor = confidence_floor

    async def _try_llm(self, text: str) -> t.Optional[LLMAnalysis]:
        if self.analyzer is None:
            return None
        try:
            return await asyncio.wait_for(asyncio.to_thread(self.analyzer.analyze, text), timeout=self.llm_timeout)
        except asyncio.TimeoutError:
            logger.warning("LLM analysis timed out after %s seconds; using heuristic plans", self.llm_timeout)
        except LLMExtractionError as e:
            logger.warning("LLM analysis failed; using heuristic plans: %s", e)
        return None

    def accepts(self, analysis: t.Optional[LLMAnalysis]) -> bool:
        return (
            analysis is not None
            and analysis.intent == "SCHEDULE_EVENT"
            and analysis.confidence > self.confidence_floor
        )

    async def analyze_request(
            self,
            request: SchedulingRequest,
            *,
            now: t.Optional[datetime] = None,
    ) -> AnalysisResult:
        """Produce plans for one request.

        Args:
            request: The scheduling request, with optional existing events.
            now: Reference time for slot generation.

        Returns:
            AnalysisResult with the chosen plans and, when existing events
            were supplied, a ConflictResolution per plan.

        Raises:
            ValueError: If the request text is empty.
        """
        text = request.natural_language_input
        if not text or not text.strip():
            raise ValueError("Missing required field: natural_language_input")

        plans = self.generator.create_event_plan(request, now=now)
        source = "heuristic"

        analysis = await self._try_llm(text)
        if self.accepts(analysis):
            plans = self.generator.plans_from_extraction(
                schedule_from_analysis(analysis, text),
                text,
                now=now,
                preferences=request.context.user_preferences if request.context else None,
            )
            source = "llm"

        conflicts: dict[str, ConflictResolution] = {}
        existing = request.context.existing_events if request.context else []
        if existing:
            for plan in plans:
                conflicts[plan.id] = self.resolver.check_conflicts(plan, existing)

        if self.audit is not None:
            self.audit.record(AuditEntry(
                action="ANALYZE_REQUEST",
                user_id=request.user_id,
                details={"input": text, "source": source, "plans": len(plans)},
            ))

        logger.info("Request from %s answered with %d %s plan(s)", request.user_id, len(plans), source)
        return AnalysisResult(
            plans=plans,
            source=source,
            original_input=text,
            timestamp=datetime.now(timezone.utc).isoformat(),
            llm_analysis=analysis,
            conflicts=conflicts,
        )

    def check_with_calendar(self, plan: EventPlan, provider: CalendarProvider) -> t.Optional[ConflictResolution]:
        """Fetch events from the start of the plan's day to the end of the next day and check them.

        Returns None when the provider fails.
        """
        day_start = plan.starts_at.replace(hour=0, minute=0, second=0, microsecond=0)
        try:
            events = provider.list_events(day_start, day_start + timedelta(days=2))
        except CalendarProviderError as e:
            logger.warning("Calendar lookup failed for plan %s: %s", plan.id, e)
            return None
        return self.resolver.check_conflicts(plan, events)
