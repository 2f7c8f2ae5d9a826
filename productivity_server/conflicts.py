"""
Conflict detection and alternative slot ranking for event plans.

The resolver does no I/O: existing events are fetched by the caller (see
productivity_server.providers) and handed in.
"""
from __future__ import annotations

import logging
import typing as t
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from planner_server.models import WEEKDAYS, EventPlan
from planner_server.temporal import parse_iso_datetime
from productivity_server.models import CalendarConflict, CalendarEvent, ConflictResolution, EventAlternative

logger = logging.getLogger(__name__)

ADJACENCY_WINDOW = timedelta(minutes=30)
MIN_ALTERNATIVE_SCORE = 0.3
MAX_ALTERNATIVES = 3


@dataclass(frozen=True)
class Shift:
    delta: timedelta
    description: str


# Tried in this order; collection stops after MAX_ALTERNATIVES survivors
SHIFTS: tuple[Shift, ...] = (
    Shift(timedelta(hours=1), "1 hour later"),
    Shift(timedelta(hours=-1), "1 hour earlier"),
    Shift(timedelta(hours=2), "2 hours later"),
    Shift(timedelta(hours=-2), "2 hours earlier"),
    Shift(timedelta(days=1), "next day"),
)


def _event_span(event: CalendarEvent) -> t.Optional[tuple[datetime, datetime]]:
    start = parse_iso_datetime(event.start.date_time if event.start else None)
    end = parse_iso_datetime(event.end.date_time if event.end else None)
    if start is None or end is None or start >= end:
        return None
    return start, end


def classify_overlap(
        plan_start: datetime,
        plan_end: datetime,
        event_start: datetime,
        event_end: datetime,
) -> t.Optional[tuple[str, str]]:
    """(conflict_type, severity) for one existing span, or None when they don't interact.

    - identical span: OVERLAP / HIGH
    - overlap of at most 30 minutes across one edge, neither span containing
      the other: ADJACENT / LOW
    - any other overlap: OVERLAP / MEDIUM
    - no overlap but a gap of at most 30 minutes: ADJACENT / LOW
    """
    if plan_start == event_start and plan_end == event_end:
        return "OVERLAP", "HIGH"

    if plan_start < event_end and plan_end > event_start:
        shared = min(plan_end, event_end) - max(plan_start, event_start)
        contained = (plan_start <= event_start and event_end <= plan_end) or \
                    (event_start <= plan_start and plan_end <= event_end)
        if shared <= ADJACENCY_WINDOW and not contained:
            return "ADJACENT", "LOW"
        return "OVERLAP", "MEDIUM"

    gap = event_start - plan_end if event_start >= plan_end else plan_start - event_end
    if gap <= ADJACENCY_WINDOW:
        return "ADJACENT", "LOW"
    return None


def detect_conflicts(plan: EventPlan, existing_events: t.Iterable[CalendarEvent]) -> list[CalendarConflict]:
    """Calendar conflicts for ``plan``. Events with unparseable times are skipped."""
    plan_start, plan_end = plan.starts_at, plan.ends_at
    conflicts: list[CalendarConflict] = []
    for event in existing_events:
        span = _event_span(event)
        if span is None:
            logger.debug("Skipping event %r with unreadable times", getattr(event, "id", None))
            continue
        verdict = classify_overlap(plan_start, plan_end, *span)
        if verdict is None:
            continue
        conflict_type, severity = verdict
        conflicts.append(CalendarConflict(
            event_id=event.id,
            title=event.title,
            start=event.start.date_time,
            end=event.end.date_time,
            conflict_type=conflict_type,
            severity=severity,
        ))
    return conflicts


def constraint_violations(plan: EventPlan) -> list[CalendarConflict]:
    """Checks a plan against its own constraint set."""
    violations: list[CalendarConflict] = []
    start, end = plan.starts_at, plan.ends_at
    day = WEEKDAYS[start.weekday()]

    if day in plan.constraints.avoid_days:
        violations.append(CalendarConflict(
            event_id="",
            title=f"Avoided day: {day}",
            start=plan.start_date_time,
            end=plan.end_date_time,
            conflict_type="CONSTRAINT_VIOLATION",
            severity="MEDIUM",
        ))

    minutes = (end - start).total_seconds() / 60
    bounds = plan.constraints
    if (bounds.max_duration is not None and minutes > bounds.max_duration) or \
            (bounds.min_duration is not None and minutes < bounds.min_duration):
        violations.append(CalendarConflict(
            event_id="",
            title=f"Duration of {int(minutes)} minutes is outside the requested bounds",
            start=plan.start_date_time,
            end=plan.end_date_time,
            conflict_type="CONSTRAINT_VIOLATION",
            severity="LOW",
        ))
    return violations


def score_alternative(start: datetime, conflicts: t.Sequence[CalendarConflict], original_start: datetime) -> float:
    score = 1.0
    score -= 0.3 * len(conflicts)
    score -= 0.4 * sum(1 for c in conflicts if c.severity == "HIGH")

    drift_hours = abs((start - original_start).total_seconds()) / 3600
    score -= min(drift_hours * 0.1, 0.5)

    if 9 <= start.hour <= 18:
        score += 0.1
    elif start.hour < 7 or start.hour > 22:
        score -= 0.2

    return round(max(score, 0.0), 4)


def recommend(conflicts: t.Sequence[CalendarConflict], alternatives: t.Sequence[EventAlternative]) -> str:
    if not conflicts:
        return "No conflicts detected. The proposed time slot is available."

    high = [c for c in conflicts if c.severity == "HIGH"]
    if high:
        if alternatives:
            return (
                f"Direct conflict detected with {high[0].title}. "
                f"Recommend using alternative option {alternatives[0].rank}."
            )
        return "Direct conflict detected. Please choose a different time."

    if alternatives and alternatives[0].score > 0.7:
        return f"Minor conflicts detected. Alternative option {alternatives[0].rank} provides better scheduling."
    return "Some scheduling conflicts detected. Review the options and choose your preference."


class ConflictResolver:
    """Checks a plan against existing events and proposes shifted alternatives."""

    def __init__(self, shifts: t.Sequence[Shift] = SHIFTS, max_alternatives: int = MAX_ALTERNATIVES):
        self.shifts = tuple(shifts)
        self.max_alternatives = max_alternatives

    def conflicts_for(self, plan: EventPlan, existing_events: t.Sequence[CalendarEvent]) -> list[CalendarConflict]:
        return detect_conflicts(plan, existing_events) + constraint_violations(plan)

    def generate_alternatives(
            self,
            plan: EventPlan,
            existing_events: t.Sequence[CalendarEvent],
    ) -> list[EventAlternative]:
        original_start = plan.starts_at
        duration = plan.ends_at - original_start

        scored: list[tuple[float, EventPlan, str, list[str]]] = []
        for shift in self.shifts:
            new_start = original_start + shift.delta
            candidate = replace(
                plan,
                id=str(uuid.uuid4()),
                start_date_time=new_start.isoformat(),
                end_date_time=(new_start + duration).isoformat(),
            )
            conflicts = self.conflicts_for(candidate, existing_events)
            score = score_alternative(new_start, conflicts, original_start)
            if score <= MIN_ALTERNATIVE_SCORE:
                continue
            tradeoffs = [f"Still has {len(conflicts)} conflict(s)"] if conflicts else []
            scored.append((score, candidate, f"Moved {shift.description} to avoid conflicts", tradeoffs))
            if len(scored) >= self.max_alternatives:
                break

        scored.sort(key=lambda item: item[0], reverse=True)
        return [
            EventAlternative(rank=rank, plan=candidate, score=score, reasoning=reasoning, tradeoffs=tradeoffs)
            for rank, (score, candidate, reasoning, tradeoffs) in enumerate(scored, start=1)
        ]

    def check_conflicts(self, plan: EventPlan, existing_events: t.Sequence[CalendarEvent]) -> ConflictResolution:
        """
        :param plan: Candidate plan.
        :param existing_events: Events already on the calendar around the plan.
        :return: Conflicts, up to three ranked alternatives and a recommendation.
        """
        conflicts = self.conflicts_for(plan, existing_events)
        alternatives = self.generate_alternatives(plan, existing_events)
        logger.info("Plan %s: %d conflict(s), %d alternative(s)", plan.id, len(conflicts), len(alternatives))
        return ConflictResolution(
            conflicts=conflicts,
            alternatives=alternatives,
            recommendation=recommend(conflicts, alternatives),
        )
