"""
Plan generation: turns a parsed request into concrete, future EventPlans.
"""
from __future__ import annotations

import logging
import re
import typing as t
import uuid
from dataclasses import replace
from datetime import date, datetime, time, timedelta, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from planner_server.constraints import parse_schedule
from planner_server.models import (CONFIDENCE_CEILING, UNTITLED_EVENT, WEEKDAYS, EventPlan, ParsedSchedule,
                                   PlanValidation, SchedulingRequest, TimeExpression, TimeOfDay, TimeRange,
                                   UserPreferences)
from planner_server.temporal import format_clock, local_now, parse_iso_datetime

logger = logging.getLogger(__name__)

DEFAULT_START = TimeOfDay(hours=19)
BASE_CONFIDENCE = 0.7
LLM_PLAN_CONFIDENCE = 0.85

_EVENING_DIGIT_RE = re.compile(r"[789]")
_PM_RE = re.compile(r"(?<![a-z])p\.?m\b", re.I)
_TUE_THU_RE = re.compile(r"\b(?:tu|tue|tues|tuesdays?|th|thu|thur|thurs|thursdays?)\b", re.I)


def heuristic_confidence(text: str) -> float:
    """0.7 base, +0.1 per evening-time signal, capped at 0.95."""
    confidence = BASE_CONFIDENCE
    if _EVENING_DIGIT_RE.search(text):
        confidence += 0.1
    if _PM_RE.search(text):
        confidence += 0.1
    if _TUE_THU_RE.search(text):
        confidence += 0.1
    return round(min(confidence, CONFIDENCE_CEILING), 2)


def next_occurrence(day: str, now: datetime) -> date:
    """Next date for ``day`` strictly after today; today's weekday rolls a full week."""
    ahead = (WEEKDAYS.index(day) - now.weekday() + 7) % 7 or 7
    return (now + timedelta(days=ahead)).date()


def localize(moment: datetime, zone: t.Optional[tzinfo]) -> datetime:
    """Pin the wall-clock time of ``moment`` to ``zone``; None is the system local zone.

    The offset is looked up for the moment's own date, so a 19:00 slot after a
    DST change is still 19:00 local.
    """
    wall = moment.replace(tzinfo=None)
    if zone is None:
        return wall.astimezone()
    return wall.replace(tzinfo=zone)


def resolve_zone(
        now: t.Optional[datetime],
        preferences: t.Optional[UserPreferences] = None,
) -> t.Optional[tzinfo]:
    """The user's time zone, else the zone of ``now``, else None (system local)."""
    if preferences is not None and preferences.time_zone:
        try:
            return ZoneInfo(preferences.time_zone)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown time zone %r in preferences of %s", preferences.time_zone, preferences.user_id)
    if now is not None and now.tzinfo is not None:
        return now.tzinfo
    return None


def _day_name(moment: datetime) -> str:
    return WEEKDAYS[moment.weekday()]


class PlanGenerator:
    """
    Builds candidate EventPlans from free text.

    The generator is stateless; ``now`` can be injected on every call so
    results are reproducible in tests.
    """

    def __init__(self, default_start: TimeOfDay = DEFAULT_START):
        self.default_start = default_start

    # ---------- entry points ----------

    def create_plan(self, text: str, *, now: t.Optional[datetime] = None) -> list[EventPlan]:
        """Parse ``text`` and return one or more plans. Never returns an empty list."""
        if not text or not text.strip():
            raise ValueError("Scheduling request text is required")
        zone = resolve_zone(now)
        now = self._reference_time(now, zone)
        parsed = parse_schedule(text, now=now)
        return self._build_plans(parsed, text, heuristic_confidence(text), now, zone)

    def create_event_plan(
            self,
            request: SchedulingRequest,
            *,
            now: t.Optional[datetime] = None,
    ) -> list[EventPlan]:
        """Like create_plan, with the request's user preferences folded in."""
        text = request.natural_language_input
        if not text or not text.strip():
            raise ValueError("Scheduling request text is required")
        preferences = request.context.user_preferences if request.context else None
        zone = resolve_zone(now, preferences)
        now = self._reference_time(now, zone)
        parsed = self.apply_preferences(parse_schedule(text, now=now), preferences)
        return self._build_plans(parsed, text, heuristic_confidence(text), now, zone)

    def plans_from_extraction(
            self,
            parsed: ParsedSchedule,
            text: str,
            *,
            now: t.Optional[datetime] = None,
            preferences: t.Optional[UserPreferences] = None,
    ) -> list[EventPlan]:
        """Build plans from fields extracted by the LLM path, using the same slot and preference rules."""
        zone = resolve_zone(now, preferences)
        now = self._reference_time(now, zone)
        parsed = self.apply_preferences(parsed, preferences)
        return self._build_plans(parsed, text, LLM_PLAN_CONFIDENCE, now, zone)

    @staticmethod
    def apply_preferences(parsed: ParsedSchedule, preferences: t.Optional[UserPreferences]) -> ParsedSchedule:
        """Default duration and avoid days from the user's preferences; the request text wins on duration."""
        if preferences is None:
            return parsed
        duration = parsed.duration
        if not parsed.explicit_duration and preferences.default_event_duration > 0:
            duration = preferences.default_event_duration
        merged = set(parsed.constraints.avoid_days) | {day.upper() for day in preferences.avoid_days}
        return replace(
            parsed,
            duration=duration,
            constraints=replace(parsed.constraints, avoid_days=[day for day in WEEKDAYS if day in merged]),
        )

    # ---------- slot generation ----------

    def generate_slots(
            self,
            parsed: ParsedSchedule,
            now: datetime,
            zone: t.Optional[tzinfo] = None,
    ) -> list[TimeRange]:
        """Cross product of times and days, or the time-only / day-only / default rules.

        Slots are wall-clock times in ``zone`` (None is the system local zone).
        """
        tomorrow = (now + timedelta(days=1)).date()
        default = TimeExpression(text="", start=self.default_start)
        times = parsed.time_expressions
        days = parsed.days_of_week

        slots: list[TimeRange] = []
        if times and days:
            for day in days:
                for expression in times:
                    slots.append(self._slot(next_occurrence(day, now), expression, parsed, zone))
        elif times:
            for expression in times:
                slots.append(self._slot(tomorrow, expression, parsed, zone))
        elif days:
            for day in days:
                slots.append(self._slot(next_occurrence(day, now), default, parsed, zone))
        else:
            slots.append(self._slot(tomorrow, default, parsed, zone))

        unique: dict[datetime, TimeRange] = {}
        for slot in slots:
            unique.setdefault(slot.start, slot)
        return sorted(unique.values(), key=lambda slot: slot.start)

    @staticmethod
    def _slot(day: date, expression: TimeExpression, parsed: ParsedSchedule, zone: t.Optional[tzinfo]) -> TimeRange:
        start = datetime.combine(day, time(expression.start.hours, expression.start.minutes))
        if expression.end is not None and not parsed.explicit_duration:
            end = datetime.combine(day, time(expression.end.hours, expression.end.minutes))
            if end <= start:
                end += timedelta(days=1)
        else:
            end = start + timedelta(minutes=parsed.duration)
        return TimeRange(start=localize(start, zone), end=localize(end, zone))

    @staticmethod
    def apply_avoid_days(
            slots: list[TimeRange],
            avoid_days: t.Sequence[str],
            zone: t.Optional[tzinfo] = None,
    ) -> tuple[list[TimeRange], str]:
        """
        Drop slots that start on an avoided day.

        If nothing survives, each slot is moved forward a day at a time to the
        next allowed weekday, keeping its wall-clock time in ``zone``. When
        every weekday is avoided the original slots are kept. The second value
        is a note for the explanation, or "".
        """
        avoid = set(avoid_days)
        if not avoid:
            return slots, ""

        kept = [slot for slot in slots if _day_name(slot.start) not in avoid]
        if kept:
            return kept, ""

        if avoid.issuperset(WEEKDAYS):
            logger.warning("Every weekday is avoided; keeping original slots")
            return slots, "Could not avoid the requested days"

        shifted: dict[datetime, TimeRange] = {}
        for slot in slots:
            while _day_name(slot.start) in avoid:
                slot = TimeRange(
                    start=localize(slot.start + timedelta(days=1), zone),
                    end=localize(slot.end + timedelta(days=1), zone),
                )
            shifted.setdefault(slot.start, slot)
        return sorted(shifted.values(), key=lambda slot: slot.start), "Moved to the next available day"

    # ---------- assembly ----------

    def _build_plans(
            self,
            parsed: ParsedSchedule,
            text: str,
            confidence: float,
            now: datetime,
            zone: t.Optional[tzinfo],
    ) -> list[EventPlan]:
        constraints = parsed.constraints
        slots, note = self.apply_avoid_days(self.generate_slots(parsed, now, zone), constraints.avoid_days, zone)

        plans = [
            EventPlan(
                id=str(uuid.uuid4()),
                title=parsed.title or UNTITLED_EVENT,
                start_date_time=slot.start.isoformat(),
                end_date_time=slot.end.isoformat(),
                constraints=replace(
                    constraints,
                    avoid_days=list(constraints.avoid_days),
                    preferred_times=list(constraints.preferred_times),
                ),
                confidence=confidence,
                explanation=self.explain(text, slot, constraints.avoid_days, note),
                description=parsed.description or "",
                location=parsed.location or "",
                attendees=list(parsed.attendees),
                recurrence=replace(
                    parsed.recurrence, days_of_week=list(parsed.recurrence.days_of_week),
                ) if parsed.recurrence else None,
            )
            for slot in slots
        ]
        logger.info("Generated %d plan(s) for %r", len(plans), text)
        return plans

    @staticmethod
    def explain(text: str, slot: TimeRange, avoid_days: t.Sequence[str], note: str = "") -> str:
        clauses = [
            f'Scheduled based on your request: "{text}"',
            f"Time slot: {format_clock(slot.start)} - {format_clock(slot.end)}",
        ]
        if avoid_days:
            clauses.append(f"Avoided: {', '.join(avoid_days)}")
        if note:
            clauses.append(note)
        return ". ".join(clauses)

    @staticmethod
    def _reference_time(now: t.Optional[datetime], zone: t.Optional[tzinfo]) -> datetime:
        if now is None:
            now = local_now()
        elif now.tzinfo is None:
            now = now.astimezone()
        return now.astimezone(zone) if zone is not None else now


def validate_event_plan(plan: EventPlan) -> PlanValidation:
    """Check a (possibly caller-edited) plan before it is confirmed."""
    issues: list[str] = []
    if not plan.title or not plan.title.strip():
        issues.append("Missing event title")

    start = parse_iso_datetime(plan.start_date_time)
    end = parse_iso_datetime(plan.end_date_time)
    if start is None:
        issues.append("Missing start time")
    if end is None:
        issues.append("Missing end time")

    if start is not None and end is not None:
        if start >= end:
            issues.append("End time must be after start time")
        else:
            minutes = (end - start).total_seconds() / 60
            bounds = plan.constraints
            if bounds.max_duration is not None and minutes > bounds.max_duration:
                issues.append(f"Duration exceeds {bounds.max_duration} minutes")
            if bounds.min_duration is not None and minutes < bounds.min_duration:
                issues.append(f"Duration is shorter than {bounds.min_duration} minutes")
        if _day_name(start) in plan.constraints.avoid_days:
            issues.append(f"Starts on an avoided day ({_day_name(start)})")

    if not 0.0 <= plan.confidence <= CONFIDENCE_CEILING:
        issues.append("Confidence out of range")

    return PlanValidation(is_valid=not issues, issues=issues)
