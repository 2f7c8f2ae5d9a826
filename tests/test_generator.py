"""Tests for plan generation and plan validation."""
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from planner_server.generator import PlanGenerator, heuristic_confidence, next_occurrence, validate_event_plan
from planner_server.models import EventConstraints, EventPlan, ParsedSchedule, SchedulingContext, SchedulingRequest, \
    TimeRange, UserPreferences
from planner_server.temporal import find_time_expressions

# Monday 2025-03-03 10:00 UTC
NOW = datetime(2025, 3, 3, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def generator() -> PlanGenerator:
    return PlanGenerator()


def test_heuristic_confidence() -> None:
    """Test the base score and evening-time bonuses."""
    assert heuristic_confidence("lunch") == 0.7
    assert heuristic_confidence("meet at 7") == 0.8
    assert heuristic_confidence("7pm Tu/Th") == 0.95


def test_next_occurrence_skips_today() -> None:
    """Test that asking for today's weekday gives next week."""
    assert next_occurrence("MONDAY", NOW).isoformat() == "2025-03-10"
    assert next_occurrence("TUESDAY", NOW).isoformat() == "2025-03-04"


def test_create_plan_cross_product(generator: PlanGenerator) -> None:
    """Test one plan per requested day, using the requested range."""
    text = "Block 7-9pm Tu/Th for EE labs; avoid Fridays"
    plans = generator.create_plan(text, now=NOW)

    assert [p.start_date_time for p in plans] == [
        "2025-03-04T19:00:00+00:00",
        "2025-03-06T19:00:00+00:00",
    ]
    assert all(p.end_date_time.endswith("T21:00:00+00:00") for p in plans)
    assert all(p.title == "EE labs" for p in plans)
    assert all(p.confidence == 0.95 for p in plans)
    assert plans[0].recurrence is not None
    assert plans[0].recurrence.days_of_week == ["TUESDAY", "THURSDAY"]
    assert plans[0].explanation == (
        f'Scheduled based on your request: "{text}". Time slot: 7:00 PM - 9:00 PM. Avoided: FRIDAY'
    )
    assert len({p.id for p in plans}) == 2


def test_create_plan_defaults(generator: PlanGenerator) -> None:
    """Test that a request with no time or day lands tomorrow at 19:00 for two hours."""
    plans = generator.create_plan("Dentist appointment", now=NOW)

    assert len(plans) == 1
    assert plans[0].start_date_time == "2025-03-04T19:00:00+00:00"
    assert plans[0].end_date_time == "2025-03-04T21:00:00+00:00"
    assert plans[0].title == "Dentist appointment"
    assert plans[0].confidence == 0.7
    assert plans[0].recurrence is None


def test_time_only_request_uses_tomorrow(generator: PlanGenerator) -> None:
    """Test that a time without a day is scheduled tomorrow."""
    plans = generator.create_plan("Call mom at 2:30pm", now=NOW)

    assert plans[0].start_date_time == "2025-03-04T14:30:00+00:00"
    assert plans[0].end_date_time == "2025-03-04T16:30:00+00:00"
    assert plans[0].title == "Call mom"


def test_explicit_duration_overrides_range_end(generator: PlanGenerator) -> None:
    """Test that 'for 1 hour' wins over the end of '7-9pm'."""
    plans = generator.create_plan("Study 7-9pm for 1 hour", now=NOW)

    assert plans[0].start_date_time == "2025-03-04T19:00:00+00:00"
    assert plans[0].end_date_time == "2025-03-04T20:00:00+00:00"


def test_avoided_target_day_moves_forward(generator: PlanGenerator) -> None:
    """Test that a slot on an avoided day is moved to the next allowed day."""
    plans = generator.create_plan("Review session Friday, avoid Fridays", now=NOW)

    assert len(plans) == 1
    assert plans[0].start_date_time == "2025-03-08T19:00:00+00:00"
    assert "Moved to the next available day" in plans[0].explanation


def test_apply_avoid_days_all_days_avoided() -> None:
    """Test that avoiding every weekday keeps the slots and says so."""
    slot = TimeRange(start=NOW, end=NOW + timedelta(hours=1))
    every_day = ["MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY", "SATURDAY", "SUNDAY"]

    kept, note = PlanGenerator.apply_avoid_days([slot], every_day)

    assert kept == [slot]
    assert note == "Could not avoid the requested days"


def test_user_preferences_are_merged(generator: PlanGenerator) -> None:
    """Test that preference avoid days and default duration apply."""
    request = SchedulingRequest(
        user_id="u1",
        natural_language_input="Gym Tu/Th 7pm",
        context=SchedulingContext(
            user_preferences=UserPreferences(user_id="u1", avoid_days=["tuesday"], default_event_duration=60),
        ),
    )

    plans = generator.create_event_plan(request, now=NOW)

    assert len(plans) == 1
    assert plans[0].start_date_time == "2025-03-06T19:00:00+00:00"
    assert plans[0].end_date_time == "2025-03-06T20:00:00+00:00"
    assert plans[0].constraints.avoid_days == ["TUESDAY"]


def test_empty_request_is_rejected(generator: PlanGenerator) -> None:
    """Test that blank input raises ValueError."""
    with pytest.raises(ValueError):
        generator.create_plan("   ", now=NOW)


def _plan(**overrides) -> EventPlan:
    values = dict(
        id="p1",
        title="EE labs",
        start_date_time="2025-03-04T19:00:00+00:00",
        end_date_time="2025-03-04T21:00:00+00:00",
        confidence=0.9,
    )
    values.update(overrides)
    return EventPlan(**values)


def test_validate_event_plan_accepts_good_plan() -> None:
    """Test that a well-formed plan has no issues."""
    result = validate_event_plan(_plan())

    assert result.is_valid
    assert result.issues == []


def test_validate_event_plan_reports_issues() -> None:
    """Test the individual validation issues."""
    assert "Missing event title" in validate_event_plan(_plan(title=" ")).issues
    assert "End time must be after start time" in validate_event_plan(
        _plan(end_date_time="2025-03-04T18:00:00+00:00")).issues
    assert "Missing start time" in validate_event_plan(_plan(start_date_time="")).issues
    assert "Confidence out of range" in validate_event_plan(_plan(confidence=1.2)).issues

    bounded = _plan(constraints=EventConstraints(max_duration=60, avoid_days=["TUESDAY"]))
    issues = validate_event_plan(bounded).issues
    assert "Duration exceeds 60 minutes" in issues
    assert "Starts on an avoided day (TUESDAY)" in issues


def test_with_overrides_keeps_id_and_checks_order() -> None:
    """Test that edits return a new plan with the same id and reject inverted times."""
    plan = _plan()
    later = plan.starts_at + timedelta(hours=1)

    edited = plan.with_overrides(title="Labs", start=later, end=later + timedelta(hours=1))

    assert edited.id == plan.id
    assert edited.title == "Labs"
    assert plan.title == "EE labs"
    with pytest.raises(ValueError):
        plan.with_overrides(end=plan.starts_at - timedelta(minutes=5))


def test_sub_minute_duration_falls_back_to_default(generator: PlanGenerator) -> None:
    """Test that a duration rounding to zero never yields an empty slot."""
    plans = generator.create_plan("Quick check-in 0.4 minutes at 7pm", now=NOW)

    assert plans[0].start_date_time == "2025-03-04T19:00:00+00:00"
    assert plans[0].end_date_time == "2025-03-04T21:00:00+00:00"
    assert all(p.starts_at < p.ends_at for p in plans)


def test_time_only_slot_on_avoided_tomorrow_moves_forward(generator: PlanGenerator) -> None:
    """Test that 'tomorrow' falling on an avoided Friday is pushed to Saturday."""
    thursday = datetime(2025, 3, 6, 10, 0, tzinfo=timezone.utc)

    plans = generator.create_plan("study 7-8pm, avoid Friday", now=thursday)

    assert len(plans) == 1
    assert plans[0].start_date_time == "2025-03-08T19:00:00+00:00"
    assert plans[0].end_date_time == "2025-03-08T20:00:00+00:00"
    assert "Moved to the next available day" in plans[0].explanation


def test_slots_keep_wall_clock_time_across_dst(generator: PlanGenerator) -> None:
    """Test that a slot after the end of daylight saving time keeps its local hour."""
    new_york = ZoneInfo("America/New_York")
    # Thursday before the 2026-11-01 switch back to EST
    now = datetime(2026, 10, 29, 12, 0, tzinfo=new_york)

    plans = generator.create_plan("Study Monday 7pm", now=now)

    assert plans[0].start_date_time == "2026-11-02T19:00:00-05:00"
    assert plans[0].starts_at.astimezone(new_york).hour == 19


def test_preference_time_zone_is_used(generator: PlanGenerator) -> None:
    """Test that slots are built in the user's time zone rather than that of now."""
    request = SchedulingRequest(
        user_id="u1",
        natural_language_input="Gym Tuesday 7pm",
        context=SchedulingContext(user_preferences=UserPreferences(user_id="u1", time_zone="America/New_York")),
    )

    plans = generator.create_event_plan(request, now=NOW)

    assert plans[0].start_date_time == "2025-03-04T19:00:00-05:00"


def test_unknown_preference_time_zone_is_ignored(generator: PlanGenerator) -> None:
    """Test that a bad zone name falls back to the zone of now."""
    request = SchedulingRequest(
        user_id="u1",
        natural_language_input="Gym Tuesday 7pm",
        context=SchedulingContext(user_preferences=UserPreferences(user_id="u1", time_zone="Mars/Olympus")),
    )

    plans = generator.create_event_plan(request, now=NOW)

    assert plans[0].start_date_time == "2025-03-04T19:00:00+00:00"


def test_extracted_plans_apply_user_preferences(generator: PlanGenerator) -> None:
    """Test that the LLM path folds in preference avoid days and duration like the heuristic path."""
    parsed = ParsedSchedule(
        title="Gym",
        time_expressions=find_time_expressions("7pm"),
        days_of_week=["TUESDAY", "THURSDAY"],
    )
    preferences = UserPreferences(user_id="u1", avoid_days=["tuesday"], default_event_duration=60)

    plans = generator.plans_from_extraction(parsed, "Gym Tu/Th 7pm", now=NOW, preferences=preferences)

    assert [(p.start_date_time, p.end_date_time) for p in plans] == [
        ("2025-03-06T19:00:00+00:00", "2025-03-06T20:00:00+00:00"),
    ]
    assert plans[0].confidence == 0.85
    assert parsed.constraints.avoid_days == []


def test_sibling_plans_do_not_share_constraint_lists(generator: PlanGenerator) -> None:
    """Test that each plan from one request owns its constraint lists."""
    first, second = generator.create_plan("Block 7-9pm Tu/Th for EE labs; avoid Fridays", now=NOW)

    assert first.constraints.avoid_days == ["FRIDAY"]
    assert first.constraints.avoid_days is not second.constraints.avoid_days
    assert first.constraints.preferred_times is not second.constraints.preferred_times
    assert first.recurrence.days_of_week is not second.recurrence.days_of_week
