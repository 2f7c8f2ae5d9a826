"""Tests for heuristic constraint extraction from request text."""
from datetime import datetime

from planner_server.constraints import extract_attendees, extract_avoid_days, extract_constraints, \
    extract_days_of_week, extract_description, extract_duration, extract_frequency, extract_location, \
    extract_recurrence, extract_title, parse_schedule
from planner_server.models import TimeOfDay, TimeWindow


def test_compound_day_token() -> None:
    """Test that Tu/Th maps to Tuesday and Thursday."""
    assert extract_days_of_week("Block 7-9pm Tu/Th for EE labs") == ["TUESDAY", "THURSDAY"]


def test_avoided_days_are_not_target_days() -> None:
    """Test that days inside an avoid clause are only reported as avoided."""
    text = "Office hours Monday, avoid Fridays"

    assert extract_days_of_week(text) == ["MONDAY"]
    assert extract_avoid_days(text) == ["FRIDAY"]


def test_avoid_day_lists_and_weekends() -> None:
    """Test avoid clauses with several days and weekend expansion."""
    assert extract_avoid_days("avoid Mon and Wed") == ["MONDAY", "WEDNESDAY"]
    assert extract_avoid_days("no weekends please") == ["SATURDAY", "SUNDAY"]
    assert extract_avoid_days("study group") == []


def test_extract_duration() -> None:
    """Test hours, fractional hours and minutes, plus the default."""
    assert extract_duration("Study 1.5 hours") == (90, True)
    assert extract_duration("Standup 30 min") == (30, True)
    assert extract_duration("Meet Monday") == (120, False)


def test_extract_frequency() -> None:
    """Test frequency keywords."""
    assert extract_frequency("daily standup") == "DAILY"
    assert extract_frequency("gym 3 times per week") == "WEEKLY"
    assert extract_frequency("monthly review") == "MONTHLY"
    assert extract_frequency("lunch") is None


def test_recurrence_interval() -> None:
    """Test that 'every 2 weeks' sets a weekly rule with interval 2."""
    rule = extract_recurrence("Gym every 2 weeks on Monday", ["MONDAY"])

    assert rule is not None
    assert rule.frequency == "WEEKLY"
    assert rule.interval == 2
    assert rule.days_of_week == ["MONDAY"]


def test_several_days_imply_weekly_with_count() -> None:
    """Test that two target days give a weekly rule and 'for 10 weeks' a count."""
    rule = extract_recurrence("Lab Tu/Th for 10 weeks", ["TUESDAY", "THURSDAY"])

    assert rule is not None
    assert rule.frequency == "WEEKLY"
    assert rule.days_of_week == ["TUESDAY", "THURSDAY"]
    assert rule.count == 10


def test_single_day_is_one_off() -> None:
    """Test that a single named day without a repeat cue is not recurring."""
    assert extract_recurrence("Dentist Monday", ["MONDAY"]) is None


def test_recurrence_until_date() -> None:
    """Test that 'until Dec 12' sets the end date."""
    rule = extract_recurrence("Yoga every Monday until Dec 12", ["MONDAY"], now=datetime(2025, 9, 1))

    assert rule is not None
    assert rule.end_date == "2025-12-12"
    assert rule.count is None


def test_extract_constraints_duration_bounds() -> None:
    """Test that 'at least' gives a minimum and a bare duration a maximum."""
    minimum = extract_constraints("Study at least 2 hours, avoid Fridays")
    maximum = extract_constraints("Meeting 45 minutes")

    assert minimum.min_duration == 120
    assert minimum.max_duration is None
    assert minimum.avoid_days == ["FRIDAY"]
    assert maximum.max_duration == 45


def test_extract_constraints_preferred_window() -> None:
    """Test that time ranges become preferred windows."""
    constraints = extract_constraints("Block 7-9pm Tu/Th")

    assert constraints.preferred_times == [TimeWindow(start="19:00", end="21:00")]


def test_extract_title() -> None:
    """Test the 'for' phrase and the leading phrase."""
    assert extract_title("Block 7-9pm Tu/Th for EE labs") == "EE labs"
    assert extract_title("Team meeting tomorrow at 3pm") == "Team meeting"
    assert extract_title("Gym Tu/Th 7pm") == "Gym"


def test_extract_location() -> None:
    """Test rooms, named places, and times that are not places."""
    assert extract_location("Review in Room 204B") == "Room 204B"
    assert extract_location("Lunch at Panera Bread on Friday") == "Panera Bread"
    assert extract_location("Meet at 7pm") is None


def test_extract_attendees_deduplicates() -> None:
    """Test that e-mail addresses are collected once, in order."""
    assert extract_attendees("Sync with a@x.com and b@y.org, a@x.com") == ["a@x.com", "b@y.org"]


def test_extract_description_only_for_long_requests() -> None:
    """Test that short inputs get no description."""
    long_text = "Schedule a long planning session with the whole project team next week"

    assert extract_description("Gym 7pm") is None
    assert extract_description(long_text) == f'Auto-generated from: "{long_text}"'


def test_parse_schedule_full_request() -> None:
    """Test the combined extraction for a typical student request."""
    parsed = parse_schedule("Block 7-9pm Tu/Th for EE labs; avoid Fridays")

    assert parsed.title == "EE labs"
    assert parsed.days_of_week == ["TUESDAY", "THURSDAY"]
    assert parsed.constraints.avoid_days == ["FRIDAY"]
    assert parsed.time_expressions[0].start == TimeOfDay(19, 0)
    assert parsed.time_expressions[0].end == TimeOfDay(21, 0)
    assert parsed.duration == 120
    assert not parsed.explicit_duration
    assert parsed.recurrence is not None
    assert parsed.recurrence.frequency == "WEEKLY"
    assert parsed.location is None
    assert parsed.description is None
