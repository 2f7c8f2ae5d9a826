"""
Constraint extraction for free-text scheduling requests.

Every extractor here is a small regex heuristic that returns an empty or
default value when it finds nothing, so callers never need to guard against
exceptions from ambiguous input.
"""
from __future__ import annotations

import logging
import re
import typing as t
from datetime import datetime

from planner_server.models import (DEFAULT_DURATION_MINUTES, WEEKDAYS, EventConstraints, Frequency, ParsedSchedule,
                                   RecurrenceRule, TimeWindow)
from planner_server.temporal import find_time_expressions, resolve_date

logger = logging.getLogger(__name__)


# -----------------------------
# Day-of-week lexicon
# -----------------------------

WEEKDAY_SET = WEEKDAYS[:5]
WEEKEND_SET = WEEKDAYS[5:]

# Token pattern -> canonical days. Every entry is checked; matches are unioned.
DAY_LEXICON: tuple[tuple[str, tuple[str, ...]], ...] = (
    (r"mondays?|mon", ("MONDAY",)),
    (r"tuesdays?|tues|tue", ("TUESDAY",)),
    (r"wednesdays?|weds|wed", ("WEDNESDAY",)),
    (r"thursdays?|thurs|thur|thu", ("THURSDAY",)),
    (r"fridays?|fri", ("FRIDAY",)),
    (r"saturdays?|sat", ("SATURDAY",)),
    (r"sundays?|sun", ("SUNDAY",)),
    (r"weekdays?", WEEKDAY_SET),
    (r"weekends?", WEEKEND_SET),
    (r"tu/th|t/th|tth", ("TUESDAY", "THURSDAY")),
    (r"m/w/f|mwf", ("MONDAY", "WEDNESDAY", "FRIDAY")),
    (r"m/w|mw", ("MONDAY", "WEDNESDAY")),
)

_DAY_MATCHERS = tuple(
    (re.compile(rf"(?<![a-z0-9])(?:{pattern})(?![a-z0-9])", re.I), days)
    for pattern, days in DAY_LEXICON
)

_DAY_TOKEN = (
    r"(?:mondays?|tuesdays?|wednesdays?|thursdays?|fridays?|saturdays?|sundays?|weekends?"
    r"|mon|tues|tue|weds|wed|thurs|thur|thu|fri|sat|sun)"
)
_LIST_SEPARATOR = r"\s*(?:,|/|&|\band\b|\bor\b)\s*"

AVOID_RE = re.compile(
    rf"\b(?:avoid(?:ing)?|no|except|not\s+on|skip(?:ping)?)\s+(?:the\s+)?"
    rf"(?P<days>{_DAY_TOKEN}(?:{_LIST_SEPARATOR}{_DAY_TOKEN})*)\b",
    re.I,
)

_DAY_PREFIXES = {
    "mon": "MONDAY",
    "tue": "TUESDAY",
    "wed": "WEDNESDAY",
    "thu": "THURSDAY",
    "fri": "FRIDAY",
    "sat": "SATURDAY",
    "sun": "SUNDAY",
}


def _canonical_order(days: t.Iterable[str]) -> list[str]:
    wanted = set(days)
    return [day for day in WEEKDAYS if day in wanted]


def _normalize_day_token(token: str) -> tuple[str, ...]:
    token = token.strip().lower()
    if token.startswith("weekend"):
        return WEEKEND_SET
    day = _DAY_PREFIXES.get(token[:3])
    return (day,) if day else ()


def extract_avoid_days(text: str) -> list[str]:
    """Days named in avoid clauses, e.g. "avoid Fridays" -> ["FRIDAY"].

    Weekend tokens expand to SATURDAY and SUNDAY.
    """
    days: list[str] = []
    for match in AVOID_RE.finditer(text):
        for token in re.split(_LIST_SEPARATOR, match.group("days")):
            days.extend(_normalize_day_token(token))
    return _canonical_order(days)


def _avoid_spans(text: str) -> list[tuple[int, int]]:
    return [match.span() for match in AVOID_RE.finditer(text)]


def extract_days_of_week(text: str) -> list[str]:
    """Target days mentioned anywhere in the text, outside avoid clauses."""
    excluded = _avoid_spans(text)
    days: set[str] = set()
    for pattern, mapped in _DAY_MATCHERS:
        for match in pattern.finditer(text):
            start, end = match.span()
            if any(start >= lo and end <= hi for lo, hi in excluded):
                continue
            days.update(mapped)
    return _canonical_order(days)


# -----------------------------
# Duration / frequency / recurrence
# -----------------------------

DURATION_RE = re.compile(
    r"(?<![\d.])(?P<value>\d+(?:\.\d+)?)\s*-?\s*(?P<unit>hours?|hrs?|minutes?|mins?)\b",
    re.I,
)
_MIN_DURATION_CUE = re.compile(r"(?:at\s+least|minimum(?:\s+of)?|min\.?\s+of|no\s+less\s+than)\s*$", re.I)


def extract_duration(text: str) -> tuple[int, bool]:
    """Return (minutes, explicit). Defaults to 120 minutes when absent."""
    match = DURATION_RE.search(text)
    if match is None:
        return DEFAULT_DURATION_MINUTES, False
    value = float(match.group("value"))
    unit = match.group("unit").lower()
    minutes = int(round(value * 60 if unit.startswith(("hour", "hr")) else value))
    # "0.4 minutes" rounds to nothing
    if minutes <= 0:
        return DEFAULT_DURATION_MINUTES, False
    return minutes, True


# Precedence order: daily, weekly, monthly, "N per week"
FREQUENCY_RULES: tuple[tuple[Frequency, re.Pattern[str]], ...] = (
    ("DAILY", re.compile(r"\b(?:daily|every\s*day|each\s+day)\b", re.I)),
    ("WEEKLY", re.compile(r"\b(?:weekly|every\s+week|each\s+week)\b", re.I)),
    ("MONTHLY", re.compile(r"\b(?:monthly|every\s+month|each\s+month)\b", re.I)),
    ("WEEKLY", re.compile(r"\b\d+\s*(?:x|times|sessions?|hours?|hrs?)?\s*(?:per|/|a)\s*week\b", re.I)),
)


def extract_frequency(text: str) -> t.Optional[Frequency]:
    for frequency, pattern in FREQUENCY_RULES:
        if pattern.search(text):
            return frequency
    return None


INTERVAL_RE = re.compile(
    r"\bevery\s+(?P<n>\d+|other)\s+(?P<unit>days?|weeks?|months?)\b|\b(?P<bi>bi-?weekly|fortnightly)\b",
    re.I,
)
COUNT_RE = re.compile(r"\bfor\s+(?P<count>\d+)\s+(?:weeks|times|sessions|occurrences|days|months)\b", re.I)
UNTIL_RE = re.compile(r"\b(?:until|till|through|thru)\s+(?P<date>[^,;]+)", re.I)
_WEEKLY_CUE_RE = re.compile(
    r"\b(?:every|each)\s+(?:mon|tue|wed|thu|fri|sat|sun)|\b(?:mon|tues|wednes|thurs|fri|satur|sun)days\b"
    r"|(?<![a-z0-9])(?:tu/th|t/th|tth|m/w/f|mwf|m/w|mw|weekdays?)(?![a-z0-9])",
    re.I,
)


def extract_recurrence(
        text: str,
        days: t.Sequence[str],
        frequency: t.Optional[Frequency] = None,
        *,
        now: t.Optional[datetime] = None,
) -> t.Optional[RecurrenceRule]:
    """Build a recurrence rule from frequency keywords and weekday cues.

    "every 2 weeks", "biweekly" set the interval, "for 10 weeks" sets the
    count and "until Dec 12" sets the end date. Several weekdays, plural
    weekdays ("Tuesdays") or "every Monday" imply a weekly rule.
    """
    interval = 1
    match = INTERVAL_RE.search(text)
    if match:
        if match.group("bi"):
            frequency, interval = "WEEKLY", 2
        else:
            n = match.group("n").lower()
            interval = 2 if n == "other" else max(1, int(n))
            frequency = {"d": "DAILY", "w": "WEEKLY", "m": "MONTHLY"}[match.group("unit")[0].lower()]

    if frequency is None and days and (len(days) > 1 or _WEEKLY_CUE_RE.search(text)):
        frequency = "WEEKLY"
    if frequency is None:
        return None

    rule = RecurrenceRule(
        frequency=frequency,
        interval=interval,
        days_of_week=list(days) if frequency == "WEEKLY" else [],
    )

    count_match = COUNT_RE.search(text)
    if count_match:
        rule.count = int(count_match.group("count"))

    until_match = UNTIL_RE.search(text)
    if until_match:
        end = resolve_date(until_match.group("date"), now=now)
        if end is not None:
            rule.end_date = end.isoformat()
            rule.count = None

    return rule


def extract_preferred_times(text: str) -> list[TimeWindow]:
    return [
        TimeWindow(start=expression.start.as_clock(), end=expression.end.as_clock())
        for expression in find_time_expressions(text)
        if expression.end is not None
    ]


def extract_constraints(text: str) -> EventConstraints:
    """Collect avoid days, preferred windows and duration bounds."""
    constraints = EventConstraints(
        avoid_days=extract_avoid_days(text),
        preferred_times=extract_preferred_times(text),
    )

    match = DURATION_RE.search(text)
    if match:
        minutes, _ = extract_duration(match.group(0))
        if _MIN_DURATION_CUE.search(text[:match.start()]):
            constraints.min_duration = minutes
        else:
            constraints.max_duration = minutes

    return constraints


# -----------------------------
# Title / location / attendees
# -----------------------------

_STOP_WORDS = (
    r"(?:at|on|from|every|each|in|avoid|avoiding|daily|weekly|monthly|tomorrow|today|tonight"
    r"|next|this|with|until|between|before|after|starting|room|building)"
)
_PHRASE_END = rf"(?=\s*(?:[;,.!?()]|$)|\s+{_STOP_WORDS}\b|\s+\d)"

TITLE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(rf"\bfor\s+(?P<phrase>[a-z][\w&'/ -]*?){_PHRASE_END}", re.I),
    re.compile(rf"^\s*(?P<phrase>[a-z][\w&'/ -]*?){_PHRASE_END}", re.I),
)

_LEADING_NOISE = {
    "block", "schedule", "add", "book", "put", "set", "up", "plan", "create", "reserve", "make",
    "please", "can", "you", "i", "want", "need", "to", "a", "an", "the", "some", "time", "out", "off",
}
_TEMPORAL_WORDS = {"tomorrow", "today", "tonight", "morning", "afternoon", "evening", "night", "noon", "midnight"}
_DAY_WORD_RE = re.compile(rf"(?:{'|'.join(pattern for pattern, _ in DAY_LEXICON)})", re.I)


def _clean_phrase(phrase: str) -> str:
    words = [word for word in phrase.split() if word]
    words = [
        word for word in words
        if not _DAY_WORD_RE.fullmatch(word.strip(".,"))
        and word.lower() not in _TEMPORAL_WORDS
    ]
    while words and words[0].lower() in _LEADING_NOISE:
        words.pop(0)
    return " ".join(words).strip(" -/&")


def extract_title(text: str) -> t.Optional[str]:
    """Prefer the phrase after "for", else the leading phrase before any time or keyword."""
    for pattern in TITLE_PATTERNS:
        match = pattern.search(text)
        if match is None:
            continue
        title = _clean_phrase(match.group("phrase"))
        if title:
            return title
    return None


ROOM_RE = re.compile(r"\b(?P<kind>room|rm\.?|building|bldg\.?)\s+(?P<id>[a-z]?\d+[a-z]?\b|[a-z][\w-]*)", re.I)
PLACE_RE = re.compile(rf"\b(?:at|in)\s+(?!\d)(?P<phrase>[a-z][\w&'/ -]*?){_PHRASE_END}", re.I)


def extract_location(text: str) -> t.Optional[str]:
    """Room/building identifiers first, then an "at"/"in" place that is not a time."""
    room = ROOM_RE.search(text)
    if room:
        kind = room.group("kind").rstrip(".").lower()
        label = "Room" if kind in ("room", "rm") else "Building"
        return f"{label} {room.group('id')}"

    for match in PLACE_RE.finditer(text):
        place = _clean_phrase(match.group("phrase"))
        if place and "@" not in place:
            return place
    return None


EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")


def extract_attendees(text: str) -> list[str]:
    seen: dict[str, None] = {}
    for email in EMAIL_RE.findall(text):
        seen.setdefault(email, None)
    return list(seen)


def extract_description(text: str) -> t.Optional[str]:
    if len(text) > 50:
        return f'Auto-generated from: "{text}"'
    return None


def parse_schedule(text: str, *, now: t.Optional[datetime] = None) -> ParsedSchedule:
    """Run every extractor over one request."""
    duration, explicit = extract_duration(text)
    days = extract_days_of_week(text)
    frequency = extract_frequency(text)

    parsed = ParsedSchedule(
        title=extract_title(text),
        duration=duration,
        explicit_duration=explicit,
        time_expressions=find_time_expressions(text),
        days_of_week=days,
        frequency=frequency,
        constraints=extract_constraints(text),
        location=extract_location(text),
        attendees=extract_attendees(text),
        description=extract_description(text),
        recurrence=extract_recurrence(text, days, frequency, now=now),
    )
    logger.debug("Parsed request %r -> %s", text, parsed)
    return parsed
