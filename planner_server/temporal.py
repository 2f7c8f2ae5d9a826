"""
Temporal parsing for scheduling requests and syllabus text.

Clock times and calendar dates are both resolved by ordered strategy lists.
Each strategy either returns a structured result or None, and the first
strategy that matches decides the outcome. Reordering the lists changes
behaviour, so keep them in the documented priority order.
"""
from __future__ import annotations

import logging
import re
import typing as t
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from planner_server.models import TimeExpression, TimeOfDay

logger = logging.getLogger(__name__)

# Hours below this with no am/pm are read as evening ("7" -> 19:00)
EVENING_BIAS_CUTOFF = 8

# A year-less date further than this in the past means "next occurrence"
ROLLOVER_WINDOW = timedelta(days=30 * 6)

MONTHS: dict[str, int] = {
    "january": 1, "jan": 1,
    "february": 2, "feb": 2,
    "march": 3, "mar": 3,
    "april": 4, "apr": 4,
    "may": 5,
    "june": 6, "jun": 6,
    "july": 7, "jul": 7,
    "august": 8, "aug": 8,
    "september": 9, "sept": 9, "sep": 9,
    "october": 10, "oct": 10,
    "november": 11, "nov": 11,
    "december": 12, "dec": 12,
}


# -----------------------------
# Clock times
# -----------------------------

_MERIDIEM = r"(?P<meridiem>[ap])\.?m\.?(?![a-z])"

# Priority order: H:MM meridiem, H meridiem, H:MM, bare H
TIME_STRATEGIES: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("h_mm_meridiem", re.compile(rf"(?<!\d)(?P<hour>\d{{1,2}}):(?P<minute>\d{{2}})\s*{_MERIDIEM}", re.I)),
    ("h_meridiem", re.compile(rf"(?<!\d)(?P<hour>\d{{1,2}})\s*{_MERIDIEM}", re.I)),
    ("h_mm", re.compile(r"(?<!\d)(?P<hour>\d{1,2}):(?P<minute>\d{2})(?!\d)")),
    ("bare_hour", re.compile(r"(?<!\d)(?P<hour>\d{1,2})(?!\d)")),
)


def _to_time_of_day(
        hour_text: str,
        minute_text: t.Optional[str],
        meridiem: t.Optional[str],
) -> t.Optional[TimeOfDay]:
    hours = int(hour_text)
    minutes = int(minute_text) if minute_text else 0
    meridiem = meridiem.lower() if meridiem else None

    if meridiem == "p" and hours != 12:
        hours += 12
    elif meridiem == "a" and hours == 12:
        hours = 0
    elif meridiem is None and hours < EVENING_BIAS_CUTOFF:
        hours += 12

    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        return None
    return TimeOfDay(hours=hours, minutes=minutes)


def parse_time(token: str) -> t.Optional[TimeOfDay]:
    """Parse a time token such as "7pm", "7:30", "2:30pm" or "7".

    The first pattern that matches wins, even when its values turn out to be
    out of range; later patterns are not tried.

    :param token: Free-text time token.
    :return: A TimeOfDay, or None when nothing recognizable was found.
    """
    for name, pattern in TIME_STRATEGIES:
        match = pattern.search(token)
        if match is None:
            continue
        groups = match.groupdict()
        result = _to_time_of_day(groups["hour"], groups.get("minute"), groups.get("meridiem"))
        if result is None:
            logger.debug("Time token %r matched %s but is out of range", token, name)
        return result
    return None


_NOT_A_CLOCK = r"(?!\s*(?:hours?|hrs?|minutes?|mins?|weeks?|days?|times|x\b|%))"

_RANGE_RE = re.compile(
    r"(?<![\d:/.\-])(?P<h1>\d{1,2})(?::(?P<m1>\d{2}))?\s*(?:(?P<mer1>[ap])\.?m\.?)?"
    r"\s*(?:-|–|—|\bto\b|\buntil\b|\btill\b)\s*"
    r"(?P<h2>\d{1,2})(?::(?P<m2>\d{2}))?\s*(?:(?P<mer2>[ap])\.?m\.?(?![a-z]))?"
    rf"(?![\d/.:\-]){_NOT_A_CLOCK}",
    re.I,
)
_MERIDIEM_TIME_RE = re.compile(
    r"(?<![\d:])(?P<h1>\d{1,2})(?::(?P<m1>\d{2}))?\s*(?P<mer1>[ap])\.?m\.?(?![a-z])",
    re.I,
)
_CLOCK_RE = re.compile(r"(?<![\d:/.\-])(?P<h1>\d{1,2}):(?P<m1>\d{2})(?![\d:])")
_AT_HOUR_RE = re.compile(
    rf"(?:\bat|@)\s*(?P<h1>\d{{1,2}})(?![\d:/.\-])(?!\s*[ap]\.?m){_NOT_A_CLOCK}",
    re.I,
)

# Earlier entries claim their span first
TIME_EXPRESSION_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("range", _RANGE_RE),
    ("meridiem", _MERIDIEM_TIME_RE),
    ("clock", _CLOCK_RE),
    ("at_hour", _AT_HOUR_RE),
)


def _range_expression(match: re.Match[str]) -> t.Optional[TimeExpression]:
    g = match.groupdict()
    end = _to_time_of_day(g["h2"], g["m2"], g["mer2"])
    if end is None:
        return None

    start: t.Optional[TimeOfDay] = None
    if g["mer1"] is None and g["mer2"] is not None:
        # "7-9pm": the start borrows the end's meridiem if that keeps it first
        inherited = _to_time_of_day(g["h1"], g["m1"], g["mer2"])
        if inherited is not None and (inherited.hours, inherited.minutes) < (end.hours, end.minutes):
            start = inherited
    if start is None:
        start = _to_time_of_day(g["h1"], g["m1"], g["mer1"])
    if start is None:
        return None

    if g["mer2"] is None and (end.hours, end.minutes) <= (start.hours, start.minutes) and end.hours < 12:
        end = TimeOfDay(end.hours + 12, end.minutes)

    return TimeExpression(text=match.group(0).strip(), start=start, end=end)


def find_time_expressions(text: str) -> list[TimeExpression]:
    """Find every time mention in request text, in reading order.

    Spans never overlap: a range such as "7-9pm" is reported once and its
    "9pm" is not reported again as a separate time.
    """
    taken: list[tuple[int, int]] = []
    found: list[tuple[int, TimeExpression]] = []

    for name, pattern in TIME_EXPRESSION_PATTERNS:
        for match in pattern.finditer(text):
            span = match.span()
            if any(span[0] < end and start < span[1] for start, end in taken):
                continue
            if name == "range":
                expression = _range_expression(match)
            else:
                g = match.groupdict()
                clock = _to_time_of_day(g["h1"], g.get("m1"), g.get("mer1"))
                expression = TimeExpression(text=match.group(0).strip(), start=clock) if clock else None
            if expression is None:
                continue
            taken.append(span)
            found.append((span[0], expression))

    found.sort(key=lambda item: item[0])
    return [expression for _, expression in found]


# -----------------------------
# Calendar dates
# -----------------------------

_MONTH_ALT = "|".join(sorted(MONTHS, key=len, reverse=True))
_ORDINAL = r"(?:st|nd|rd|th)?"
_YEAR = r"(?P<year>\d{4}|\d{2})(?![\d:]|\s*[ap]\.?m\b)"

ISO_DATE_RE = re.compile(r"\b(?P<year>\d{4})-(?P<month>\d{1,2})-(?P<day>\d{1,2})\b")
MONTH_DAY_RE = re.compile(
    rf"\b(?P<month>{_MONTH_ALT})\.?\s+(?P<day>\d{{1,2}}){_ORDINAL}\b(?:,?\s+{_YEAR})?",
    re.I,
)
DAY_MONTH_RE = re.compile(
    rf"\b(?P<day>\d{{1,2}}){_ORDINAL}\s+(?:of\s+)?(?P<month>{_MONTH_ALT})\b\.?(?:,?\s+{_YEAR})?",
    re.I,
)


def numeric_date_pattern(separators: str) -> re.Pattern[str]:
    """Build a M/D[/Y] pattern for the given separator class, e.g. ``"/\\-"``."""
    return re.compile(
        rf"(?<![\d/.\-])(?P<month>\d{{1,2}})(?P<sep>[{separators}])(?P<day>\d{{1,2}})"
        rf"(?:(?P=sep)(?P<year>\d{{4}}|\d{{2}}))?(?!\d|[/.\-]\d)"
    )


NUMERIC_DATE_RE = numeric_date_pattern(r"/.\-")


@dataclass(frozen=True)
class DateParts:
    """Month/day with an optional explicit year, before year inference."""
    month: int
    day: int
    year: t.Optional[int] = None


def _explicit_year(text: t.Optional[str]) -> t.Optional[int]:
    if not text:
        return None
    year = int(text)
    return 2000 + year if year < 100 else year


def _match_iso(text: str) -> t.Optional[DateParts]:
    m = ISO_DATE_RE.search(text)
    if not m:
        return None
    return DateParts(month=int(m["month"]), day=int(m["day"]), year=int(m["year"]))


def _match_month_day(text: str) -> t.Optional[DateParts]:
    m = MONTH_DAY_RE.search(text)
    if not m:
        return None
    return DateParts(month=MONTHS[m["month"].lower()], day=int(m["day"]), year=_explicit_year(m["year"]))


def _match_day_month(text: str) -> t.Optional[DateParts]:
    m = DAY_MONTH_RE.search(text)
    if not m:
        return None
    return DateParts(month=MONTHS[m["month"].lower()], day=int(m["day"]), year=_explicit_year(m["year"]))


def _match_numeric(text: str) -> t.Optional[DateParts]:
    m = NUMERIC_DATE_RE.search(text)
    if not m:
        return None
    month, day = int(m["month"]), int(m["day"])
    if month > 12 and day <= 12:
        # day-first input such as 15/10/2025
        month, day = day, month
    return DateParts(month=month, day=day, year=_explicit_year(m["year"]))


# Priority order: ISO, "Oct 12", "12 Oct", numeric
DATE_STRATEGIES: tuple[tuple[str, t.Callable[[str], t.Optional[DateParts]]], ...] = (
    ("iso", _match_iso),
    ("month_day", _match_month_day),
    ("day_month", _match_day_month),
    ("numeric", _match_numeric),
)


def _safe_date(year: int, month: int, day: int) -> t.Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def resolve_date(
        text: str,
        default_year: t.Optional[int] = None,
        *,
        now: t.Optional[datetime] = None,
) -> t.Optional[date]:
    """Resolve a loosely written date to a calendar date.

    When the text carries no year, ``default_year`` (or the current year) is
    used, and a result more than six months in the past rolls forward one
    year.

    :param text: Free text containing a date, e.g. "Exam on 03/04".
    :param default_year: Year hint, usually taken from the semester.
    :param now: Reference time; defaults to the current local time.
    :return: The resolved date, or None.
    """
    parts: t.Optional[DateParts] = None
    for _name, strategy in DATE_STRATEGIES:
        parts = strategy(text)
        if parts is not None:
            break
    if parts is None:
        return None

    if parts.year is not None:
        return _safe_date(parts.year, parts.month, parts.day)

    today = (now or datetime.now()).date()
    year = default_year or today.year
    candidate = _safe_date(year, parts.month, parts.day)
    if candidate is not None and today - candidate > ROLLOVER_WINDOW:
        candidate = _safe_date(year + 1, parts.month, parts.day)
    return candidate


def parse_date_loose(
        text: str,
        default_year: t.Optional[int] = None,
        *,
        now: t.Optional[datetime] = None,
) -> t.Optional[str]:
    """Same as resolve_date but returns an ISO date string ("2025-10-12")."""
    resolved = resolve_date(text, default_year, now=now)
    return resolved.isoformat() if resolved else None


# -----------------------------
# Timestamps
# -----------------------------

def local_now() -> datetime:
    """Current time as an aware datetime in the local zone."""
    return datetime.now().astimezone()


def parse_iso_datetime(value: t.Optional[str]) -> t.Optional[datetime]:
    """Parse an ISO timestamp leniently; naive values are taken as local time."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


def format_clock(moment: datetime) -> str:
    """Format as '7:00 PM'."""
    return moment.strftime("%I:%M %p").lstrip("0")
