"""
Dated academic event extraction from syllabus text.

Three date-pattern families are scanned over every chunk. Matches from
different families may cover the same characters ("Oct 12" inside
"Oct 12/2025"), so candidates are ranked before use:

1. longer matches win,
2. on equal length the earlier family wins (month-name, numeric, dot-numeric),
3. then the earlier position.

Accepted matches never overlap and are handled in document order. Each one
is resolved to a date, classified from a window of surrounding text, titled,
scored and deduplicated on ``title|date|type``.
"""
from __future__ import annotations

import logging
import re
import typing as t
import uuid
from dataclasses import dataclass
from datetime import datetime

from planner_server.models import CONFIDENCE_CEILING
from planner_server.temporal import (DAY_MONTH_RE, ISO_DATE_RE, MONTH_DAY_RE, numeric_date_pattern,
                                     resolve_date)
from syllabus_server.models import CourseInfo, DocumentChunk, EventType, SyllabusEvent

logger = logging.getLogger(__name__)

CONTEXT_RADIUS = 120
BASE_CONFIDENCE = 0.5

# Namespace for deterministic event ids
EVENT_ID_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "syllabus-event")

# Family name -> patterns. Order is the tie-break order.
DATE_FAMILIES: tuple[tuple[str, tuple[re.Pattern[str], ...]], ...] = (
    ("month_name", (MONTH_DAY_RE, DAY_MONTH_RE)),
    ("numeric", (ISO_DATE_RE, numeric_date_pattern(r"/\-"))),
    ("dot_numeric", (numeric_date_pattern(r"."),)),
)

EVENT_HINT_RE = re.compile(r"exam|final|midterm|quiz|assignment|homework|project|due|deadline", re.I)

# Classification precedence: exam > quiz > assignment > project > other
TYPE_RULES: tuple[tuple[EventType, re.Pattern[str]], ...] = (
    ("exam", re.compile(r"\b(?:final|midterm|exam|test)s?\b", re.I)),
    ("quiz", re.compile(r"\bquiz(?:zes)?\b", re.I)),
    ("assignment", re.compile(r"\b(?:assignment|homework|hw|deliverable|report|essay|paper|due)s?\b", re.I)),
    ("project", re.compile(r"\bprojects?\b", re.I)),
)

# Keywords in the matched text itself that confirm the inferred type
CONFIRMING_KEYWORDS: dict[str, re.Pattern[str]] = {
    "exam": re.compile(r"exam|test|final|midterm", re.I),
    "assignment": re.compile(r"assignment|homework|hw|project|due", re.I),
    "quiz": re.compile(r"quiz", re.I),
}

_FOUR_DIGIT_YEAR_RE = re.compile(r"\d{4}")
_MONTH_DAY_SHAPE_RE = re.compile(r"[A-Za-z]+\s+\d{1,2}")

_KEYWORD = r"(?i:exam|test|assignment|quiz|project)"
_CAPITALIZED = r"[A-Z][a-z]+(?:[ \t]+[A-Z][a-z]+)*"
TITLE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(rf"\b(?P<phrase>{_CAPITALIZED})[ \t]+{_KEYWORD}\b"),
    re.compile(rf"\b{_KEYWORD}[ \t]+(?P<phrase>{_CAPITALIZED})\b"),
)
_TITLE_NOISE = {"The", "A", "An", "Our", "Your", "Next"}

_SENTENCE_SPLIT_RE = re.compile(r"[.!?\n]")

COURSE_NAME_RE = re.compile(r"(?:course|class|subject):\s*([A-Z]{2,4}\s*\d{3,4})", re.I)
INSTRUCTOR_RE = re.compile(r"(?:instructor|professor|prof):\s*([A-Z][a-z]+\s+[A-Z][a-z]+)", re.I)
SEMESTER_RE = re.compile(r"(?:semester|term|quarter):\s*(?:fall|spring|summer|winter)\s*\d{4}", re.I)
SEMESTER_YEAR_RE = re.compile(r"\b(20\d{2})\b")


@dataclass(frozen=True)
class DateMatch:
    """One accepted date-like span within a chunk."""
    family: str
    start: int
    end: int
    text: str
    has_year: bool


def extract_course_info(text: str) -> CourseInfo:
    name = COURSE_NAME_RE.search(text)
    instructor = INSTRUCTOR_RE.search(text)
    semester = SEMESTER_RE.search(text)
    return CourseInfo(
        name=name.group(1) if name else "",
        instructor=instructor.group(1) if instructor else "",
        semester=semester.group(0) if semester else "",
    )


def derive_default_year(semester: t.Optional[str]) -> t.Optional[int]:
    """Year hint from a semester string such as "Fall 2025"."""
    match = SEMESTER_YEAR_RE.search(semester or "")
    return int(match.group(1)) if match else None


def find_date_matches(text: str) -> list[DateMatch]:
    """All non-overlapping date spans in ``text``, in document order."""
    candidates: list[tuple[int, int, DateMatch]] = []
    for rank, (family, patterns) in enumerate(DATE_FAMILIES):
        for pattern in patterns:
            for match in pattern.finditer(text):
                candidates.append((
                    rank,
                    match.start(),
                    DateMatch(
                        family=family,
                        start=match.start(),
                        end=match.end(),
                        text=match.group(0),
                        has_year=match.groupdict().get("year") is not None,
                    ),
                ))

    candidates.sort(key=lambda item: (-(item[2].end - item[2].start), item[0], item[1]))
    accepted: list[DateMatch] = []
    for _, _, candidate in candidates:
        if any(candidate.start < other.end and other.start < candidate.end for other in accepted):
            continue
        accepted.append(candidate)
    return sorted(accepted, key=lambda m: m.start)


def classify(context: str) -> EventType:
    for event_type, pattern in TYPE_RULES:
        if pattern.search(context):
            return event_type
    return "other"


def score(match_text: str, event_type: str) -> float:
    confidence = BASE_CONFIDENCE
    confirming = CONFIRMING_KEYWORDS.get(event_type)
    if confirming is not None and confirming.search(match_text):
        confidence += 0.3
    if _FOUR_DIGIT_YEAR_RE.search(match_text):
        confidence += 0.1
    if _MONTH_DAY_SHAPE_RE.search(match_text):
        confidence += 0.1
    return round(min(confidence, CONFIDENCE_CEILING), 2)


def make_title(context: str, anchor: int, event_type: str, iso_date: str) -> str:
    """
    Capitalized phrase next to an event keyword, closest to the date, e.g.
    "Midterm Exam on Oct 12" -> "Midterm Exam". Falls back to "Exam - 2025-10-12".
    """
    label = event_type.capitalize()
    best: t.Optional[tuple[int, str]] = None
    for pattern in TITLE_PATTERNS:
        for match in pattern.finditer(context):
            words = match.group("phrase").split()
            while words and words[0] in _TITLE_NOISE:
                words.pop(0)
            if not words:
                continue
            distance = min(abs(match.start() - anchor), abs(match.end() - anchor))
            if best is None or distance < best[0]:
                best = (distance, " ".join(words))
    if best is None:
        return f"{label} - {iso_date}"
    return f"{best[1]} {label}"


def make_description(context: str) -> str:
    for sentence in _SENTENCE_SPLIT_RE.split(context):
        sentence = " ".join(sentence.split())
        if len(sentence) >= 10:
            return sentence
    return ""


def event_id(title: str, iso_date: str, event_type: str) -> str:
    return str(uuid.uuid5(EVENT_ID_NAMESPACE, f"{title}|{iso_date}|{event_type}"))


class DocumentEventExtractor:
    """
    Finds dated academic events in chunks of syllabus text.

    The extractor is pure: the same chunks, year hint and ``now`` always
    produce the same events, ids included.
    """

    def __init__(self, context_radius: int = CONTEXT_RADIUS):
        self.context_radius = context_radius

    def extract_events(
            self,
            chunks: t.Iterable[t.Union[DocumentChunk, str]],
            default_year: t.Optional[int] = None,
            *,
            course: str = "",
            now: t.Optional[datetime] = None,
    ) -> list[SyllabusEvent]:
        """
        :param chunks: Document chunks (or plain strings) in reading order.
        :param default_year: Year used for dates written without one.
        :param course: Course name stamped on every event (optional).
        :param now: Reference time for year rollover.
        :return: Deduplicated events sorted by date.
        """
        seen: dict[str, SyllabusEvent] = {}
        for chunk in chunks:
            text = chunk.content if isinstance(chunk, DocumentChunk) else chunk
            for event in self._events_in_text(text or "", default_year, course, now):
                seen.setdefault(event.key, event)

        events = sorted(seen.values(), key=lambda event: event.date)
        logger.info("Extracted %d event(s)", len(events))
        return events

    def _events_in_text(
            self,
            text: str,
            default_year: t.Optional[int],
            course: str,
            now: t.Optional[datetime],
    ) -> t.Iterator[SyllabusEvent]:
        for match in find_date_matches(text):
            lo = max(0, match.start - self.context_radius)
            context = text[lo:match.end + self.context_radius]

            # bare numerics such as page numbers or scores
            if match.family != "month_name" and not match.has_year and not EVENT_HINT_RE.search(context):
                continue

            resolved = resolve_date(match.text, default_year, now=now)
            if resolved is None:
                logger.debug("Dropping unresolvable date %r", match.text)
                continue

            iso_date = resolved.isoformat()
            event_type = classify(context)
            title = make_title(context, match.start - lo, event_type, iso_date)
            yield SyllabusEvent(
                id=event_id(title, iso_date, event_type),
                title=title,
                date=iso_date,
                type=event_type,
                confidence=score(match.text, event_type),
                source_text=match.text,
                description=make_description(context),
                course=course,
            )
