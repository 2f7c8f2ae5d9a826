"""
Syllabus processing service: extraction, storage, lookup and calendar import.

Storage and audit collaborators are passed in. A storage failure while
saving never fails the extraction; it is logged and the analysis is still
returned.
"""
from __future__ import annotations

import logging
import os
import typing as t
import uuid
from dataclasses import asdict
from datetime import date, datetime, time, timedelta

from planner_server.models import EventPlan
from planner_server.temporal import local_now
from productivity_server.models import CalendarEvent
from productivity_server.providers import CalendarProvider, CalendarProviderError
from productivity_server.store import AuditEntry, AuditSink, RecordStore, StorageError
from syllabus_server.chunking import chunk_document
from syllabus_server.extractor import DocumentEventExtractor, derive_default_year, extract_course_info
from syllabus_server.models import CourseInfo, DocumentChunk, SyllabusAnalysis, SyllabusEvent
from syllabus_server.pdf_utils import extract_pdf_pages, extract_pdf_pages_from_content, normalize_pdf_text

logger = logging.getLogger(__name__)

# Local hour at which imported syllabus events are placed on the calendar
SYLLABUS_IMPORT_HOUR = int(os.getenv("SYLLABUS_IMPORT_HOUR", "9"))
IMPORT_DURATION = timedelta(hours=1)

EVENTS = "syllabus_events"
COURSES = "courses"
SYLLABI = "syllabi"


def _collection(name: str, user_id: str) -> str:
    return f"{name}:{user_id}"


class SyllabusService:

    def __init__(
            self,
            store: RecordStore,
            audit: t.Optional[AuditSink] = None,
            extractor: t.Optional[DocumentEventExtractor] = None,
            import_hour: int = SYLLABUS_IMPORT_HOUR,
    ):
        self.store = store
        self.audit = audit
        self.extractor = extractor or DocumentEventExtractor()
        self.import_hour = import_hour

    # ---------- processing ----------

    def process_text(
            self,
            user_id: str,
            text: str,
            *,
            filename: str = "syllabus.pdf",
            now: t.Optional[datetime] = None,
    ) -> SyllabusAnalysis:
        """Extract course info and dated events from syllabus text, then store them."""
        normalized = normalize_pdf_text(text)
        chunks = chunk_document(normalized, {"source": filename})
        course_info = extract_course_info(normalized)
        default_year = derive_default_year(course_info.semester)

        events = self.extractor.extract_events(chunks, default_year, course=course_info.name, now=now)
        self._save(user_id, course_info, events, chunks, filename)
        self._record("PROCESS_SYLLABUS", user_id, {"filename": filename, "events": len(events)})

        return SyllabusAnalysis(
            events=events,
            course_info=course_info,
            summary=f"Extracted {len(events)} events from syllabus",
        )

    def process_pdf(self, user_id: str, path_or_url: str, *, now: t.Optional[datetime] = None) -> SyllabusAnalysis:
        pages = extract_pdf_pages(path_or_url)
        filename = path_or_url.rstrip("/").rsplit("/", 1)[-1] or "syllabus.pdf"
        return self.process_text(user_id, "\n\n".join(pages), filename=filename, now=now)

    def process_pdf_content(
            self,
            user_id: str,
            content: bytes | str,
            *,
            filename: str = "syllabus.pdf",
            now: t.Optional[datetime] = None,
    ) -> SyllabusAnalysis:
        """Same as process_pdf for raw bytes or a base64 string."""
        pages = extract_pdf_pages_from_content(content)
        return self.process_text(user_id, "\n\n".join(pages), filename=filename, now=now)

    def _save(
            self,
            user_id: str,
            course_info: CourseInfo,
            events: list[SyllabusEvent],
            chunks: list[DocumentChunk],
            filename: str,
    ) -> None:
        try:
            if course_info.name:
                self.store.put(_collection(COURSES, user_id), course_info.name, asdict(course_info))
            for event in events:
                self.store.put(_collection(EVENTS, user_id), event.id, asdict(event))
            self.store.put(_collection(SYLLABI, user_id), str(uuid.uuid4()), {
                "filename": filename,
                "chunks": [asdict(chunk) for chunk in chunks],
                "extracted_dates": [
                    {"id": e.id, "title": e.title, "date": e.date, "type": e.type} for e in events
                ],
            })
        except StorageError as e:
            logger.warning("Could not store syllabus data for user %s: %s", user_id, e)

    def _record(self, action: str, user_id: str, details: dict[str, t.Any]) -> None:
        if self.audit is not None:
            self.audit.record(AuditEntry(action=action, user_id=user_id, details=details))

    # ---------- lookup ----------

    def stored_events(self, user_id: str) -> list[SyllabusEvent]:
        """Stored events for a user, sorted by date. Malformed records are skipped."""
        try:
            records = self.store.list(_collection(EVENTS, user_id))
        except StorageError as e:
            logger.warning("Could not read syllabus events for user %s: %s", user_id, e)
            return []

        events: list[SyllabusEvent] = []
        for record in records:
            try:
                event = SyllabusEvent(**record)
                date.fromisoformat(event.date)
            except (TypeError, ValueError):
                logger.debug("Skipping malformed syllabus record %r", record)
                continue
            events.append(event)
        return sorted(events, key=lambda e: e.date)

    def search(self, user_id: str, query: str) -> list[SyllabusEvent]:
        """Keyword match on title, description and type."""
        needle = query.strip().lower()
        return [
            event for event in self.stored_events(user_id)
            if needle in event.title.lower()
            or needle in event.description.lower()
            or needle in event.type.lower()
        ]

    def upcoming(self, user_id: str, days: int = 30, *, now: t.Optional[datetime] = None) -> list[SyllabusEvent]:
        today = (now or local_now()).date()
        horizon = today + timedelta(days=days)
        return [
            event for event in self.stored_events(user_id)
            if today <= date.fromisoformat(event.date) <= horizon
        ]

    # ---------- calendar import ----------

    def prepare_import(self, user_id: str, event_ids: t.Optional[t.Sequence[str]] = None) -> list[EventPlan]:
        """
        Turn stored syllabus events into one-hour plans at the import hour.

        :param user_id: Owner of the events.
        :param event_ids: Events to import; all stored events when None.
        :return: One EventPlan per selected event.
        :raises ValueError: When none of the ids match a stored event.
        """
        events = self.stored_events(user_id)
        if event_ids is not None:
            wanted = set(event_ids)
            events = [event for event in events if event.id in wanted]
        if not events:
            raise ValueError("No valid events found")

        plans = []
        for event in events:
            start = datetime.combine(date.fromisoformat(event.date), time(self.import_hour)).astimezone()
            plans.append(EventPlan(
                id=str(uuid.uuid4()),
                title=event.title,
                start_date_time=start.isoformat(),
                end_date_time=(start + IMPORT_DURATION).isoformat(),
                confidence=event.confidence,
                explanation=f"Imported from syllabus ({event.type})",
                description=event.description or f"Imported from syllabus: {event.source_text}",
            ))
        return plans

    def import_events(
            self,
            user_id: str,
            event_ids: t.Optional[t.Sequence[str]],
            provider: CalendarProvider,
    ) -> list[CalendarEvent]:
        """Write selected events to the calendar. Events the provider rejects are skipped."""
        created: list[CalendarEvent] = []
        for plan in self.prepare_import(user_id, event_ids):
            try:
                created.append(provider.create_event(plan))
            except CalendarProviderError as e:
                logger.warning("Could not import %r: %s", plan.title, e)
        self._record("IMPORT_SYLLABUS_EVENTS", user_id, {"imported": len(created)})
        return created
