from __future__ import annotations

import typing as t

from fastmcp import FastMCP

from planner_server.models import EventPlan
from productivity_server.store import InMemoryAuditLog, InMemoryRecordStore
from .chunking import chunk_document
from .extractor import DocumentEventExtractor
from .models import SyllabusAnalysis, SyllabusEvent
from .service import SyllabusService


mcp = FastMCP("SyllabusServer")

extractor = DocumentEventExtractor()
service = SyllabusService(InMemoryRecordStore(), InMemoryAuditLog(), extractor)


# -----------------------------
# MCP Tool Implementation
# -----------------------------

@mcp.tool()
def extract_syllabus_events(text: str, default_year: t.Optional[int] = None) -> list[SyllabusEvent]:
    """
    Extract dated exams, quizzes, assignments and projects from syllabus text
    without storing anything.
    """
    return extractor.extract_events(chunk_document(text), default_year)


@mcp.tool()
def parse_syllabus(user_id: str, pdf_path_or_url: str) -> SyllabusAnalysis:
    """
    Parse a syllabus PDF/URL, store its events for the user and return them
    with the course info.
    """
    return service.process_pdf(user_id, pdf_path_or_url)


@mcp.tool()
def parse_syllabus_upload(user_id: str, content_base64: str, filename: str = "syllabus.pdf") -> SyllabusAnalysis:
    """
    Parse an uploaded syllabus PDF sent as base64 text, store its events for
    the user and return them with the course info.
    """
    return service.process_pdf_content(user_id, content_base64, filename=filename)


@mcp.tool()
def parse_syllabus_text(user_id: str, text: str) -> SyllabusAnalysis:
    """Same as parse_syllabus for text that is already extracted."""
    return service.process_text(user_id, text)


@mcp.tool()
def search_syllabus(user_id: str, query: str) -> list[SyllabusEvent]:
    """Stored events whose title, description or type contains the query."""
    return service.search(user_id, query)


@mcp.tool()
def upcoming_syllabus_events(user_id: str, days: int = 30) -> list[SyllabusEvent]:
    """Stored events dated between today and ``days`` from now."""
    return service.upcoming(user_id, days)


@mcp.tool()
def prepare_syllabus_import(user_id: str, event_ids: list[str]) -> list[EventPlan]:
    """
    Build one-hour calendar plans for the selected stored events.
    The plans can be written with the productivity server's create_calendar_event.
    """
    return service.prepare_import(user_id, event_ids)


if __name__ == "__main__":
    # Run as an MCP server over stdio
    mcp.run()
