"""
Data models for syllabus event extraction.

This module contains the dataclasses used to represent dated academic events
found in syllabus text, plus the course metadata pulled from the same document.
"""
from __future__ import annotations

import typing as t
from dataclasses import dataclass, field


# Type literals for commonly used values
EventType = t.Literal["exam", "assignment", "quiz", "project", "other"]


@dataclass(frozen=True)
class SyllabusEvent:
    """
    A calendar-worthy fact from a syllabus, e.g.:
    - "Midterm Exam on Oct 12, 2025" -> type "exam", date "2025-10-12"
    """
    id: str
    title: str
    date: str                   # "YYYY-MM-DD"
    type: EventType
    confidence: float
    source_text: str            # exact matched substring
    description: str = ""
    course: str = ""

    @property
    def key(self) -> str:
        return f"{self.title}|{self.date}|{self.type}"


@dataclass
class CourseInfo:
    """Course metadata found in labelled lines ("Course: EE 101")."""
    name: str = ""
    instructor: str = ""
    semester: str = ""          # e.g. "Semester: Fall 2025"


@dataclass
class SyllabusAnalysis:
    """
    Top-level output of processing one syllabus.
    """
    events: list[SyllabusEvent] = field(default_factory=list)
    course_info: CourseInfo = field(default_factory=CourseInfo)
    summary: str = ""


@dataclass
class DocumentChunk:
    """One slice of document text handed to the extractor."""
    content: str
    index: int = 0
    metadata: dict[str, t.Any] = field(default_factory=dict)
