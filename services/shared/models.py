"""
Request and response models for the calendar REST API.

Domain records live in ``calendar_core.models``; these wrap them for the
JSON bodies the service sends and receives.
"""
from __future__ import annotations

import typing as t
from datetime import datetime

from pydantic import BaseModel, Field

from calendar_core.models import CalendarEvent, PrioritizedAssignment, SyllabusEvent


class PrioritizeResponse(BaseModel):
    """Result of ``POST /api/calendar-priorities``."""
    prioritized_assignments: list[PrioritizedAssignment] = Field(default_factory=list)
    calendar_events: list[CalendarEvent] = Field(default_factory=list)
    message: str = ""


class CanvasCalendarResponse(BaseModel):
    events: list[CalendarEvent] = Field(default_factory=list)
    assignments: list[PrioritizedAssignment] = Field(default_factory=list)


class SyllabusFile(BaseModel):
    """An uploaded PDF: base64 content, optionally as a data URL."""
    data: str = ""
    name: str = "syllabus.pdf"


class ProcessSyllabusRequest(BaseModel):
    file: t.Optional[SyllabusFile] = None


class ProcessSyllabusResponse(BaseModel):
    events: list[SyllabusEvent] = Field(default_factory=list)
    calendar_events: list[CalendarEvent] = Field(default_factory=list)
    course_code: t.Optional[str] = None
    course_name: t.Optional[str] = None
    instructor: t.Optional[str] = None
    term: t.Optional[str] = None
    used_fallback: bool = False
    message: str = ""


class StoredSyllabusResponse(BaseModel):
    """The syllabus currently stored for a session."""
    filename: str
    uploaded_at: datetime
    has_events: bool
    data: str                       # data URL
