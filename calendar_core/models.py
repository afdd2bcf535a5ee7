"""
Domain models for the assignment and syllabus calendar pipeline.

Assignments come from Canvas, get a priority from the classifier and are
materialized, together with syllabus events, into CalendarEvent records
that the calendar UI renders.
"""
from __future__ import annotations

import typing as t
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


# Type literals for commonly used values
Priority = t.Literal["high", "medium", "low"]
Variant = t.Literal["primary", "success", "default", "warning", "danger"]
EventSource = t.Literal["canvas", "syllabus"]

PRIORITIES: tuple[str, ...] = ("high", "medium", "low")


def _coerce_priority(value: t.Any) -> str:
    """Lower-case known priorities; anything else becomes medium."""
    if isinstance(value, str) and value.strip().lower() in PRIORITIES:
        return value.strip().lower()
    return "medium"


class Course(BaseModel):
    """An actively enrolled Canvas course."""
    id: int
    name: str = ""


class Assignment(BaseModel):
    """
    A graded task as returned by the Canvas assignments endpoint.

    Canvas sends many more fields; unknown ones are ignored.
    """
    id: int
    name: str = ""
    course: str = ""                          # owning course name
    course_id: t.Optional[int] = None
    created_at: t.Optional[datetime] = None
    due_at: t.Optional[datetime] = None
    points_possible: t.Optional[float] = None
    description: str = ""

    @field_validator("description", "name", "course", mode="before")
    @classmethod
    def _none_to_empty(cls, value: t.Any) -> t.Any:
        return value or ""

    @property
    def points(self) -> float:
        return self.points_possible or 0.0


class ProcessedAssignment(Assignment):
    """Assignment with the signed number of days left, computed at read time."""
    days_until_due: t.Optional[int] = None


class PrioritizedAssignment(ProcessedAssignment):
    """Assignment after priority classification."""
    priority: Priority = "medium"
    ai_notes: str = ""


class PriorityAssessment(BaseModel):
    """One classification row: which assignment, what priority, and why."""
    id: t.Union[int, str]
    priority: Priority = "medium"
    notes: str = ""

    @field_validator("priority", mode="before")
    @classmethod
    def _normalize_priority(cls, value: t.Any) -> str:
        return _coerce_priority(value)

    @field_validator("notes", mode="before")
    @classmethod
    def _stringify_notes(cls, value: t.Any) -> str:
        return "" if value is None else str(value)


class ExtractedSyllabusEvent(BaseModel):
    """A raw syllabus item as described by the model, dates still strings."""
    model_config = ConfigDict(populate_by_name=True)

    title: str
    category: str
    start_date: str = Field(alias="startDate")
    end_date: str = Field(alias="endDate")
    priority: Priority
    notes: t.Optional[str] = None


class SyllabusExtraction(BaseModel):
    """Validated model output for one syllabus."""
    model_config = ConfigDict(populate_by_name=True)

    events: list[ExtractedSyllabusEvent] = Field(default_factory=list)
    course_code: t.Optional[str] = Field(default=None, alias="courseCode")
    course_name: t.Optional[str] = Field(default=None, alias="courseName")
    instructor: t.Optional[str] = None
    term: t.Optional[str] = None


class SyllabusEvent(BaseModel):
    """A dated syllabus item ready to be materialized."""
    id: str = ""
    title: str
    category: str = ""
    start_date: datetime
    end_date: t.Optional[datetime] = None
    priority: Priority = "medium"
    notes: str = ""


class CalendarEvent(BaseModel):
    """The only record rendered by the calendar UI."""
    id: str
    title: str
    description: str = ""
    start_date: datetime
    end_date: datetime
    variant: Variant = "primary"
    source: EventSource
