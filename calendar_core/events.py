"""
Materialize prioritized assignments and syllabus events into CalendarEvents.

Canvas assignments only carry a due time, so they are drawn as the hour
leading up to it. Syllabus items are standardized into a 12:00-13:00 window
on their day. Ids are derived from the source so that loading the same item
twice yields the same event.
"""
from __future__ import annotations

import logging
import re
import typing as t
from datetime import datetime, timedelta

from calendar_core.dates import to_aware
from calendar_core.models import CalendarEvent, PrioritizedAssignment, SyllabusEvent

logger = logging.getLogger(__name__)

DEFAULT_DURATION = timedelta(hours=1)
SYLLABUS_START_HOUR = 12
SYLLABUS_END_HOUR = 13
SLUG_LENGTH = 20

PRIORITY_VARIANTS: dict[str, str] = {
    "high": "danger",
    "medium": "warning",
    "low": "success",
}


def priority_to_variant(priority: t.Any) -> str:
    """Map a priority to its calendar colour: high=danger, medium=warning, low=success, else primary."""
    if isinstance(priority, str):
        return PRIORITY_VARIANTS.get(priority, "primary")
    return "primary"


def assignment_event_id(assignment_id: t.Union[int, str]) -> str:
    return f"canvas-assignment-{assignment_id}"


def syllabus_event_id(title: str, when: datetime) -> str:
    """Stable id from a slug of the title and the event's date and time."""
    slug = re.sub(r"[^a-z0-9]", "", title.lower())[:SLUG_LENGTH]
    return f"syllabus-{slug}-{when:%Y%m%d%H%M}"


def ensure_duration(start: datetime, end: datetime) -> tuple[datetime, datetime]:
    """Clamp an end before the start, then widen a zero-length event to one hour."""
    if end < start:
        end = start
    if end == start:
        end = start + DEFAULT_DURATION
    return start, end


def _assignment_description(assignment: PrioritizedAssignment) -> str:
    lines = []
    if assignment.points:
        lines.append(f"Points: {assignment.points:g}")
    if assignment.days_until_due is not None:
        lines.append(f"Due in {assignment.days_until_due} days")
    else:
        lines.append("No due date specified")
    lines.append(f"Priority: {assignment.priority} ({assignment.ai_notes})")
    return "\n".join(lines)


def assignment_to_calendar_event(assignment: PrioritizedAssignment) -> t.Optional[CalendarEvent]:
    """
    Turn a prioritized assignment into a calendar event ending at its due time.

    Returns None for assignments without a due date.
    """
    if assignment.due_at is None:
        logger.warning("Assignment %s has no due date, skipping", assignment.id)
        return None

    start, end = ensure_duration(assignment.due_at - DEFAULT_DURATION, assignment.due_at)
    return CalendarEvent(
        id=assignment_event_id(assignment.id),
        title=f"[{assignment.course}] {assignment.name}",
        description=_assignment_description(assignment),
        start_date=start,
        end_date=end,
        variant=priority_to_variant(assignment.priority),
        source="canvas",
    )


def _syllabus_description(event: SyllabusEvent) -> str:
    if event.notes and event.notes.strip():
        return f"{event.title}\n\nNotes: {event.notes}"
    return event.title


def syllabus_to_calendar_event(event: SyllabusEvent) -> CalendarEvent:
    """Turn a syllabus event into a calendar event in the standard midday window."""
    start = event.start_date.replace(hour=SYLLABUS_START_HOUR, minute=0, second=0, microsecond=0)
    end_day = event.end_date or event.start_date
    end = end_day.replace(hour=SYLLABUS_END_HOUR, minute=0, second=0, microsecond=0)
    start, end = ensure_duration(start, end)

    return CalendarEvent(
        id=event.id or syllabus_event_id(event.title, start),
        title=f"[Syllabus] {event.title}",
        description=_syllabus_description(event),
        start_date=start,
        end_date=end,
        variant=priority_to_variant(event.priority),
        source="syllabus",
    )


def _by_start(event: CalendarEvent) -> datetime:
    return to_aware(event.start_date)


def assignments_to_calendar_events(assignments: t.Iterable[PrioritizedAssignment]) -> list[CalendarEvent]:
    """Materialize a batch, dropping undated assignments, sorted by start date."""
    events = [
        event for event in (assignment_to_calendar_event(a) for a in assignments)
        if event is not None
    ]
    return sorted(events, key=_by_start)


def syllabus_events_to_calendar_events(events: t.Iterable[SyllabusEvent]) -> list[CalendarEvent]:
    """Materialize a batch of syllabus events, sorted by start date."""
    return sorted((syllabus_to_calendar_event(e) for e in events), key=_by_start)
