"""
Aggregate upcoming assignments across every active Canvas course.

Courses are fetched first, then each course's assignments concurrently.
A single failed request fails the whole aggregation.
"""
from __future__ import annotations

import asyncio
import logging
import typing as t
from dataclasses import dataclass, field
from datetime import datetime, timezone

import openai

from calendar_core.dates import days_until_due, to_aware
from calendar_core.events import assignments_to_calendar_events
from calendar_core.models import Assignment, CalendarEvent, Course, PrioritizedAssignment, ProcessedAssignment
from calendar_core.priorities import prioritize_assignments
from canvas_lms.client import CanvasClient
from services.shared import config

logger = logging.getLogger(__name__)


@dataclass
class CanvasCalendar:
    """Calendar events built from Canvas plus the prioritized assignments behind them."""
    events: list[CalendarEvent] = field(default_factory=list)
    assignments: list[PrioritizedAssignment] = field(default_factory=list)


async def fetch_course_assignments(client: CanvasClient, course: Course) -> list[Assignment]:
    raw = await client.get_course_assignments(course.id)
    return [
        Assignment.model_validate({**item, "course": course.name, "course_id": course.id})
        for item in raw
    ]


async def get_all_upcoming_assignments(
    client: CanvasClient,
    now: t.Optional[datetime] = None,
) -> list[ProcessedAssignment]:
    """
    Return every assignment due strictly after ``now``, soonest first.

    Args:
        client: Canvas client to fetch with.
        now: Reference time; defaults to the current UTC time.

    Raises:
        CanvasError: If any course or assignment request fails.
    """
    logger.info("Getting all upcoming assignments")
    courses = await client.get_active_courses()
    batches = await asyncio.gather(*(fetch_course_assignments(client, c) for c in courses))

    now = to_aware(now) if now is not None else datetime.now(timezone.utc)
    upcoming = [
        ProcessedAssignment.model_validate({
            **assignment.model_dump(),
            "days_until_due": days_until_due(assignment.due_at, now),
        })
        for batch in batches
        for assignment in batch
        if assignment.due_at is not None and to_aware(assignment.due_at) > now
    ]
    upcoming.sort(key=lambda a: to_aware(a.due_at))

    logger.info("Returning %d upcoming assignments", len(upcoming))
    return upcoming


async def fetch_canvas_calendar(
    client: CanvasClient,
    llm: t.Optional[openai.AsyncOpenAI] = None,
    model: str = config.PRIORITIZATION_MODEL,
) -> CanvasCalendar:
    """Fetch upcoming assignments, prioritize them and materialize calendar events."""
    assignments = await get_all_upcoming_assignments(client)
    if not assignments:
        logger.info("No upcoming assignments found in Canvas")
        return CanvasCalendar()

    prioritized = await prioritize_assignments(assignments, llm, model)
    events = assignments_to_calendar_events(prioritized)
    logger.info("Created %d calendar events from Canvas assignments", len(events))
    return CanvasCalendar(events=events, assignments=prioritized)
