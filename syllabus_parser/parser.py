"""
Syllabus event extraction.

The syllabus text is sent to the model, which returns a JSON description of
every dated event. Its items are validated one by one and their date strings
normalized. Without a model credential a keyword-and-regex scan of the text
is used instead.
"""
from __future__ import annotations

import json
import logging
import re
import typing as t
from dataclasses import dataclass, field
from datetime import datetime, timedelta

import openai
from pydantic import ValidationError

from calendar_core.dates import DateParseError, month_number, noon_today, normalize_date
from calendar_core.models import ExtractedSyllabusEvent, SyllabusEvent, SyllabusExtraction
from prompts import render_prompt
from services.shared import config
from services.shared.llm import strip_code_fence

logger = logging.getLogger(__name__)

MIN_SYLLABUS_LENGTH = 10
FULL_TEXT_LIMIT = 30000
SCHEDULE_TEXT_LIMIT = 15000
FALLBACK_START_HOUR = 9
FALLBACK_DURATION = timedelta(hours=1)
METADATA_KEYS = ("courseCode", "courseName", "instructor", "term")

_FALLBACK_DATE = re.compile(
    r"\b(jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?"
    r"|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)[.\s]+(\d{1,2})\b"
    r"(?:[,\s]+(\d{4}))?(?:[:\s-]+([^.!?\n]+))?",
    re.IGNORECASE,
)
_HIGH_PRIORITY = re.compile(r"\b(?:exam|final|midterm|test|quiz)\b", re.IGNORECASE)
_MEDIUM_PRIORITY = re.compile(r"\b(?:assignment|project|paper|due|deadline)\b", re.IGNORECASE)


class SyllabusProcessingError(RuntimeError):
    """The model call failed or its reply could not be used."""


@dataclass
class SyllabusResult:
    """Events found in one syllabus plus whatever course details came with them."""
    events: list[SyllabusEvent] = field(default_factory=list)
    course_code: t.Optional[str] = None
    course_name: t.Optional[str] = None
    instructor: t.Optional[str] = None
    term: t.Optional[str] = None
    used_fallback: bool = False


def select_schedule_pages(pages: t.Sequence[str]) -> list[str]:
    """Heuristic: pick the pages that look like a schedule table."""
    schedule_pages: list[str] = []
    for p in pages:
        lp = p.lower()
        if (
                "schedule" in lp
                or "course calendar" in lp
                or ("week" in lp and "date" in lp and "topic" in lp)
                or "deliverable" in lp
                or "due date" in lp
        ):
            schedule_pages.append(p)
    return schedule_pages


def parse_extraction(raw: str) -> SyllabusExtraction:
    """
    Validate the model's JSON reply.

    The reply must be an object with an ``events`` array. Events that fail
    validation are dropped individually.

    Raises:
        SyllabusProcessingError: If the reply is not JSON or has no events array.
    """
    try:
        data = json.loads(strip_code_fence(raw))
    except json.JSONDecodeError as e:
        raise SyllabusProcessingError(f"Model response is not valid JSON: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("events"), list):
        raise SyllabusProcessingError("Model response does not contain an events array")

    events: list[ExtractedSyllabusEvent] = []
    for item in data["events"]:
        try:
            events.append(ExtractedSyllabusEvent.model_validate(item))
        except ValidationError as e:
            logger.warning("Dropping invalid syllabus event %r: %s", item, e)

    metadata = {key: data[key] for key in METADATA_KEYS if isinstance(data.get(key), str)}
    return SyllabusExtraction.model_validate({**metadata, "events": events})


async def extract_with_llm(
    pages: t.Sequence[str],
    client: openai.AsyncOpenAI,
    model: str = config.SYLLABUS_MODEL,
    year: t.Optional[int] = None,
) -> SyllabusExtraction:
    """Send the syllabus text to the model and validate what comes back."""
    schedule_pages = select_schedule_pages(pages)
    model_input = {
        "full_text": "\n\n".join(pages)[:FULL_TEXT_LIMIT],
        "schedule_text": "\n\n".join(schedule_pages)[:SCHEDULE_TEXT_LIMIT],
    }
    system_prompt = render_prompt(
        "syllabus_extraction_system_prompt", year=year or datetime.now().year
    )

    logger.info("Calling %s to extract syllabus events", model)
    try:
        completion = await client.chat.completions.create(
            model=model,
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": json.dumps(model_input)},
            ],
        )
    except openai.OpenAIError as e:
        raise SyllabusProcessingError(f"Failed to process syllabus with AI: {e}") from e

    extraction = parse_extraction(completion.choices[0].message.content or "{}")
    logger.info("Model extracted %d syllabus events", len(extraction.events))
    return extraction


def to_syllabus_events(extraction: SyllabusExtraction, today: t.Optional[datetime] = None) -> list[SyllabusEvent]:
    """
    Normalize the date strings of extracted items.

    Items without a start date are dropped. An unparseable start becomes
    today at noon; a missing or unparseable end becomes the start.
    """
    today = today or datetime.now()
    events: list[SyllabusEvent] = []
    for item in extraction.events:
        if not item.start_date.strip():
            logger.warning("Syllabus event %r has no start date, skipping", item.title)
            continue

        try:
            start = normalize_date(item.start_date, today.year)
        except DateParseError as e:
            logger.warning("Could not parse start of %r, using today: %s", item.title, e)
            start = noon_today(today)

        end = start
        if item.end_date.strip():
            try:
                end = normalize_date(item.end_date, today.year)
            except DateParseError as e:
                logger.warning("Could not parse end of %r, using start: %s", item.title, e)

        events.append(
            SyllabusEvent(
                title=item.title,
                category=item.category,
                start_date=start,
                end_date=end,
                priority=item.priority,
                notes=item.notes or "",
            )
        )
    return events


def fallback_syllabus_events(text: str, today: t.Optional[datetime] = None) -> list[SyllabusEvent]:
    """
    Find 'Month Day[, Year][: description]' mentions without a model.

    Priority comes from keywords in the description. Dates before January 1st
    of last year are ignored.
    """
    today = today or datetime.now()
    cutoff = datetime(today.year - 1, 1, 1)
    events: list[SyllabusEvent] = []

    for match in _FALLBACK_DATE.finditer(text):
        month_name, day, year, description = match.groups()
        description = (description or "").strip() or "Unknown event"
        try:
            start = datetime(
                int(year) if year else today.year, month_number(month_name), int(day),
                FALLBACK_START_HOUR, 0, 0,
            )
        except (DateParseError, ValueError):
            continue
        if start < cutoff:
            continue

        if _HIGH_PRIORITY.search(description):
            priority, category = "high", "exam"
        elif _MEDIUM_PRIORITY.search(description):
            priority, category = "medium", "assignment"
        else:
            priority, category = "low", "event"

        slug = re.sub(r"\s", "", description[:10])
        events.append(
            SyllabusEvent(
                id=f"syllabus-{start.month}-{start.day}-{start.year}-{slug}",
                title=description,
                category=category,
                start_date=start,
                end_date=start + FALLBACK_DURATION,
                priority=priority,
            )
        )

    logger.info("Fallback extraction found %d syllabus events", len(events))
    return events


async def process_syllabus(
    pages: t.Sequence[str],
    client: t.Optional[openai.AsyncOpenAI] = None,
    model: str = config.SYLLABUS_MODEL,
    today: t.Optional[datetime] = None,
) -> SyllabusResult:
    """
    Extract dated events from syllabus pages.

    Raises:
        SyllabusProcessingError: If the model call fails or its reply is unusable.
    """
    today = today or datetime.now()
    text = "\n\n".join(pages)
    if len(text.strip()) < MIN_SYLLABUS_LENGTH:
        logger.warning("Syllabus content is too short or empty")
        return SyllabusResult()

    if client is None:
        logger.warning("No model client configured, using fallback syllabus extraction")
        return SyllabusResult(events=fallback_syllabus_events(text, today), used_fallback=True)

    extraction = await extract_with_llm(pages, client, model, today.year)
    return SyllabusResult(
        events=to_syllabus_events(extraction, today),
        course_code=extraction.course_code,
        course_name=extraction.course_name,
        instructor=extraction.instructor,
        term=extraction.term,
    )
