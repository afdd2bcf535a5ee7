"""Tests for syllabus extraction, the regex fallback, PDF decoding and the syllabus store."""
import base64
import json
from datetime import datetime

import pytest

from calendar_core.models import SyllabusExtraction
from syllabus_parser.parser import (
    SyllabusProcessingError,
    fallback_syllabus_events,
    parse_extraction,
    process_syllabus,
    select_schedule_pages,
    to_syllabus_events,
)
from syllabus_parser.pdf_utils import PdfExtractionError, decode_pdf_content, extract_pdf_pages_from_content
from syllabus_parser.store import SyllabusStore
from conftest import FakeLLM, connection_error

TODAY = datetime(2025, 2, 1, 8, 30)

SYLLABUS_TEXT = """CS 3240 Advanced Software Development
Course Schedule
Jan 20: First day of class
Feb 14, 2025 - Midterm Exam
Mar 3 - Project proposal due
Apr 28, 2023: Old event from the archive
"""


def test_fallback_finds_dated_mentions() -> None:
    events = fallback_syllabus_events(SYLLABUS_TEXT, TODAY)
    by_title = {e.title: e for e in events}

    assert set(by_title) == {"First day of class", "Midterm Exam", "Project proposal due"}

    midterm = by_title["Midterm Exam"]
    assert midterm.priority == "high"
    assert midterm.category == "exam"
    assert midterm.start_date == datetime(2025, 2, 14, 9)
    assert midterm.end_date == datetime(2025, 2, 14, 10)
    assert midterm.id == "syllabus-2-14-2025-MidtermEx"

    assert by_title["Project proposal due"].priority == "medium"
    assert by_title["Project proposal due"].category == "assignment"
    assert by_title["First day of class"].priority == "low"
    assert by_title["First day of class"].category == "event"


def test_fallback_without_description() -> None:
    events = fallback_syllabus_events("Reading week starts Mar 10.", TODAY)
    assert len(events) == 1
    assert events[0].title == "Unknown event"


def test_select_schedule_pages() -> None:
    pages = ["Course policies and grading", "Week  Date  Topic\n1  Jan 20  Intro", "Course Schedule"]
    assert select_schedule_pages(pages) == pages[1:]


def test_parse_extraction_drops_invalid_items() -> None:
    """Items failing validation are dropped one by one; the rest survive."""
    reply = json.dumps({
        "courseCode": "CS 3240",
        "term": "Spring 2025",
        "events": [
            {"title": "Midterm", "category": "exam", "startDate": "2025-03-05",
             "endDate": "2025-03-05", "priority": "high"},
            {"title": "Bad", "category": "exam", "startDate": "2025-03-05",
             "endDate": "2025-03-05", "priority": "urgent"},
            {"title": "Missing dates", "category": "event", "priority": "low"},
        ],
    })
    extraction = parse_extraction(reply)
    assert [e.title for e in extraction.events] == ["Midterm"]
    assert extraction.course_code == "CS 3240"
    assert extraction.term == "Spring 2025"


@pytest.mark.parametrize("reply", ["no json here", "[]", '{"events": "none"}'])
def test_parse_extraction_rejects_malformed(reply: str) -> None:
    with pytest.raises(SyllabusProcessingError):
        parse_extraction(reply)


def test_to_syllabus_events_date_fallbacks() -> None:
    """Missing start drops the item, bad start becomes today at noon, bad end equals start."""
    extraction = SyllabusExtraction.model_validate({"events": [
        {"title": "Quiz 1", "category": "exam", "startDate": "Wed, Feb 12", "endDate": "", "priority": "high",
         "notes": "Chapters 1-2"},
        {"title": "Guest lecture", "category": "event", "startDate": "sometime soon",
         "endDate": "later", "priority": "low"},
        {"title": "No start", "category": "event", "startDate": "", "endDate": "Feb 20", "priority": "low"},
    ]})
    events = to_syllabus_events(extraction, TODAY)

    assert [e.title for e in events] == ["Quiz 1", "Guest lecture"]
    assert events[0].start_date == datetime(2025, 2, 12, 12)
    assert events[0].end_date == events[0].start_date
    assert events[0].notes == "Chapters 1-2"
    assert events[1].start_date == datetime(2025, 2, 1, 12)
    assert events[1].end_date == events[1].start_date


@pytest.mark.asyncio
async def test_process_syllabus_with_model() -> None:
    llm = FakeLLM("```json\n" + json.dumps({
        "courseName": "Advanced Software Development",
        "events": [{"title": "Final Exam", "category": "exam", "startDate": "2025-05-06T09:00:00",
                    "endDate": "2025-05-06T12:00:00", "priority": "high"}],
    }) + "\n```")
    result = await process_syllabus([SYLLABUS_TEXT], llm, "test-model", today=TODAY)

    assert not result.used_fallback
    assert result.course_name == "Advanced Software Development"
    assert [(e.title, e.start_date) for e in result.events] == [("Final Exam", datetime(2025, 5, 6, 9))]

    call = llm.completions.calls[0]
    assert call["response_format"] == {"type": "json_object"}
    assert "2025" in call["messages"][0]["content"]
    user_input = json.loads(call["messages"][1]["content"])
    assert "Course Schedule" in user_input["schedule_text"]


@pytest.mark.asyncio
async def test_process_syllabus_model_error_raises() -> None:
    with pytest.raises(SyllabusProcessingError):
        await process_syllabus([SYLLABUS_TEXT], FakeLLM(connection_error()), today=TODAY)


@pytest.mark.asyncio
async def test_process_syllabus_without_model_uses_fallback() -> None:
    result = await process_syllabus([SYLLABUS_TEXT], None, today=TODAY)
    assert result.used_fallback
    assert len(result.events) == 3


@pytest.mark.asyncio
async def test_process_syllabus_short_text_is_empty() -> None:
    llm = FakeLLM("{}")
    result = await process_syllabus(["  tiny "], llm, today=TODAY)
    assert result.events == []
    assert llm.completions.calls == []


def test_decode_pdf_content_strips_data_url() -> None:
    raw = b"%PDF-1.4 fake"
    encoded = base64.b64encode(raw).decode()
    assert decode_pdf_content(f"data:application/pdf;base64,{encoded}") == raw
    assert decode_pdf_content(encoded) == raw


@pytest.mark.parametrize("data", ["", "data:application/pdf;base64,***not base64***"])
def test_decode_pdf_content_rejects_bad_input(data: str) -> None:
    with pytest.raises(PdfExtractionError):
        decode_pdf_content(data)


def test_unreadable_pdf_raises() -> None:
    with pytest.raises(PdfExtractionError):
        extract_pdf_pages_from_content(b"definitely not a pdf")


def test_store_replaces_and_clears() -> None:
    """Saving replaces the previous syllabus for the same key only."""
    store = SyllabusStore()
    store.save("alice", "data:application/pdf;base64,AAAA", "first.pdf")
    store.save("alice", "QkJCQg==", "second.pdf")
    store.save("bob", "Q0NDQw==", "other.pdf")

    stored = store.get("alice")
    assert stored.filename == "second.pdf"
    assert stored.content == "QkJCQg=="
    assert stored.data_url == "data:application/pdf;base64,QkJCQg=="

    assert store.clear("alice")
    assert not store.has("alice")
    assert not store.clear("alice")
    assert store.has("bob")


def test_store_evicts_least_recently_saved() -> None:
    """Past the session cap the oldest save is dropped; re-saving refreshes a key."""
    store = SyllabusStore(max_sessions=2)
    store.save("alice", "QUFBQQ==", "a.pdf")
    store.save("bob", "QkJCQg==", "b.pdf")
    store.save("alice", "QUFBQQ==", "a2.pdf")
    store.save("carol", "Q0NDQw==", "c.pdf")

    assert not store.has("bob")
    assert store.get("alice").filename == "a2.pdf"
    assert store.has("carol")
