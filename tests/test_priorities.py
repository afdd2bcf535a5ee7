"""Tests for AI priority classification and its rule-based fallback."""
import json
from datetime import datetime, timedelta, timezone

import pytest

from calendar_core.models import ProcessedAssignment
from calendar_core.priorities import (
    NO_AI_NOTES,
    Classified,
    Unavailable,
    classify_with_llm,
    fallback_priority,
    merge_priorities,
    parse_classification,
    prioritize_assignments,
)
from conftest import FakeLLM, connection_error

NOW = datetime(2025, 4, 1, 12, tzinfo=timezone.utc)


def _assignment(id: int, days: int, points: float = 10) -> ProcessedAssignment:
    return ProcessedAssignment(
        id=id,
        name=f"Assignment {id}",
        course="CS 3100",
        due_at=NOW + timedelta(days=days),
        points_possible=points,
        days_until_due=days,
    )


@pytest.mark.parametrize(
    "days, points, priority",
    [(2, 10, "high"), (3, 10, "high"), (5, 10, "medium"), (10, 10, "low"), (10, 60, "high"), (5, 50, "high")],
)
def test_fallback_priority(days: int, points: float, priority: str) -> None:
    """Closer deadlines and high point values raise priority."""
    assert fallback_priority(_assignment(1, days, points)).priority == priority


def test_fallback_notes() -> None:
    assert fallback_priority(_assignment(1, 2)).notes == "Due soon (3 days or less)"
    assert fallback_priority(_assignment(1, 6)).notes == "Due within a week"
    assert fallback_priority(_assignment(1, 10, 60)).notes == "Due in more than a week, high point value"


def test_fallback_is_monotonic_in_urgency() -> None:
    """Moving a deadline closer never lowers the priority."""
    rank = {"low": 0, "medium": 1, "high": 2}
    levels = [rank[fallback_priority(_assignment(1, d)).priority] for d in range(30, -1, -1)]
    assert levels == sorted(levels)


def test_parse_classification_accepts_fenced_json() -> None:
    reply = '```json\n[{"id": 1, "priority": "HIGH", "notes": "exam prep"}]\n```'
    result = parse_classification(reply)
    assert isinstance(result, Classified)
    assert result.assessments[0].priority == "high"


@pytest.mark.parametrize(
    "reply",
    ["not json", '{"id": 1}', '[{"id": 1, "priority": "high"}]', '["high"]'],
)
def test_parse_classification_rejects_malformed(reply: str) -> None:
    """Anything but an array of {id, priority, notes} is unusable."""
    assert isinstance(parse_classification(reply), Unavailable)


def test_unknown_priority_becomes_medium() -> None:
    result = parse_classification('[{"id": 1, "priority": "urgent", "notes": null}]')
    assert isinstance(result, Classified)
    assert result.assessments[0].priority == "medium"
    assert result.assessments[0].notes == ""


@pytest.mark.asyncio
async def test_classify_without_client_is_unavailable() -> None:
    result = await classify_with_llm([_assignment(1, 2)], None)
    assert isinstance(result, Unavailable)


@pytest.mark.asyncio
async def test_classify_api_error_is_unavailable() -> None:
    """API errors are reported as Unavailable, not raised."""
    llm = FakeLLM(connection_error())
    result = await classify_with_llm([_assignment(1, 2)], llm, "test-model")
    assert isinstance(result, Unavailable)
    assert llm.completions.calls[0]["model"] == "test-model"


@pytest.mark.asyncio
async def test_prompt_contains_assignments() -> None:
    llm = FakeLLM("[]")
    await classify_with_llm([_assignment(7, 2)], llm)
    prompt = llm.completions.calls[0]["messages"][0]["content"]
    assert '"id": 7' in prompt
    assert "Assignment 7" in prompt


def test_merge_defaults_and_sorts() -> None:
    """Unmentioned assignments become medium; high comes first, then by due date."""
    a1, a2, a3 = _assignment(1, 9), _assignment(2, 5), _assignment(3, 1)
    result = parse_classification(json.dumps([
        {"id": "1", "priority": "high", "notes": "big project"},
        {"id": 3, "priority": "low", "notes": ""},
    ]))
    merged = merge_priorities([a1, a2, a3], result.assessments)

    assert [(a.id, a.priority) for a in merged] == [(1, "high"), (2, "medium"), (3, "low")]
    assert merged[0].ai_notes == "big project"
    assert merged[1].ai_notes == NO_AI_NOTES
    assert merged[2].ai_notes == NO_AI_NOTES


@pytest.mark.asyncio
async def test_prioritize_uses_model_reply() -> None:
    llm = FakeLLM(json.dumps([
        {"id": 1, "priority": "low", "notes": "short quiz"},
        {"id": 2, "priority": "high", "notes": "final paper"},
    ]))
    result = await prioritize_assignments([_assignment(1, 1), _assignment(2, 20)], llm)
    assert [(a.id, a.priority, a.ai_notes) for a in result] == [
        (2, "high", "final paper"),
        (1, "low", "short quiz"),
    ]


@pytest.mark.asyncio
async def test_prioritize_falls_back_on_malformed_reply() -> None:
    """A malformed reply switches to the rule-based classification."""
    llm = FakeLLM('{"oops": true}')
    result = await prioritize_assignments([_assignment(1, 10), _assignment(2, 2)], llm)
    assert [(a.id, a.priority) for a in result] == [(2, "high"), (1, "low")]
    assert result[0].ai_notes == "Due soon (3 days or less)"


@pytest.mark.asyncio
async def test_prioritize_empty_input() -> None:
    llm = FakeLLM("[]")
    assert await prioritize_assignments([], llm) == []
    assert llm.completions.calls == []


def test_fallback_without_due_date() -> None:
    """Undated work is medium, escalated to high for high point values."""
    undated = ProcessedAssignment(id=1, name="Reading", points_possible=10, days_until_due=None)
    assessment = fallback_priority(undated)
    assert assessment.priority == "medium"
    assert assessment.notes == "Auto-prioritized based on due date and points"

    valuable = ProcessedAssignment(id=2, name="Portfolio", points_possible=60, days_until_due=None)
    assessment = fallback_priority(valuable)
    assert assessment.priority == "high"
    assert assessment.notes == "Auto-prioritized based on due date and points, high point value"


def test_merge_puts_undated_assignments_last_within_rank() -> None:
    undated = ProcessedAssignment(id=1, name="Reading", course="CS 3100")
    later, sooner = _assignment(2, 9), _assignment(3, 4)
    result = parse_classification(json.dumps([
        {"id": a, "priority": "medium", "notes": "n"} for a in (1, 2, 3)
    ]))
    merged = merge_priorities([undated, later, sooner], result.assessments)
    assert [a.id for a in merged] == [3, 2, 1]
