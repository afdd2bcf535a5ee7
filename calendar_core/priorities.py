"""
Assignment priority classification.

The model is asked first. When it cannot answer (no credential, API error,
malformed reply) the classification is ``Unavailable`` and a deterministic
rule based on days left and point value is applied instead.
"""
from __future__ import annotations

import json
import logging
import typing as t
from dataclasses import dataclass

import openai
from pydantic import ValidationError

from calendar_core.dates import to_aware
from calendar_core.models import PrioritizedAssignment, PriorityAssessment, ProcessedAssignment
from prompts import render_prompt
from services.shared import config
from services.shared.llm import strip_code_fence

logger = logging.getLogger(__name__)

PRIORITY_RANK: dict[str, int] = {"high": 0, "medium": 1, "low": 2}
HIGH_POINTS_THRESHOLD = 50
DESCRIPTION_PREVIEW_LENGTH = 200
NO_AI_NOTES = "No AI notes available"
REQUIRED_KEYS = ("id", "priority", "notes")


@dataclass(frozen=True)
class Classified:
    """The model produced a usable classification."""
    assessments: list[PriorityAssessment]


@dataclass(frozen=True)
class Unavailable:
    """The model could not be used; ``reason`` says why."""
    reason: str


ClassificationResult = t.Union[Classified, Unavailable]


def _describe(description: str) -> str:
    if not description:
        return "No description"
    return description[:DESCRIPTION_PREVIEW_LENGTH] + "..."


def assignment_prompt_payload(assignments: t.Sequence[ProcessedAssignment]) -> list[dict[str, t.Any]]:
    """Compact projection of each assignment for the prompt."""
    return [
        {
            "id": a.id,
            "name": a.name,
            "course": a.course,
            "due_at": a.due_at.isoformat() if a.due_at else None,
            "created_at": a.created_at.isoformat() if a.created_at else None,
            "days_until_due": a.days_until_due,
            "points_possible": a.points,
            "description": _describe(a.description),
        }
        for a in assignments
    ]


def build_prioritization_prompt(assignments: t.Sequence[ProcessedAssignment]) -> str:
    payload = json.dumps(assignment_prompt_payload(assignments), indent=2)
    return render_prompt("assignment_prioritization_prompt", assignments=payload)


def parse_classification(text: str) -> ClassificationResult:
    """
    Validate a model reply: a JSON array of objects with id, priority and notes.

    Any deviation makes the whole reply unusable.
    """
    try:
        data = json.loads(strip_code_fence(text))
    except json.JSONDecodeError as e:
        return Unavailable(f"Reply is not valid JSON: {e}")

    if not isinstance(data, list):
        return Unavailable("Reply is not a JSON array")

    if not all(isinstance(item, dict) and all(key in item for key in REQUIRED_KEYS) for item in data):
        return Unavailable("Reply does not have the expected structure")

    try:
        return Classified([PriorityAssessment.model_validate(item) for item in data])
    except ValidationError as e:
        return Unavailable(f"Reply failed validation: {e}")


async def classify_with_llm(
    assignments: t.Sequence[ProcessedAssignment],
    client: t.Optional[openai.AsyncOpenAI],
    model: str = config.PRIORITIZATION_MODEL,
) -> ClassificationResult:
    """Ask the model to prioritize the assignments."""
    if client is None:
        return Unavailable("No model credential configured")

    logger.info("Calling %s to prioritize %d assignments", model, len(assignments))
    try:
        completion = await client.chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": build_prioritization_prompt(assignments)}],
        )
    except openai.OpenAIError as e:
        logger.error("Error calling model for prioritization: %s", e)
        return Unavailable(f"Model call failed: {e}")

    raw = completion.choices[0].message.content or ""
    result = parse_classification(raw)
    if isinstance(result, Unavailable):
        logger.debug("Raw prioritization reply: %s", raw)
    return result


def fallback_priority(assignment: ProcessedAssignment) -> PriorityAssessment:
    """Rule-based priority from days left, escalated for high-value work."""
    priority = "medium"
    notes = "Auto-prioritized based on due date and points"

    days = assignment.days_until_due
    if days is not None:
        if days <= 3:
            priority, notes = "high", "Due soon (3 days or less)"
        elif days <= 7:
            priority, notes = "medium", "Due within a week"
        else:
            priority, notes = "low", "Due in more than a week"

    if assignment.points >= HIGH_POINTS_THRESHOLD and priority != "high":
        priority = "high"
        notes += ", high point value"

    return PriorityAssessment(id=assignment.id, priority=priority, notes=notes)


def fallback_prioritization(assignments: t.Sequence[ProcessedAssignment]) -> list[PriorityAssessment]:
    return [fallback_priority(a) for a in assignments]


def _priority_sort_key(assignment: PrioritizedAssignment) -> tuple[int, bool, float]:
    due = to_aware(assignment.due_at).timestamp() if assignment.due_at else 0.0
    return PRIORITY_RANK[assignment.priority], assignment.due_at is None, due


def merge_priorities(
    assignments: t.Sequence[ProcessedAssignment],
    assessments: t.Sequence[PriorityAssessment],
) -> list[PrioritizedAssignment]:
    """
    Attach a priority to every assignment and order the result.

    Assignments the classification does not mention default to medium. The
    result is sorted by priority (high first), then by due date with undated
    assignments last.
    """
    by_id = {str(a.id): a for a in assessments}
    merged = []
    for assignment in assignments:
        assessment = by_id.get(str(assignment.id))
        merged.append(
            PrioritizedAssignment.model_validate({
                **assignment.model_dump(),
                "priority": assessment.priority if assessment else "medium",
                "ai_notes": assessment.notes if assessment and assessment.notes else NO_AI_NOTES,
            })
        )
    return sorted(merged, key=_priority_sort_key)


async def prioritize_assignments(
    assignments: t.Sequence[ProcessedAssignment],
    client: t.Optional[openai.AsyncOpenAI] = None,
    model: str = config.PRIORITIZATION_MODEL,
) -> list[PrioritizedAssignment]:
    """Classify with the model when possible, otherwise with the fallback rule."""
    if not assignments:
        logger.info("No assignments to prioritize")
        return []

    logger.info("Prioritizing %d assignments", len(assignments))
    result = await classify_with_llm(assignments, client, model)
    if isinstance(result, Unavailable):
        logger.warning("AI prioritization unavailable (%s), using fallback rules", result.reason)
        assessments = fallback_prioritization(assignments)
    else:
        assessments = result.assessments

    return merge_priorities(assignments, assessments)
