"""
MCP server exposing the calendar pipeline as tools.

The raw ``_`` functions hold the logic and can be called directly; the
``@mcp.tool()`` registrations below are thin wrappers around them.
"""
from __future__ import annotations

import asyncio
import logging
import typing as t
from contextlib import asynccontextmanager

from fastmcp import FastMCP
from openai import AsyncOpenAI

from calendar_core.events import syllabus_events_to_calendar_events
from canvas_lms.assignments import fetch_canvas_calendar, get_all_upcoming_assignments
from canvas_lms.client import CanvasClient
from services.shared import config
from services.shared.llm import get_llm_client
from syllabus_parser.parser import process_syllabus
from syllabus_parser.pdf_utils import extract_pdf_pages

logger = logging.getLogger(__name__)

mcp = FastMCP("MyCally")


@asynccontextmanager
async def _canvas_session(canvas: t.Optional[CanvasClient]) -> t.AsyncIterator[CanvasClient]:
    """Yield the given client, or a configured one that is closed afterwards."""
    if canvas is not None:
        yield canvas
        return
    if not config.CANVAS_ACCESS_TOKEN:
        raise ValueError("No Canvas API token configured")
    async with CanvasClient() as client:
        yield client


@asynccontextmanager
async def _llm_session(llm: t.Optional[AsyncOpenAI]) -> t.AsyncIterator[t.Optional[AsyncOpenAI]]:
    """Yield the given model client, or a configured one that is closed afterwards."""
    if llm is not None:
        yield llm
        return
    created = get_llm_client()
    try:
        yield created
    finally:
        if created is not None:
            await created.close()


async def _get_upcoming_assignments(canvas: t.Optional[CanvasClient] = None) -> list[dict[str, t.Any]]:
    """Upcoming Canvas assignments across active courses, soonest first."""
    async with _canvas_session(canvas) as client:
        assignments = await get_all_upcoming_assignments(client)
    return [a.model_dump(mode="json") for a in assignments]


async def _get_canvas_calendar_events(
    canvas: t.Optional[CanvasClient] = None,
    llm: t.Optional[AsyncOpenAI] = None,
) -> list[dict[str, t.Any]]:
    """Prioritized calendar events for upcoming Canvas assignments."""
    async with _llm_session(llm) as model_client, _canvas_session(canvas) as client:
        calendar = await fetch_canvas_calendar(client, model_client, config.PRIORITIZATION_MODEL)
    return [event.model_dump(mode="json") for event in calendar.events]


async def _parse_syllabus_pdf(
    pdf_path_or_url: str,
    llm: t.Optional[AsyncOpenAI] = None,
) -> list[dict[str, t.Any]]:
    """Calendar events extracted from a syllabus PDF at a local path or URL."""
    pages = await asyncio.to_thread(extract_pdf_pages, pdf_path_or_url)
    async with _llm_session(llm) as model_client:
        result = await process_syllabus(pages, model_client, config.SYLLABUS_MODEL)
    if not result.events:
        logger.info("No events found in %s", pdf_path_or_url)
    return [event.model_dump(mode="json") for event in syllabus_events_to_calendar_events(result.events)]


@mcp.tool()
async def get_upcoming_assignments() -> list[dict[str, t.Any]]:
    """List upcoming Canvas assignments across all active courses."""
    return await _get_upcoming_assignments()


@mcp.tool()
async def get_canvas_calendar_events() -> list[dict[str, t.Any]]:
    """Prioritize upcoming Canvas assignments and return them as calendar events."""
    return await _get_canvas_calendar_events()


@mcp.tool()
async def parse_syllabus_pdf(pdf_path_or_url: str) -> list[dict[str, t.Any]]:
    """Extract dated syllabus events from a PDF path or URL as calendar events."""
    return await _parse_syllabus_pdf(pdf_path_or_url)


if __name__ == "__main__":
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    mcp.run()
